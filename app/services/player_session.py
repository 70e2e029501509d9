import asyncio
import time
from typing import Any, Callable, Dict, Optional

from app.config import get_settings
from app.core.exceptions import SessionOwnershipError, UnknownIntentError
from app.core.logging import get_logger, get_session_logger
from app.models import PlaybackEvent, PlaybackState, Playlist, Track
from app.services.playback_handle import RemotePlaybackHandle
from app.services.playlist_repository import PlaylistRepository
from app.services.queue_store import QueueStore
from app.services.transport import PlaybackHandle, TransportController
from app.utils.formatters import format_notification, format_playback_state

logger = get_logger("SessionRegistry")


class PlayerSession:
    """
    Playback session of one browser tab.

    Wires the queue, the transport and the user's playlist repository
    together and collects everything the tab must hear about (handle
    commands, state snapshots, notifications) in an outbox. Callers apply
    an intent, then flush the outbox to the tab's WebSocket.
    """

    def __init__(
        self,
        session_id: str,
        user_id: Optional[str],
        repository: PlaylistRepository,
        default_volume: float = 0.7,
        previous_restart_seconds: float = 3.0,
        handle: Optional[PlaybackHandle] = None,
        rng=None
    ):
        self.session_id = session_id
        self.user_id = user_id
        self.repository = repository
        self.outbox: list[dict] = []
        self.current_playlist_id: Optional[str] = None
        self.last_active = time.monotonic()
        self.logger = get_session_logger("PlayerSession", session_id)

        self.queue = QueueStore(rng=rng)
        self.handle = handle or RemotePlaybackHandle(self.outbox.append)
        self.transport = TransportController(
            self.queue,
            self.handle,
            default_volume=default_volume,
            previous_restart_seconds=previous_restart_seconds,
            on_failure=self._on_playback_failure
        )

    # ==================== STATE ====================

    def state(self) -> PlaybackState:
        return self.transport.snapshot(self.current_playlist_id)

    def publish_state(self) -> PlaybackState:
        """Queue a player_state message for the tab and return the snapshot"""
        state = self.state()
        self.outbox.append({"type": "player_state", "data": format_playback_state(state)})
        return state

    def resync(self) -> PlaybackState:
        """
        Bring a freshly connected tab up to date: commands it never received
        are dropped, the volume and state are sent again and the current
        track is reloaded.
        """
        self.outbox.clear()
        self.handle.set_volume(self.transport.effective_volume)
        self.transport.reload()
        return self.publish_state()

    def drain_outbox(self) -> list[dict]:
        messages = list(self.outbox)
        self.outbox.clear()
        return messages

    def touch(self) -> None:
        self.last_active = time.monotonic()

    # ==================== QUEUE INTENTS ====================

    def set_queue(self, tracks: list[Track], start_index: int = 0) -> None:
        self.current_playlist_id = None
        self.queue.set_queue(tracks, start_index)

    def add_tracks(self, tracks: list[Track]) -> None:
        self.queue.add_tracks(tracks)

    def remove_from_queue(self, track_id: str) -> None:
        self.queue.remove_track(track_id)

    def clear_queue(self) -> None:
        self.current_playlist_id = None
        self.queue.clear()

    def jump_to(self, index: int) -> None:
        self.queue.jump_to(index)

    def toggle_shuffle(self) -> None:
        self.queue.toggle_shuffle()

    def cycle_repeat_mode(self) -> None:
        self.queue.cycle_repeat_mode()

    # ==================== TRANSPORT INTENTS ====================

    def play(self) -> None:
        self.transport.play()

    def pause(self) -> None:
        self.transport.pause()

    def toggle_play(self) -> None:
        self.transport.toggle_play()

    def next(self) -> None:
        self.transport.next()

    def previous(self) -> None:
        self.transport.previous()

    def seek_to(self, seconds: float) -> None:
        self.transport.seek_to(seconds)

    def set_volume(self, level: float) -> None:
        self.transport.set_volume(level)

    def toggle_mute(self) -> None:
        self.transport.toggle_mute()

    def play_track(self, track: Track) -> None:
        """Play a single track on its own"""
        self.play_tracks([track])

    def play_tracks(self, tracks: list[Track], start_index: int = 0) -> None:
        """Queue a release or list and start playing from one of its tracks"""
        self.set_queue(tracks, start_index)
        self.transport.play()

    def handle_event(self, event: PlaybackEvent) -> bool:
        return self.transport.handle_event(event)

    # ==================== PLAYLIST INTENTS ====================

    async def play_playlist(self, playlist_id: str) -> None:
        playlist = await self.repository.get_playlist(playlist_id)
        self.play_tracks(playlist.tracks)
        self.current_playlist_id = playlist.id if playlist.tracks else None
        self.logger.info(f"Playing playlist '{playlist.name}' ({len(playlist.tracks)} tracks)")

    async def delete_playlist(self, playlist_id: str) -> None:
        await self.repository.delete_playlist(playlist_id)
        if self.current_playlist_id == playlist_id:
            self.clear_queue()

    async def remove_track_from_playlist(self, playlist_id: str, track_id: str) -> Playlist:
        """Remove from the playlist, and from the queue when that playlist is playing"""
        playlist = await self.repository.remove_track_from_playlist(playlist_id, track_id)
        if self.current_playlist_id == playlist_id:
            self.queue.remove_track(track_id)
        return playlist

    # ==================== DISPATCH ====================

    def dispatch(self, action: str, data: Optional[Dict[str, Any]] = None) -> PlaybackState:
        """
        Apply one synchronous intent by name (as sent over the WebSocket)
        and publish the resulting state.
        """
        data = data or {}
        intents: Dict[str, Callable[[], None]] = {
            "set_queue": lambda: self.set_queue(
                [Track.model_validate(t) for t in data.get("tracks", [])],
                int(data.get("start_index", 0))
            ),
            "add_tracks": lambda: self.add_tracks([Track.model_validate(t) for t in data.get("tracks", [])]),
            "remove_from_queue": lambda: self.remove_from_queue(str(data["track_id"])),
            "clear_queue": self.clear_queue,
            "jump_to": lambda: self.jump_to(int(data["index"])),
            "play": self.play,
            "pause": self.pause,
            "toggle_play": self.toggle_play,
            "next": self.next,
            "previous": self.previous,
            "seek": lambda: self.seek_to(float(data["position"])),
            "set_volume": lambda: self.set_volume(float(data["volume"])),
            "toggle_mute": self.toggle_mute,
            "toggle_shuffle": self.toggle_shuffle,
            "cycle_repeat": self.cycle_repeat_mode,
            "play_track": lambda: self.play_track(Track.model_validate(data["track"])),
            "play_tracks": lambda: self.play_tracks(
                [Track.model_validate(t) for t in data.get("tracks", [])],
                int(data.get("start_index", 0))
            ),
        }
        intent = intents.get(action)
        if intent is None:
            raise UnknownIntentError(action)

        self.touch()
        intent()
        return self.publish_state()

    # ==================== PRIVATE METHODS ====================

    def _on_playback_failure(self, track: Track, message: str) -> None:
        self.outbox.append(format_notification(f"Could not play '{track.title}': {message}", "warning"))


class SessionRegistry:
    """
    All live player sessions of this process, keyed by session id.

    Owned by the application and handed to routes as a dependency. A session
    stays bound to the user that opened it.
    """

    def __init__(self):
        self.sessions: Dict[str, PlayerSession] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def get(self, session_id: str) -> Optional[PlayerSession]:
        return self.sessions.get(session_id)

    def get_or_create(
        self,
        session_id: str,
        user_id: Optional[str],
        repository_factory: Callable[[], PlaylistRepository]
    ) -> PlayerSession:
        session = self.sessions.get(session_id)
        if session is not None:
            if session.user_id != user_id:
                logger.warning(f"User {user_id} tried to use session {session_id} of user {session.user_id}")
                raise SessionOwnershipError(session_id)
            session.touch()
            return session

        settings = get_settings()
        session = PlayerSession(
            session_id=session_id,
            user_id=user_id,
            repository=repository_factory(),
            default_volume=settings.default_volume,
            previous_restart_seconds=settings.previous_restart_seconds
        )
        self.sessions[session_id] = session
        logger.info(f"Opened player session {session_id} for {user_id or 'anonymous'} - {len(self.sessions)} total")
        return session

    def remove(self, session_id: str) -> None:
        if self.sessions.pop(session_id, None) is not None:
            logger.info(f"Closed player session {session_id} - {len(self.sessions)} remaining")

    def sweep_idle(self, max_idle_seconds: float, is_connected: Callable[[str], bool]) -> list[str]:
        """Drop sessions with no open socket that have been idle too long"""
        now = time.monotonic()
        idle = [
            session_id for session_id, session in self.sessions.items()
            if not is_connected(session_id) and now - session.last_active > max_idle_seconds
        ]
        for session_id in idle:
            self.remove(session_id)
        return idle

    # ==================== BACKGROUND SWEEP ====================

    def start_sweeper(self, max_idle_seconds: float, is_connected: Callable[[str], bool]) -> None:
        self._sweeper = asyncio.create_task(self._sweep_forever(max_idle_seconds, is_connected))

    async def stop_sweeper(self) -> None:
        """Cancel the background sweep task"""
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def _sweep_forever(self, max_idle_seconds: float, is_connected: Callable[[str], bool]):
        interval = max(1.0, max_idle_seconds / 4)
        try:
            while True:
                await asyncio.sleep(interval)
                removed = self.sweep_idle(max_idle_seconds, is_connected)
                if removed:
                    logger.info(f"Swept {len(removed)} idle player sessions")
        except asyncio.CancelledError:
            logger.debug("Idle session sweeper cancelled")
            raise
