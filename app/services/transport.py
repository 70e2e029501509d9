from typing import Callable, Optional, Protocol

from app.core.logging import get_logger
from app.models import PlaybackEvent, PlaybackState, RepeatMode, Track
from app.services.queue_store import QueueStore

logger = get_logger("TransportController")

FailureListener = Callable[[Track, str], None]


class PlaybackHandle(Protocol):
    """
    The single audio output of a player session.

    Loading is asynchronous: the handle answers every load() with a
    "loaded" or "error" PlaybackEvent carrying the same load_id.
    """

    def load(self, source: str, load_id: int) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def seek(self, seconds: float) -> None: ...

    def set_volume(self, level: float) -> None: ...


def clamp(value: float, lower: float, upper: Optional[float] = None) -> float:
    value = max(lower, value)
    if upper is not None:
        value = min(upper, value)
    return value


class TransportController:
    """
    Owns one playback handle and keeps the playback state consistent with it.

    The queue tells the transport when its current track changes; the
    handle tells it when a load finishes, a track ends or a source fails.
    Both arrive through synchronous calls, so no locking is involved.
    """

    def __init__(
        self,
        queue: QueueStore,
        handle: PlaybackHandle,
        default_volume: float = 0.7,
        previous_restart_seconds: float = 3.0,
        on_failure: Optional[FailureListener] = None
    ):
        self.queue = queue
        self.handle = handle
        self.previous_restart_seconds = previous_restart_seconds
        self.on_failure = on_failure

        self.is_playing = False
        self.position = 0.0
        self.duration = 0.0
        self.volume = clamp(default_volume, 0.0, 1.0)
        self.muted = False

        self._load_id = 0
        self._loaded_track: Optional[Track] = None
        self._source_ready = False
        self._load_failed = False
        self._consecutive_failures = 0
        self._pending_failures: list[tuple[Optional[Track], str]] = []
        self._skipping = False

        self.queue.subscribe(self._on_current_changed)
        self.handle.set_volume(self.effective_volume)

    # ==================== STATE ====================

    @property
    def current_track(self) -> Optional[Track]:
        return self.queue.current_track

    @property
    def loaded_track(self) -> Optional[Track]:
        """Track the handle was last told to load; survives the ended state"""
        return self._loaded_track

    @property
    def load_id(self) -> int:
        return self._load_id

    @property
    def effective_volume(self) -> float:
        return 0.0 if self.muted else self.volume

    def snapshot(self, current_playlist_id: Optional[str] = None) -> PlaybackState:
        return PlaybackState(
            current_track=self.current_track,
            is_playing=self.is_playing,
            position=self.position,
            duration=self.duration,
            volume=self.volume,
            muted=self.muted,
            cursor=self.queue.cursor,
            queue_length=len(self.queue),
            shuffle=self.queue.shuffle,
            repeat_mode=self.queue.repeat_mode,
            current_playlist_id=current_playlist_id,
        )

    # ==================== COMMANDS ====================

    def play(self) -> None:
        if self.current_track is None:
            return

        self.is_playing = True
        self._consecutive_failures = 0

        if self._loaded_track is not self.current_track or self._load_failed:
            self._load(self.current_track)
        elif self._source_ready:
            self.handle.play()
        # Otherwise playback starts when the pending load reports in

    def pause(self) -> None:
        if self.current_track is None:
            return

        self.is_playing = False
        self.handle.pause()

    def toggle_play(self) -> None:
        if self.is_playing:
            self.pause()
        else:
            self.play()

    def seek_to(self, seconds: float) -> None:
        if self.current_track is None:
            return

        upper = self.duration if self.duration > 0 else None
        self.position = clamp(seconds, 0.0, upper)
        self.handle.seek(self.position)

    def set_volume(self, level: float) -> None:
        """Stored volume is kept separately from muting."""
        self.volume = clamp(level, 0.0, 1.0)
        self.handle.set_volume(self.effective_volume)

    def toggle_mute(self) -> None:
        self.muted = not self.muted
        self.handle.set_volume(self.effective_volume)

    def reload(self) -> None:
        """Load the current track again for a handle that lost its source"""
        if self.current_track is not None:
            self._load(self.current_track)

    def next(self) -> None:
        """User skip. With repeat-one the current track starts over."""
        before = self.queue.cursor
        after = self.queue.advance()
        if after is not None and after == before:
            self._restart()

    def previous(self) -> None:
        """Restart the track when past the threshold, otherwise step back."""
        if self.current_track is None:
            return

        if self.position > self.previous_restart_seconds:
            self.seek_to(0)
            return

        before = self.queue.cursor
        after = self.queue.retreat()
        if after == before:
            self.seek_to(0)

    # ==================== HANDLE EVENTS ====================

    def handle_event(self, event: PlaybackEvent) -> bool:
        """
        Single entry point for everything the playback handle reports.

        Returns False when the event answered a superseded load and was
        discarded.
        """
        if event.kind == "duration_change":
            if not self._is_current_load(event):
                return False
            self.duration = event.duration or 0.0
            return True

        if event.kind == "time_update":
            if not self._is_current_load(event):
                return False
            if event.position is not None:
                self.position = event.position
            return True

        if not self._is_current_load(event):
            logger.debug(f"Discarding stale {event.kind} event for load {event.load_id} (current {self._load_id})")
            return False

        if event.kind == "loaded":
            self._source_ready = True
            self._consecutive_failures = 0
            if event.duration:
                self.duration = event.duration
            if self.is_playing:
                self.handle.play()
        elif event.kind == "ended":
            self._on_track_ended()
        elif event.kind == "error":
            self._on_track_failed(self._loaded_track, event.message or "could not load audio source")
        return True

    # ==================== PRIVATE METHODS ====================

    def _is_current_load(self, event: PlaybackEvent) -> bool:
        if self._loaded_track is None or self._loaded_track is not self.current_track:
            return False
        return event.load_id is None or event.load_id == self._load_id

    def _on_current_changed(self, autostart: bool) -> None:
        track = self.current_track
        self.position = 0.0

        if track is None:
            # Empty or ended queue: the handle keeps whatever it had loaded
            if self.is_playing:
                self.handle.pause()
            self.is_playing = False
            self.duration = 0.0
            return

        self.is_playing = self.is_playing or autostart
        self._load(track)

    def _load(self, track: Track) -> None:
        self._load_id += 1
        self._loaded_track = track
        self._source_ready = False
        self._load_failed = False
        self.position = 0.0
        self.duration = track.duration or 0.0

        if not track.has_source:
            self._on_track_failed(track, "track has no audio source")
            return

        logger.debug(f"Loading '{track.title}' ({track.id}) as load {self._load_id}")
        self.handle.load(track.url, self._load_id)

    def _restart(self) -> None:
        self.position = 0.0
        self.handle.seek(0.0)
        if self.is_playing and self._source_ready:
            self.handle.play()

    def _on_track_ended(self) -> None:
        self.is_playing = True
        before = self.queue.cursor
        after = self.queue.advance()

        if after is None:
            logger.debug("Queue ended")
        elif after == before:
            self._restart()

    def _on_track_failed(self, track: Optional[Track], message: str) -> None:
        """
        Skip past a failed track.

        A track without a source fails inside _load, which may itself run
        inside a skip. Such failures are queued and handled by the outermost
        call in a loop, so a long run of broken tracks never nests.
        """
        self._pending_failures.append((track, message))
        if self._skipping:
            return

        self._skipping = True
        try:
            while self._pending_failures:
                self._skip_failed(*self._pending_failures.pop(0))
        finally:
            self._skipping = False

    def _skip_failed(self, track: Optional[Track], message: str) -> None:
        self._consecutive_failures += 1
        if track is self._loaded_track:
            self._load_failed = True
        if track is not None:
            logger.warning(f"Playback failed for '{track.title}' ({track.id}): {message}")
            if self.on_failure is not None:
                self.on_failure(track, message)

        loops = self.queue.shuffle or self.queue.repeat_mode != RepeatMode.OFF
        if loops and self._consecutive_failures >= len(self.queue):
            logger.warning(f"Stopping after {self._consecutive_failures} consecutive failures")
            self._pending_failures.clear()
            self.is_playing = False
            self.handle.pause()
            return

        before = self.queue.cursor
        after = self.queue.advance()
        if after is not None and after == before:
            self._load(self.current_track)
