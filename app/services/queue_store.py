import random
from typing import Callable, Iterable, Optional

from app.core.logging import get_logger
from app.models import RepeatMode, Track

logger = get_logger("QueueStore")

# Called with autostart=True when the move should start playback on its own
CurrentChangedListener = Callable[[bool], None]


class QueueStore:
    """
    Ordered tracks for one player session plus the cursor into them.

    Pure in-memory state. Every operation is a synchronous transition; the
    only side effect is the current-changed listener, which the transport
    uses to load whatever the cursor points at afterwards.
    """

    def __init__(
        self,
        on_current_changed: Optional[CurrentChangedListener] = None,
        rng: Optional[random.Random] = None
    ):
        self._tracks: list[Track] = []
        self._cursor: Optional[int] = None
        self.shuffle = False
        self.repeat_mode = RepeatMode.OFF
        self._on_current_changed = on_current_changed
        self._rng = rng or random.Random()

    # ==================== READ ====================

    @property
    def tracks(self) -> tuple[Track, ...]:
        return tuple(self._tracks)

    @property
    def cursor(self) -> Optional[int]:
        return self._cursor

    @property
    def current_track(self) -> Optional[Track]:
        if self._cursor is None:
            return None
        return self._tracks[self._cursor]

    @property
    def is_ended(self) -> bool:
        """Tracks remain but playback ran off the end with repeat and shuffle off"""
        return bool(self._tracks) and self._cursor is None

    def __len__(self) -> int:
        return len(self._tracks)

    def subscribe(self, listener: CurrentChangedListener) -> None:
        self._on_current_changed = listener

    # ==================== MUTATIONS ====================

    def set_queue(self, tracks: Iterable[Track], start_index: int = 0) -> None:
        """
        Replace the queue wholesale; an empty iterable just empties it.

        The cursor starts at start_index when it is in range, else at 0.
        """
        previous = self._position()
        self._tracks = list(tracks)
        if not self._tracks:
            self._cursor = None
        else:
            self._cursor = start_index if 0 <= start_index < len(self._tracks) else 0
        self._notify_if_moved(previous)

    def add_tracks(self, tracks: Iterable[Track]) -> None:
        """Append to the end. Filling an empty queue starts playback at index 0."""
        new_tracks = list(tracks)
        if not new_tracks:
            return

        was_empty = not self._tracks
        previous = self._position()
        self._tracks.extend(new_tracks)

        if was_empty:
            self._cursor = 0
            self._notify_if_moved(previous, autostart=True)

    def remove_track(self, track_id: str) -> None:
        """
        Remove every entry with this track id.

        Entries before the cursor shift it down. When the current entry goes,
        the entry that slides into its index becomes current (wrapping to 0).
        """
        if not any(track.id == track_id for track in self._tracks):
            return

        previous = self._position()
        cursor = self._cursor
        current_removed = cursor is not None and self._tracks[cursor].id == track_id
        if cursor is not None:
            removed_before = sum(1 for track in self._tracks[:cursor] if track.id == track_id)
            cursor -= removed_before

        self._tracks = [track for track in self._tracks if track.id != track_id]

        if not self._tracks:
            self._cursor = None
        elif cursor is not None:
            self._cursor = cursor if cursor < len(self._tracks) else 0
        self._notify_if_moved(previous)

        if current_removed:
            logger.debug(f"Removed current track {track_id}, cursor now {self._cursor}")

    def clear(self) -> None:
        self.set_queue([])

    def jump_to(self, index: int) -> None:
        """Out-of-range indexes are ignored; they come from stale UI state."""
        if not 0 <= index < len(self._tracks):
            logger.debug(f"Ignoring jump to {index}, queue has {len(self._tracks)} tracks")
            return

        previous = self._position()
        self._cursor = index
        self._notify_if_moved(previous)

    def advance(self) -> Optional[int]:
        """
        Move to what plays next and return the new cursor.

        repeat-one keeps the cursor; shuffle picks another index at random;
        repeat-all wraps; otherwise running past the last track ends the queue
        (cursor None). Advancing an ended or empty queue does nothing.
        """
        if self._cursor is None:
            return None

        previous = self._position()
        length = len(self._tracks)

        if self.repeat_mode == RepeatMode.ONE:
            return self._cursor

        if self.shuffle:
            self._cursor = self._random_other_index()
        elif self.repeat_mode == RepeatMode.ALL:
            self._cursor = (self._cursor + 1) % length
        elif self._cursor + 1 < length:
            self._cursor += 1
        else:
            self._cursor = None

        self._notify_if_moved(previous)
        return self._cursor

    def retreat(self) -> Optional[int]:
        """Mirror of advance(), except the first track with repeat off stays put."""
        if self._cursor is None:
            return None

        previous = self._position()
        length = len(self._tracks)

        if self.repeat_mode == RepeatMode.ONE:
            return self._cursor

        if self.shuffle:
            self._cursor = self._random_other_index()
        elif self.repeat_mode == RepeatMode.ALL:
            self._cursor = (self._cursor - 1) % length
        elif self._cursor > 0:
            self._cursor -= 1

        self._notify_if_moved(previous)
        return self._cursor

    def toggle_shuffle(self) -> bool:
        self.shuffle = not self.shuffle
        return self.shuffle

    def cycle_repeat_mode(self) -> RepeatMode:
        self.repeat_mode = self.repeat_mode.cycle()
        return self.repeat_mode

    # ==================== PRIVATE METHODS ====================

    def _random_other_index(self) -> int:
        """Uniform over every index but the current one; a single track replays."""
        length = len(self._tracks)
        if length <= 1:
            return self._cursor
        pick = self._rng.randrange(length - 1)
        return pick if pick < self._cursor else pick + 1

    def _position(self) -> tuple[Optional[int], Optional[Track]]:
        return self._cursor, self.current_track

    def _notify_if_moved(
        self,
        previous: tuple[Optional[int], Optional[Track]],
        autostart: bool = False
    ) -> None:
        previous_cursor, previous_track = previous
        if self._cursor == previous_cursor and self.current_track is previous_track:
            return
        if self._on_current_changed is not None:
            self._on_current_changed(autostart)
