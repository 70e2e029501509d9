from enum import Enum
from typing import Literal
from pydantic import BaseModel, Field

from .track import Track


class RepeatMode(str, Enum):
    OFF = "off"
    ALL = "all"
    ONE = "one"

    def cycle(self) -> "RepeatMode":
        """off -> all -> one -> off"""
        order = [RepeatMode.OFF, RepeatMode.ALL, RepeatMode.ONE]
        return order[(order.index(self) + 1) % len(order)]


class PlaybackState(BaseModel):
    """Snapshot of a player session, published to the UI after every intent"""
    current_track: Track | None = None
    is_playing: bool = False
    position: float = Field(0.0, ge=0, description="Seconds into the current track")
    duration: float = Field(0.0, ge=0, description="Seconds, 0 when not yet known")
    volume: float = Field(0.7, ge=0, le=1)
    muted: bool = False
    cursor: int | None = None
    queue_length: int = 0
    shuffle: bool = False
    repeat_mode: RepeatMode = RepeatMode.OFF
    current_playlist_id: str | None = None


PlaybackEventKind = Literal["loaded", "ended", "error", "time_update", "duration_change"]


class PlaybackEvent(BaseModel):
    """
    Notification coming back from the playback handle.

    load_id identifies the load command the event answers; events for a load
    that has since been superseded are discarded by the transport.
    """
    kind: PlaybackEventKind
    load_id: int | None = None
    position: float | None = Field(None, ge=0)
    duration: float | None = Field(None, ge=0)
    message: str | None = None
