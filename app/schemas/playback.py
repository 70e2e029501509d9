"""
Player request and response schemas for API endpoints.
"""
from pydantic import BaseModel, Field

from app.models import RepeatMode, Track


# ==================== REQUEST SCHEMAS ====================

class SetQueueRequest(BaseModel):
    """Request schema for replacing the queue"""
    tracks: list[Track] = Field(default_factory=list)
    start_index: int = 0


class AddTracksRequest(BaseModel):
    """Request schema for appending tracks to the queue"""
    tracks: list[Track] = Field(..., min_length=1)


class PlayTrackRequest(BaseModel):
    """Request schema for playing one track on its own"""
    track: Track


class SeekRequest(BaseModel):
    """Out-of-range positions are clamped by the player"""
    position: float


class VolumeRequest(BaseModel):
    """Out-of-range levels are clamped to 0..1 by the player"""
    volume: float


# ==================== RESPONSE SCHEMAS ====================

class TrackResponse(Track):
    """Track with a display duration"""
    duration_display: str


class PlaybackStateResponse(BaseModel):
    """Response schema for player state"""
    current_track: TrackResponse | None = None
    is_playing: bool
    position: float
    duration: float
    position_display: str
    duration_display: str
    volume: float
    muted: bool
    cursor: int | None = None
    queue_length: int
    shuffle: bool
    repeat_mode: RepeatMode
    current_playlist_id: str | None = None


class QueueResponse(BaseModel):
    """Response schema for the queue listing"""
    tracks: list[TrackResponse]
    cursor: int | None = None
    ended: bool


class EventResponse(BaseModel):
    """accepted is False when the event belonged to an earlier load"""
    accepted: bool
    state: PlaybackStateResponse
