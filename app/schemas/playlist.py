"""
Playlist request and response schemas for API endpoints.
"""
from pydantic import BaseModel, Field
from datetime import datetime

from app.models import Track
from .playback import TrackResponse


# ==================== REQUEST SCHEMAS ====================

class CreatePlaylistRequest(BaseModel):
    """Request schema for creating a playlist; an empty name is rejected by the repository"""
    name: str = Field(..., max_length=255)
    description: str | None = None
    tracks: list[Track] = Field(default_factory=list)
    is_public: bool = False


class UpdatePlaylistRequest(BaseModel):
    """Request schema for updating playlist details"""
    name: str | None = Field(None, max_length=255)
    description: str | None = None
    is_public: bool | None = None
    cover_image_url: str | None = None


class AddPlaylistTrackRequest(BaseModel):
    """Request schema for appending a track to a playlist"""
    track: Track


class MoveTrackRequest(BaseModel):
    """Request schema for moving a track within a playlist"""
    index: int = Field(..., ge=0)


# ==================== RESPONSE SCHEMAS ====================

class PlaylistResponse(BaseModel):
    """Response schema for a playlist seen by the current user"""
    id: str
    name: str
    description: str | None = None
    cover_image_url: str | None = None
    user_id: str | None = None
    is_public: bool
    tracks: list[TrackResponse]
    track_count: int
    is_owner: bool
    is_saved: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PlaylistListResponse(BaseModel):
    """Response schema for the refreshed playlist library"""
    playlists: list[PlaylistResponse]
    saved_ids: list[str]


class CreatePlaylistResponse(BaseModel):
    """Response schema for playlist creation"""
    id: str
    playlist: PlaylistResponse


class MessageResponse(BaseModel):
    message: str


class SaveStatusResponse(BaseModel):
    playlist_id: str
    is_saved: bool
