"""
API request and response schemas (DTOs).
Separate from domain models - these are for API endpoints.
"""

from .auth import CurrentUser
from .playback import (
    SetQueueRequest,
    AddTracksRequest,
    PlayTrackRequest,
    SeekRequest,
    VolumeRequest,
    TrackResponse,
    PlaybackStateResponse,
    QueueResponse,
    EventResponse,
)
from .playlist import (
    CreatePlaylistRequest,
    UpdatePlaylistRequest,
    AddPlaylistTrackRequest,
    MoveTrackRequest,
    PlaylistResponse,
    PlaylistListResponse,
    CreatePlaylistResponse,
    MessageResponse,
    SaveStatusResponse,
)
from .websocket import (
    IntentMessage,
    HandleEventMessage,
)

__all__ = [
    # Auth schemas
    "CurrentUser",
    # Player schemas
    "SetQueueRequest",
    "AddTracksRequest",
    "PlayTrackRequest",
    "SeekRequest",
    "VolumeRequest",
    "TrackResponse",
    "PlaybackStateResponse",
    "QueueResponse",
    "EventResponse",
    # Playlist schemas
    "CreatePlaylistRequest",
    "UpdatePlaylistRequest",
    "AddPlaylistTrackRequest",
    "MoveTrackRequest",
    "PlaylistResponse",
    "PlaylistListResponse",
    "CreatePlaylistResponse",
    "MessageResponse",
    "SaveStatusResponse",
    # WebSocket schemas
    "IntentMessage",
    "HandleEventMessage",
]
