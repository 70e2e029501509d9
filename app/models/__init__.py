"""
Domain models for the player session server.
Track, playlist and save-relation shapes map to the Supabase schema;
playback models are session-local.
"""

from .track import Track
from .playlist import (
    Playlist,
    PlaylistTrackRow,
    SavedPlaylist,
)
from .playback import (
    RepeatMode,
    PlaybackState,
    PlaybackEvent,
    PlaybackEventKind,
)

__all__ = [
    # Track models
    "Track",
    # Playlist models
    "Playlist",
    "PlaylistTrackRow",
    "SavedPlaylist",
    # Playback models
    "RepeatMode",
    "PlaybackState",
    "PlaybackEvent",
    "PlaybackEventKind",
]
