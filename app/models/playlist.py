from pydantic import BaseModel, Field
from datetime import datetime

from .track import Track


class Playlist(BaseModel):
    """Playlist with its ordered tracks, as cached by the repository"""
    id: str
    name: str = Field(..., min_length=1)
    description: str | None = None
    cover_image_url: str | None = None
    user_id: str | None = None
    is_public: bool = False
    tracks: list[Track] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def owned_by(self, user_id: str | None) -> bool:
        return user_id is not None and self.user_id == user_id

    def track_ids(self) -> list[str]:
        return [track.id for track in self.tracks]


class PlaylistTrackRow(BaseModel):
    """One row of the playlist_tracks table"""
    playlist_id: str
    track_id: str
    track_title: str
    artist_name: str | None = None
    artist_id: str | None = None
    cover_image_url: str | None = None
    url: str
    duration: float | None = None
    position: int = Field(..., ge=0)
    added_at: datetime | None = None

    class Config:
        from_attributes = True

    @classmethod
    def from_track(cls, playlist_id: str, track: Track, position: int) -> "PlaylistTrackRow":
        return cls(
            playlist_id=playlist_id,
            track_id=track.id,
            track_title=track.title,
            artist_name=track.artist or None,
            artist_id=track.artist_id,
            cover_image_url=track.cover_image_url or None,
            url=track.url,
            duration=track.duration,
            position=position,
        )

    def to_track(self) -> Track:
        return Track(
            id=self.track_id,
            title=self.track_title,
            artist=self.artist_name or "",
            artist_id=self.artist_id,
            cover_image_url=self.cover_image_url or "",
            url=self.url,
            duration=self.duration,
        )


class SavedPlaylist(BaseModel):
    """Save relation: a user keeps someone else's playlist in their library"""
    user_id: str
    playlist_id: str
    created_at: datetime | None = None

    class Config:
        from_attributes = True
