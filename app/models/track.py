from pydantic import BaseModel, Field


class Track(BaseModel):
    """Catalog track as loaded into a queue or playlist. Never mutated once queued."""
    id: str = Field(..., min_length=1)
    title: str
    artist: str = ""
    artist_id: str | None = None
    cover_image_url: str = ""
    url: str = Field(..., description="Audio source URL from the catalog store")
    duration: float | None = Field(None, ge=0, description="Seconds")
    play_count: int | None = Field(None, ge=0)
    release_id: str | None = None

    class Config:
        frozen = True

    @property
    def has_source(self) -> bool:
        return bool(self.url.strip())
