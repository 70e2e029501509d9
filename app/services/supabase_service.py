from datetime import datetime, timezone
import uuid

from supabase import create_client, Client
from app.config import get_settings
from app.models import SavedPlaylist

PLAYLISTS_TABLE = "playlists"
PLAYLIST_TRACKS_TABLE = "playlist_tracks"
SAVED_PLAYLISTS_TABLE = "saved_playlists"
COVERS_BUCKET = "covers"


def get_supabase_client() -> Client:
    settings = get_settings()
    return create_client(settings.supabase_url, settings.supabase_key)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SupabaseService:
    """
    Thin wrapper over the Supabase tables and storage bucket behind playlists.

    Calls run as whichever user authenticate() was last given, so the
    database's row-level policies decide what each call may touch.
    """

    def __init__(self, client: Client | None = None):
        self.client = client or get_supabase_client()

    def authenticate(self, access_token: str | None) -> None:
        """Run subsequent table calls with the user's access token"""
        if access_token:
            self.client.postgrest.auth(access_token)

    # ==================== PLAYLIST OPERATIONS ====================

    async def create_playlist(
        self,
        user_id: str,
        name: str,
        description: str | None = None,
        is_public: bool = False,
        cover_image_url: str | None = None
    ):
        data = {
            "user_id": user_id,
            "name": name,
            "description": description,
            "is_public": is_public,
            "cover_image_url": cover_image_url
        }
        return self.client.table(PLAYLISTS_TABLE).insert(data).execute()

    async def get_playlist_by_id(self, playlist_id: str):
        return self.client.table(PLAYLISTS_TABLE).select("*").eq("id", playlist_id).execute()

    async def get_playlists_by_owner(self, user_id: str):
        return (
            self.client.table(PLAYLISTS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at")
            .execute()
        )

    async def get_public_playlists(self):
        return (
            self.client.table(PLAYLISTS_TABLE)
            .select("*")
            .eq("is_public", True)
            .order("created_at")
            .execute()
        )

    async def get_playlists_by_ids(self, playlist_ids: list[str]):
        return self.client.table(PLAYLISTS_TABLE).select("*").in_("id", playlist_ids).execute()

    async def update_playlist(self, playlist_id: str, **kwargs):
        """
        Update playlist fields dynamically.

        Args:
            playlist_id: Playlist ID
            **kwargs: Fields to update (name, description, is_public, cover_image_url)
        """
        allowed_fields = {"name", "description", "is_public", "cover_image_url"}
        data = {k: v for k, v in kwargs.items() if k in allowed_fields}

        if not data:
            raise ValueError("No valid fields provided for update")

        data["updated_at"] = utc_now()
        return self.client.table(PLAYLISTS_TABLE).update(data).eq("id", playlist_id).execute()

    async def delete_playlist(self, playlist_id: str):
        """Returns the deleted rows; empty when the access policy filtered the delete out"""
        return self.client.table(PLAYLISTS_TABLE).delete().eq("id", playlist_id).execute()

    # ==================== PLAYLIST TRACKS ====================

    async def get_playlist_tracks(self, playlist_ids: list[str]):
        """Get the tracks of several playlists, ordered by position"""
        return (
            self.client.table(PLAYLIST_TRACKS_TABLE)
            .select("*")
            .in_("playlist_id", playlist_ids)
            .order("position")
            .execute()
        )

    async def add_playlist_tracks(self, rows: list[dict]):
        return self.client.table(PLAYLIST_TRACKS_TABLE).insert(rows).execute()

    async def remove_playlist_track(self, playlist_id: str, track_id: str):
        return (
            self.client.table(PLAYLIST_TRACKS_TABLE)
            .delete()
            .eq("playlist_id", playlist_id)
            .eq("track_id", track_id)
            .execute()
        )

    async def update_playlist_track_position(self, playlist_id: str, track_id: str, position: int):
        return (
            self.client.table(PLAYLIST_TRACKS_TABLE)
            .update({"position": position})
            .eq("playlist_id", playlist_id)
            .eq("track_id", track_id)
            .execute()
        )

    async def get_next_track_position(self, playlist_id: str) -> int:
        """Get the next position number for appending a track to a playlist"""
        result = (
            self.client.table(PLAYLIST_TRACKS_TABLE)
            .select("position")
            .eq("playlist_id", playlist_id)
            .order("position", desc=True)
            .limit(1)
            .execute()
        )

        if result.data and len(result.data) > 0:
            return result.data[0]["position"] + 1
        return 0

    # ==================== SAVED PLAYLISTS ====================

    async def save_playlist(self, user_id: str, playlist_id: str):
        data = {"user_id": user_id, "playlist_id": playlist_id}
        return self.client.table(SAVED_PLAYLISTS_TABLE).upsert(data, on_conflict="user_id,playlist_id").execute()

    async def unsave_playlist(self, user_id: str, playlist_id: str):
        return (
            self.client.table(SAVED_PLAYLISTS_TABLE)
            .delete()
            .eq("user_id", user_id)
            .eq("playlist_id", playlist_id)
            .execute()
        )

    async def get_saved_playlist_ids(self, user_id: str) -> list[str]:
        result = self.client.table(SAVED_PLAYLISTS_TABLE).select("*").eq("user_id", user_id).execute()
        return [SavedPlaylist.model_validate(row).playlist_id for row in result.data or []]

    # ==================== STORAGE OPERATIONS ====================

    async def upload_playlist_cover(
        self,
        playlist_id: str,
        file_data: bytes,
        file_name: str,
        content_type: str
    ) -> str:
        """
        Upload a playlist cover image to Supabase Storage and return its public URL.

        Args:
            playlist_id: Playlist the cover belongs to
            file_data: Image file bytes
            file_name: Original name of the file, used for its extension
            content_type: MIME type of the file

        Returns:
            Public URL of the uploaded image
        """
        extension = file_name.rsplit(".", 1)[-1] if "." in file_name else "jpg"
        path = f"playlist-covers/{playlist_id}-{uuid.uuid4().hex[:8]}.{extension}"

        self.client.storage.from_(COVERS_BUCKET).upload(
            path=path,
            file=file_data,
            file_options={"content-type": content_type, "upsert": "true"}
        )

        return self.client.storage.from_(COVERS_BUCKET).get_public_url(path)
