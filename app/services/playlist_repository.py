from typing import Iterable, NoReturn, Optional

from postgrest.exceptions import APIError

from app.config import get_settings
from app.core.exceptions import (
    NotAuthenticatedError,
    PlaylistAccessDeniedError,
    PlaylistNotFoundError,
    PlaylistStoreError,
    PlaylistValidationError,
)
from app.core.logging import get_logger
from app.models import Playlist, PlaylistTrackRow, Track
from app.services.supabase_service import SupabaseService

logger = get_logger("PlaylistRepository")

# Postgres "insufficient_privilege", raised when a row-level policy refuses a write
ACCESS_DENIED_CODE = "42501"
ALLOWED_COVER_TYPES = ["image/jpeg", "image/png", "image/webp"]


def validate_playlist_name(name: str | None) -> str:
    if name is None or not name.strip():
        raise PlaylistValidationError("empty_name", "Please enter a playlist name")
    return name.strip()


class PlaylistRepository:
    """
    Playlists and save relations of one user, cached in memory.

    Writes are two-phase: the cache is changed tentatively, the store is
    called, and the cache goes back to its previous value if the store
    refuses. Deletes and creates wait for the store before touching the
    cache. refresh_playlists() is the only point where the cache is
    re-synchronised with the store.
    """

    def __init__(self, store: SupabaseService, user_id: Optional[str] = None):
        self.store = store
        self.user_id = user_id
        self._playlists: dict[str, Playlist] = {}
        self._saved_ids: set[str] = set()

    # ==================== CACHE ====================

    @property
    def playlists(self) -> list[Playlist]:
        return list(self._playlists.values())

    @property
    def saved_ids(self) -> set[str]:
        return set(self._saved_ids)

    def is_saved(self, playlist_id: str) -> bool:
        return playlist_id in self._saved_ids

    def cached(self, playlist_id: str) -> Optional[Playlist]:
        return self._playlists.get(playlist_id)

    def owned_playlists(self) -> list[Playlist]:
        return [p for p in self._playlists.values() if p.owned_by(self.user_id)]

    def saved_playlists(self) -> list[Playlist]:
        return [p for pid, p in self._playlists.items() if pid in self._saved_ids]

    def authenticate(self, access_token: Optional[str]) -> None:
        self.store.authenticate(access_token)

    # ==================== READ ====================

    async def refresh_playlists(self) -> list[Playlist]:
        """Re-fetch owned, public and saved playlists with their tracks."""
        try:
            rows: dict[str, dict] = {}
            saved_ids: list[str] = []

            if self.user_id:
                owned = await self.store.get_playlists_by_owner(self.user_id)
                rows.update((row["id"], row) for row in owned.data or [])
                saved_ids = await self.store.get_saved_playlist_ids(self.user_id)

            public = await self.store.get_public_playlists()
            rows.update((row["id"], row) for row in public.data or [] if row["id"] not in rows)

            missing = [pid for pid in saved_ids if pid not in rows]
            if missing:
                extra = await self.store.get_playlists_by_ids(missing)
                rows.update((row["id"], row) for row in extra.data or [])

            track_rows = []
            if rows:
                tracks = await self.store.get_playlist_tracks(list(rows))
                track_rows = tracks.data or []
        except Exception as e:
            logger.error(f"Failed to refresh playlists for user {self.user_id}: {e}", exc_info=True)
            raise PlaylistStoreError("refresh_playlists", str(e)) from e

        self._playlists = self._build_playlists(rows.values(), track_rows)
        # Saved playlists that no longer exist (or went private) drop out
        self._saved_ids = {pid for pid in saved_ids if pid in self._playlists}
        logger.debug(f"Refreshed {len(self._playlists)} playlists, {len(self._saved_ids)} saved")
        return self.playlists

    async def refresh_quietly(self) -> None:
        """Background refresh after a write; failures only get logged"""
        try:
            await self.refresh_playlists()
        except PlaylistStoreError as e:
            logger.warning(f"Background playlist refresh failed: {e}")

    async def get_playlist(self, playlist_id: str) -> Playlist:
        """Cached playlist, or fetched from the store and cached."""
        playlist = self._playlists.get(playlist_id)
        if playlist is not None:
            return playlist

        try:
            result = await self.store.get_playlist_by_id(playlist_id)
            if not result.data:
                raise PlaylistNotFoundError(playlist_id)
            tracks = await self.store.get_playlist_tracks([playlist_id])
        except PlaylistNotFoundError:
            raise
        except Exception as e:
            logger.error(f"Failed to load playlist {playlist_id}: {e}", exc_info=True)
            raise PlaylistStoreError("get_playlist", str(e)) from e

        playlist = self._build_playlists(result.data, tracks.data or [])[playlist_id]
        self._playlists[playlist_id] = playlist
        return playlist

    # ==================== PLAYLIST WRITES ====================

    async def create_playlist(
        self,
        name: str,
        description: str | None = "",
        initial_tracks: Iterable[Track] = (),
        is_public: bool = False
    ) -> str:
        """Persist a new playlist owned by the current user and return its id."""
        name = validate_playlist_name(name)
        user_id = self._require_user()
        tracks = self._unique_tracks(initial_tracks)

        try:
            result = await self.store.create_playlist(
                user_id=user_id,
                name=name,
                description=description or None,
                is_public=is_public
            )
            row = result.data[0]
        except Exception as e:
            self._raise_store_error("create_playlist", None, e)

        playlist_id = row["id"]
        if tracks:
            rows = [
                PlaylistTrackRow.from_track(playlist_id, track, position).model_dump(exclude_none=True, mode="json")
                for position, track in enumerate(tracks)
            ]
            try:
                await self.store.add_playlist_tracks(rows)
            except Exception as e:
                logger.error(f"Failed to add initial tracks to playlist {playlist_id}, removing it", exc_info=True)
                await self._discard_created_playlist(playlist_id)
                self._raise_store_error("create_playlist", playlist_id, e)

        self._playlists[playlist_id] = Playlist.model_validate({**row, "tracks": tracks})
        logger.info(f"Created playlist '{name}' ({playlist_id}) with {len(tracks)} tracks")
        return playlist_id

    async def update_playlist(
        self,
        playlist_id: str,
        name: str | None = None,
        description: str | None = None,
        is_public: bool | None = None,
        cover_image_url: str | None = None
    ) -> Playlist:
        """Rename, describe, change visibility or cover. Owner only, enforced by the store."""
        changes = {
            "description": description,
            "is_public": is_public,
            "cover_image_url": cover_image_url,
        }
        if name is not None:
            changes["name"] = validate_playlist_name(name)
        changes = {k: v for k, v in changes.items() if v is not None}
        if not changes:
            raise PlaylistValidationError("no_changes", "No playlist fields to update")

        self._require_user()
        previous = await self.get_playlist(playlist_id)
        self._playlists[playlist_id] = previous.model_copy(update=changes)

        try:
            result = await self.store.update_playlist(playlist_id, **changes)
            if not result.data:
                raise PlaylistAccessDeniedError("update_playlist", playlist_id)
        except Exception as e:
            self._playlists[playlist_id] = previous
            self._raise_store_error("update_playlist", playlist_id, e)

        return self._playlists[playlist_id]

    async def delete_playlist(self, playlist_id: str) -> None:
        """Delete only after the store confirms; a refused delete is reported."""
        self._require_user()

        try:
            result = await self.store.delete_playlist(playlist_id)
            if not result.data:
                raise PlaylistAccessDeniedError("delete_playlist", playlist_id)
        except Exception as e:
            self._raise_store_error("delete_playlist", playlist_id, e)

        self._playlists.pop(playlist_id, None)
        self._saved_ids.discard(playlist_id)
        logger.info(f"Deleted playlist {playlist_id}")

    async def upload_cover(
        self,
        playlist_id: str,
        file_data: bytes,
        file_name: str,
        content_type: str | None
    ) -> Playlist:
        """Validate and upload a cover image, then point the playlist at it."""
        if content_type not in ALLOWED_COVER_TYPES:
            raise PlaylistValidationError(
                "invalid_cover_type",
                f"Invalid file type. Allowed types: {', '.join(ALLOWED_COVER_TYPES)}"
            )
        max_size = get_settings().max_cover_bytes
        if len(file_data) > max_size:
            raise PlaylistValidationError(
                "cover_too_large",
                f"File too large. Maximum size is {max_size // (1024 * 1024)}MB"
            )
        self._require_user()

        try:
            url = await self.store.upload_playlist_cover(playlist_id, file_data, file_name, content_type)
        except Exception as e:
            self._raise_store_error("upload_cover", playlist_id, e)

        return await self.update_playlist(playlist_id, cover_image_url=url)

    # ==================== SAVE RELATION ====================

    async def save_playlist(self, playlist_id: str) -> None:
        """Idempotent: saving an already saved playlist succeeds without a write."""
        user_id = self._require_user()
        if playlist_id in self._saved_ids:
            return

        self._saved_ids.add(playlist_id)
        try:
            await self.store.save_playlist(user_id, playlist_id)
        except Exception as e:
            self._saved_ids.discard(playlist_id)
            self._raise_store_error("save_playlist", playlist_id, e)

    async def unsave_playlist(self, playlist_id: str) -> None:
        user_id = self._require_user()
        was_saved = playlist_id in self._saved_ids

        self._saved_ids.discard(playlist_id)
        try:
            await self.store.unsave_playlist(user_id, playlist_id)
        except Exception as e:
            if was_saved:
                self._saved_ids.add(playlist_id)
            self._raise_store_error("unsave_playlist", playlist_id, e)

    # ==================== PLAYLIST TRACKS ====================

    async def add_track_to_playlist(self, playlist_id: str, track: Track) -> Playlist:
        """Append at the end. A track already in the playlist is left alone."""
        self._require_user()
        previous = await self.get_playlist(playlist_id)
        if track.id in previous.track_ids():
            return previous

        self._playlists[playlist_id] = previous.model_copy(update={"tracks": [*previous.tracks, track]})
        try:
            position = await self.store.get_next_track_position(playlist_id)
            row = PlaylistTrackRow.from_track(playlist_id, track, position)
            result = await self.store.add_playlist_tracks([row.model_dump(exclude_none=True, mode="json")])
            if not result.data:
                raise PlaylistAccessDeniedError("add_track_to_playlist", playlist_id)
        except Exception as e:
            self._playlists[playlist_id] = previous
            self._raise_store_error("add_track_to_playlist", playlist_id, e)

        return self._playlists[playlist_id]

    async def remove_track_from_playlist(self, playlist_id: str, track_id: str) -> Playlist:
        """Remove without renumbering the remaining entries."""
        self._require_user()
        previous = await self.get_playlist(playlist_id)
        if track_id not in previous.track_ids():
            return previous

        remaining = [track for track in previous.tracks if track.id != track_id]
        self._playlists[playlist_id] = previous.model_copy(update={"tracks": remaining})
        try:
            result = await self.store.remove_playlist_track(playlist_id, track_id)
            if not result.data:
                raise PlaylistAccessDeniedError("remove_track_from_playlist", playlist_id)
        except Exception as e:
            self._playlists[playlist_id] = previous
            self._raise_store_error("remove_track_from_playlist", playlist_id, e)

        return self._playlists[playlist_id]

    async def reorder_track(self, playlist_id: str, track_id: str, new_index: int) -> Playlist:
        """Move one entry and rewrite the positions of the whole playlist."""
        self._require_user()
        previous = await self.get_playlist(playlist_id)
        ids = previous.track_ids()
        if track_id not in ids:
            raise PlaylistValidationError("unknown_track", f"Track {track_id} is not in playlist {playlist_id}")

        tracks = list(previous.tracks)
        moving = tracks.pop(ids.index(track_id))
        new_index = max(0, min(new_index, len(tracks)))
        tracks.insert(new_index, moving)
        if [t.id for t in tracks] == ids:
            return previous

        self._playlists[playlist_id] = previous.model_copy(update={"tracks": tracks})
        try:
            for position, track in enumerate(tracks):
                result = await self.store.update_playlist_track_position(playlist_id, track.id, position)
                if not result.data:
                    raise PlaylistAccessDeniedError("reorder_track", playlist_id)
        except Exception as e:
            # Positions may be half written; the next refresh shows the store's order
            self._playlists[playlist_id] = previous
            self._raise_store_error("reorder_track", playlist_id, e)

        return self._playlists[playlist_id]

    # ==================== PRIVATE METHODS ====================

    def _require_user(self) -> str:
        if not self.user_id:
            raise NotAuthenticatedError()
        return self.user_id

    @staticmethod
    def _unique_tracks(tracks: Iterable[Track]) -> list[Track]:
        seen = set()
        unique = []
        for track in tracks:
            if track.id not in seen:
                seen.add(track.id)
                unique.append(track)
        return unique

    @staticmethod
    def _build_playlists(rows: Iterable[dict], track_rows: list[dict]) -> dict[str, Playlist]:
        tracks_by_playlist: dict[str, list[Track]] = {}
        for row in sorted(track_rows, key=lambda r: r.get("position", 0)):
            track = PlaylistTrackRow.model_validate(row).to_track()
            tracks_by_playlist.setdefault(row["playlist_id"], []).append(track)

        return {
            row["id"]: Playlist.model_validate({**row, "tracks": tracks_by_playlist.get(row["id"], [])})
            for row in rows
        }

    async def _discard_created_playlist(self, playlist_id: str) -> None:
        try:
            await self.store.delete_playlist(playlist_id)
        except Exception as e:
            logger.error(f"Could not remove half-created playlist {playlist_id}: {e}")

    def _raise_store_error(self, operation: str, playlist_id: Optional[str], error: Exception) -> NoReturn:
        """Log at the adapter boundary and raise the matching store error"""
        if isinstance(error, PlaylistStoreError):
            logger.warning(f"{operation} refused for user {self.user_id}: {error}")
            raise error
        if isinstance(error, APIError) and error.code == ACCESS_DENIED_CODE:
            logger.warning(f"{operation} denied by access policy for user {self.user_id}")
            raise PlaylistAccessDeniedError(operation, playlist_id or "") from error
        logger.error(f"{operation} failed for user {self.user_id}: {error}", exc_info=True)
        raise PlaylistStoreError(operation, str(error)) from error
