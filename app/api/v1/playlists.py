from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, UploadFile, status

from app.api.v1.errors import to_http_exception
from app.core.exceptions import PlayerError
from app.core.logging import get_logger
from app.dependencies import get_player_session, get_websocket_manager
from app.models import Playlist
from app.schemas.playlist import (
    AddPlaylistTrackRequest,
    CreatePlaylistRequest,
    CreatePlaylistResponse,
    MessageResponse,
    MoveTrackRequest,
    PlaylistListResponse,
    PlaylistResponse,
    SaveStatusResponse,
    UpdatePlaylistRequest,
)
from app.services.player_session import PlayerSession
from app.services.websocket_manager import WebSocketManager
from app.utils.formatters import format_playlist

logger = get_logger("api.playlists")
router = APIRouter()


def _format(session: PlayerSession, playlist: Playlist) -> dict:
    return format_playlist(playlist, session.user_id, session.repository.saved_ids)


# ==================== LIBRARY ====================

@router.get("", response_model=PlaylistListResponse)
async def list_playlists(session: PlayerSession = Depends(get_player_session)):
    """
    Re-read the user's playlists, public playlists and saved playlists from the store.
    Anonymous listeners get the public playlists only.
    """
    try:
        playlists = await session.repository.refresh_playlists()
    except PlayerError as e:
        raise to_http_exception(e)

    return {
        "playlists": [_format(session, playlist) for playlist in playlists],
        "saved_ids": sorted(session.repository.saved_ids),
    }


@router.get("/{playlist_id}", response_model=PlaylistResponse)
async def get_playlist(
    playlist_id: str,
    session: PlayerSession = Depends(get_player_session)
):
    try:
        playlist = await session.repository.get_playlist(playlist_id)
    except PlayerError as e:
        raise to_http_exception(e)
    return _format(session, playlist)


# ==================== PLAYLIST WRITES ====================

@router.post("", response_model=CreatePlaylistResponse, status_code=status.HTTP_201_CREATED)
async def create_playlist(
    request: CreatePlaylistRequest,
    background_tasks: BackgroundTasks,
    session: PlayerSession = Depends(get_player_session)
):
    """Create a playlist owned by the current user, optionally with initial tracks"""
    logger.info(f"Creating playlist '{request.name}' for user {session.user_id}")
    try:
        playlist_id = await session.repository.create_playlist(
            request.name,
            description=request.description,
            initial_tracks=request.tracks,
            is_public=request.is_public
        )
    except PlayerError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to create playlist: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

    background_tasks.add_task(session.repository.refresh_quietly)
    playlist = session.repository.cached(playlist_id)
    return {"id": playlist_id, "playlist": _format(session, playlist)}


@router.patch("/{playlist_id}", response_model=PlaylistResponse)
async def update_playlist(
    playlist_id: str,
    request: UpdatePlaylistRequest,
    session: PlayerSession = Depends(get_player_session)
):
    """Update name, description, visibility or cover URL (owner only)"""
    try:
        playlist = await session.repository.update_playlist(
            playlist_id,
            name=request.name,
            description=request.description,
            is_public=request.is_public,
            cover_image_url=request.cover_image_url
        )
    except PlayerError as e:
        raise to_http_exception(e)
    return _format(session, playlist)


@router.delete("/{playlist_id}", response_model=MessageResponse)
async def delete_playlist(
    playlist_id: str,
    background_tasks: BackgroundTasks,
    session: PlayerSession = Depends(get_player_session),
    websockets: WebSocketManager = Depends(get_websocket_manager)
):
    """
    Delete a playlist (owner only).
    The queue is cleared when the deleted playlist is the one playing.
    """
    try:
        await session.delete_playlist(playlist_id)
    except PlayerError as e:
        raise to_http_exception(e)

    session.publish_state()
    await websockets.flush(session)
    background_tasks.add_task(session.repository.refresh_quietly)
    return {"message": "Playlist deleted"}


@router.post("/{playlist_id}/cover", response_model=PlaylistResponse)
async def upload_playlist_cover(
    playlist_id: str,
    file: UploadFile = File(...),
    session: PlayerSession = Depends(get_player_session)
):
    """
    Upload a cover image (JPEG, PNG or WebP) and set it on the playlist.
    """
    file_data = await file.read()
    logger.info(f"Uploading cover for playlist {playlist_id}: {file.filename} ({len(file_data)} bytes)")
    try:
        playlist = await session.repository.upload_cover(
            playlist_id,
            file_data,
            file.filename or "cover",
            file.content_type
        )
    except PlayerError as e:
        raise to_http_exception(e)
    return _format(session, playlist)


# ==================== SAVE RELATION ====================

@router.post("/{playlist_id}/save", response_model=SaveStatusResponse)
async def save_playlist(
    playlist_id: str,
    session: PlayerSession = Depends(get_player_session)
):
    try:
        await session.repository.save_playlist(playlist_id)
    except PlayerError as e:
        raise to_http_exception(e)
    return {"playlist_id": playlist_id, "is_saved": session.repository.is_saved(playlist_id)}


@router.delete("/{playlist_id}/save", response_model=SaveStatusResponse)
async def unsave_playlist(
    playlist_id: str,
    session: PlayerSession = Depends(get_player_session)
):
    try:
        await session.repository.unsave_playlist(playlist_id)
    except PlayerError as e:
        raise to_http_exception(e)
    return {"playlist_id": playlist_id, "is_saved": session.repository.is_saved(playlist_id)}


# ==================== PLAYLIST TRACKS ====================

@router.post("/{playlist_id}/tracks", response_model=PlaylistResponse)
async def add_track(
    playlist_id: str,
    request: AddPlaylistTrackRequest,
    session: PlayerSession = Depends(get_player_session)
):
    """Append a track; adding a track that is already there changes nothing"""
    try:
        playlist = await session.repository.add_track_to_playlist(playlist_id, request.track)
    except PlayerError as e:
        raise to_http_exception(e)
    return _format(session, playlist)


@router.delete("/{playlist_id}/tracks/{track_id}", response_model=PlaylistResponse)
async def remove_track(
    playlist_id: str,
    track_id: str,
    session: PlayerSession = Depends(get_player_session),
    websockets: WebSocketManager = Depends(get_websocket_manager)
):
    try:
        playlist = await session.remove_track_from_playlist(playlist_id, track_id)
    except PlayerError as e:
        raise to_http_exception(e)

    session.publish_state()
    await websockets.flush(session)
    return _format(session, playlist)


@router.post("/{playlist_id}/tracks/{track_id}/move", response_model=PlaylistResponse)
async def move_track(
    playlist_id: str,
    track_id: str,
    request: MoveTrackRequest,
    session: PlayerSession = Depends(get_player_session)
):
    try:
        playlist = await session.repository.reorder_track(playlist_id, track_id, request.index)
    except PlayerError as e:
        raise to_http_exception(e)
    return _format(session, playlist)
