from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException

from app.api.v1.errors import to_http_exception
from app.core.exceptions import PlayerError
from app.core.logging import get_logger
from app.dependencies import get_player_session, get_websocket_manager
from app.models import PlaybackEvent
from app.schemas.playback import (
    AddTracksRequest,
    EventResponse,
    PlaybackStateResponse,
    PlayTrackRequest,
    QueueResponse,
    SeekRequest,
    SetQueueRequest,
    VolumeRequest,
)
from app.services.player_session import PlayerSession
from app.services.websocket_manager import WebSocketManager
from app.utils.formatters import format_playback_state, format_track

logger = get_logger("api.player")
router = APIRouter()


async def _apply(
    session: PlayerSession,
    websockets: WebSocketManager,
    action: str,
    data: Optional[Dict[str, Any]] = None
) -> dict:
    """Run one intent, push the outcome to the tab and return the new state"""
    try:
        state = session.dispatch(action, data)
    except PlayerError as e:
        raise to_http_exception(e)
    except Exception as e:
        session.logger.error(f"Intent {action} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

    await websockets.flush(session)
    return format_playback_state(state)


# ==================== STATE ====================

@router.get("/{session_id}/state", response_model=PlaybackStateResponse)
async def get_player_state(session: PlayerSession = Depends(get_player_session)):
    """
    Current player state of a session.
    Creates the session on first use.
    """
    return format_playback_state(session.state())


@router.get("/{session_id}/queue", response_model=QueueResponse)
async def get_queue(session: PlayerSession = Depends(get_player_session)):
    return {
        "tracks": [format_track(track) for track in session.queue.tracks],
        "cursor": session.queue.cursor,
        "ended": session.queue.is_ended,
    }


# ==================== QUEUE ====================

@router.post("/{session_id}/queue", response_model=PlaybackStateResponse)
async def set_queue(
    request: SetQueueRequest,
    session: PlayerSession = Depends(get_player_session),
    websockets: WebSocketManager = Depends(get_websocket_manager)
):
    """
    Replace the queue. Playback does not start on its own; call /play.
    """
    logger.debug(f"Setting queue of {len(request.tracks)} tracks for session {session.session_id}")
    return await _apply(session, websockets, "set_queue", request.model_dump(mode="json"))


@router.post("/{session_id}/queue/add", response_model=PlaybackStateResponse)
async def add_to_queue(
    request: AddTracksRequest,
    session: PlayerSession = Depends(get_player_session),
    websockets: WebSocketManager = Depends(get_websocket_manager)
):
    """Append tracks. On an empty queue the first one starts playing."""
    return await _apply(session, websockets, "add_tracks", request.model_dump(mode="json"))


@router.delete("/{session_id}/queue/{track_id}", response_model=PlaybackStateResponse)
async def remove_from_queue(
    track_id: str,
    session: PlayerSession = Depends(get_player_session),
    websockets: WebSocketManager = Depends(get_websocket_manager)
):
    return await _apply(session, websockets, "remove_from_queue", {"track_id": track_id})


@router.delete("/{session_id}/queue", response_model=PlaybackStateResponse)
async def clear_queue(
    session: PlayerSession = Depends(get_player_session),
    websockets: WebSocketManager = Depends(get_websocket_manager)
):
    return await _apply(session, websockets, "clear_queue")


@router.post("/{session_id}/jump/{index}", response_model=PlaybackStateResponse)
async def jump_to(
    index: int,
    session: PlayerSession = Depends(get_player_session),
    websockets: WebSocketManager = Depends(get_websocket_manager)
):
    """Make the track at index current. Out-of-range indexes change nothing."""
    return await _apply(session, websockets, "jump_to", {"index": index})


# ==================== TRANSPORT ====================

@router.post("/{session_id}/play", response_model=PlaybackStateResponse)
async def play(
    session: PlayerSession = Depends(get_player_session),
    websockets: WebSocketManager = Depends(get_websocket_manager)
):
    return await _apply(session, websockets, "play")


@router.post("/{session_id}/pause", response_model=PlaybackStateResponse)
async def pause(
    session: PlayerSession = Depends(get_player_session),
    websockets: WebSocketManager = Depends(get_websocket_manager)
):
    return await _apply(session, websockets, "pause")


@router.post("/{session_id}/toggle", response_model=PlaybackStateResponse)
async def toggle_play(
    session: PlayerSession = Depends(get_player_session),
    websockets: WebSocketManager = Depends(get_websocket_manager)
):
    return await _apply(session, websockets, "toggle_play")


@router.post("/{session_id}/next", response_model=PlaybackStateResponse)
async def next_track(
    session: PlayerSession = Depends(get_player_session),
    websockets: WebSocketManager = Depends(get_websocket_manager)
):
    return await _apply(session, websockets, "next")


@router.post("/{session_id}/previous", response_model=PlaybackStateResponse)
async def previous_track(
    session: PlayerSession = Depends(get_player_session),
    websockets: WebSocketManager = Depends(get_websocket_manager)
):
    """
    Restart the current track when more than a few seconds in,
    otherwise go back one track.
    """
    return await _apply(session, websockets, "previous")


@router.post("/{session_id}/seek", response_model=PlaybackStateResponse)
async def seek(
    request: SeekRequest,
    session: PlayerSession = Depends(get_player_session),
    websockets: WebSocketManager = Depends(get_websocket_manager)
):
    return await _apply(session, websockets, "seek", {"position": request.position})


@router.post("/{session_id}/volume", response_model=PlaybackStateResponse)
async def set_volume(
    request: VolumeRequest,
    session: PlayerSession = Depends(get_player_session),
    websockets: WebSocketManager = Depends(get_websocket_manager)
):
    return await _apply(session, websockets, "set_volume", {"volume": request.volume})


@router.post("/{session_id}/mute", response_model=PlaybackStateResponse)
async def toggle_mute(
    session: PlayerSession = Depends(get_player_session),
    websockets: WebSocketManager = Depends(get_websocket_manager)
):
    return await _apply(session, websockets, "toggle_mute")


@router.post("/{session_id}/shuffle", response_model=PlaybackStateResponse)
async def toggle_shuffle(
    session: PlayerSession = Depends(get_player_session),
    websockets: WebSocketManager = Depends(get_websocket_manager)
):
    return await _apply(session, websockets, "toggle_shuffle")


@router.post("/{session_id}/repeat", response_model=PlaybackStateResponse)
async def cycle_repeat(
    session: PlayerSession = Depends(get_player_session),
    websockets: WebSocketManager = Depends(get_websocket_manager)
):
    """Cycle repeat mode: off -> all -> one -> off"""
    return await _apply(session, websockets, "cycle_repeat")


@router.post("/{session_id}/play-track", response_model=PlaybackStateResponse)
async def play_track(
    request: PlayTrackRequest,
    session: PlayerSession = Depends(get_player_session),
    websockets: WebSocketManager = Depends(get_websocket_manager)
):
    """Replace the queue with a single track and play it"""
    return await _apply(session, websockets, "play_track", request.model_dump(mode="json"))


@router.post("/{session_id}/play-playlist/{playlist_id}", response_model=PlaybackStateResponse)
async def play_playlist(
    playlist_id: str,
    session: PlayerSession = Depends(get_player_session),
    websockets: WebSocketManager = Depends(get_websocket_manager)
):
    """Queue every track of a playlist and start from the first"""
    session.logger.info(f"Play playlist {playlist_id}")
    try:
        session.touch()
        await session.play_playlist(playlist_id)
        state = session.publish_state()
    except PlayerError as e:
        raise to_http_exception(e)
    except Exception as e:
        session.logger.error(f"Failed to play playlist {playlist_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

    await websockets.flush(session)
    return format_playback_state(state)


# ==================== HANDLE EVENTS ====================

@router.post("/{session_id}/events", response_model=EventResponse)
async def report_event(
    event: PlaybackEvent,
    session: PlayerSession = Depends(get_player_session),
    websockets: WebSocketManager = Depends(get_websocket_manager)
):
    """
    Report an audio element event over HTTP (for tabs without an open socket).

    Events carrying an earlier load_id are discarded and reported as not accepted.
    """
    session.touch()
    accepted = session.handle_event(event)
    state = session.publish_state()
    await websockets.flush(session)
    return {"accepted": accepted, "state": format_playback_state(state)}
