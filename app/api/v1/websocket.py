import json
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from app.core.exceptions import PlayerError, SessionOwnershipError
from app.core.logging import get_logger
from app.dependencies import (
    get_registry,
    get_store_factory,
    get_websocket_manager,
    open_player_session,
    resolve_user,
)
from app.schemas.websocket import HandleEventMessage, IntentMessage
from app.services.player_session import PlayerSession, SessionRegistry
from app.services.supabase_service import SupabaseService
from app.services.websocket_manager import WebSocketManager

logger = get_logger("api.websocket")
router = APIRouter()


@router.websocket("/ws/player/{session_id}")
async def player_websocket(
    websocket: WebSocket,
    session_id: str,
    token: Optional[str] = Query(None),
    registry: SessionRegistry = Depends(get_registry),
    store_factory: Callable[[], SupabaseService] = Depends(get_store_factory),
    websockets: WebSocketManager = Depends(get_websocket_manager)
):
    """
    WebSocket endpoint of a player tab.

    The tab receives:
    - player_state snapshots after every change
    - handle_command messages for its audio element (load/play/pause/seek/set_volume)
    - notifications (e.g. a track that could not be played)

    The tab sends:
    - {"type": "intent", "action": ..., "data": {...}}
    - {"type": "handle_event", "data": {"kind": ..., "load_id": ...}}
    - "ping"

    Args:
        websocket: WebSocket connection
        session_id: Player session id chosen by the tab
        token: Optional Supabase access token (anonymous without one)
    """
    user = resolve_user(token)
    if user is None:
        logger.warning(f"WebSocket connection rejected for session {session_id}: invalid token")
        await websocket.close(code=1008, reason="Invalid or expired token")
        return

    try:
        session = open_player_session(session_id, user, registry, store_factory)
    except SessionOwnershipError as e:
        await websocket.close(code=1008, reason=str(e))
        return

    await websockets.connect(websocket, session_id)
    session.logger.info(f"Tab connected for {user.id or 'anonymous'} - {websockets.get_connection_count()} total")

    try:
        await websockets.send_personal_message(
            websocket,
            {
                "type": "connected",
                "data": {
                    "session_id": session_id,
                    "user_id": user.id,
                    "message": "Connected to player"
                }
            }
        )
        session.resync()
        await websockets.flush(session)

        while True:
            data = await websocket.receive_text()

            if data == "ping":
                await websockets.send_personal_message(websocket, {"type": "pong", "data": {}})
                continue

            try:
                await _handle_message(session, json.loads(data))
            except (PlayerError, ValidationError, ValueError, KeyError) as e:
                session.logger.warning(f"Rejected message from tab: {e}")
                await websockets.send_personal_message(
                    websocket,
                    {"type": "error", "data": {"message": str(e)}}
                )
            await websockets.flush(session)

    except WebSocketDisconnect:
        session.logger.info("Tab disconnected")

    except Exception as e:
        session.logger.error(f"WebSocket error: {e}", exc_info=True)
        try:
            await websocket.close(code=1011, reason=str(e))
        except RuntimeError:
            pass

    finally:
        websockets.disconnect(websocket, session_id)
        session.touch()


async def _handle_message(session: PlayerSession, payload: dict) -> None:
    """Apply one client message; everything it produced waits in the session outbox"""
    if not isinstance(payload, dict):
        raise ValueError("Expected a JSON object")

    message_type = payload.get("type")
    if message_type == "handle_event":
        message = HandleEventMessage.model_validate(payload)
        session.touch()
        if session.handle_event(message.data):
            session.publish_state()
        return

    if message_type == "intent":
        message = IntentMessage.model_validate(payload)
        if message.action == "play_playlist":
            session.touch()
            await session.play_playlist(str(message.data["playlist_id"]))
            session.publish_state()
            return
        session.dispatch(message.action, message.data)
        return

    raise ValueError(f"Unknown message type: {message_type}")
