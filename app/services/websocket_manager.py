from typing import Dict, List
from fastapi import WebSocket
from app.core.logging import get_logger
import json

logger = get_logger("WebSocketManager")


class WebSocketManager:
    """
    Manages WebSocket connections of player sessions.
    Usually one connection per session (its browser tab); a reconnecting
    tab may briefly hold two.
    """

    def __init__(self):
        # session_id -> list of WebSocket connections
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, session_id: str):
        """
        Accept and store a new WebSocket connection for a player session.

        Args:
            websocket: WebSocket connection
            session_id: Player session the tab belongs to
        """
        await websocket.accept()
        self.active_connections.setdefault(session_id, []).append(websocket)

    def disconnect(self, websocket: WebSocket, session_id: str):
        if session_id in self.active_connections:
            if websocket in self.active_connections[session_id]:
                self.active_connections[session_id].remove(websocket)

            if not self.active_connections[session_id]:
                del self.active_connections[session_id]

    def is_connected(self, session_id: str) -> bool:
        return bool(self.active_connections.get(session_id))

    async def send_to_session(self, session_id: str, message: dict):
        """
        Send a message to every connection of a player session.

        Args:
            session_id: Player session to send to
            message: Message dict to send (will be JSON serialized)
        """
        if session_id not in self.active_connections:
            return

        json_message = json.dumps(message)

        disconnected = []
        for connection in self.active_connections[session_id]:
            try:
                await connection.send_text(json_message)
            except Exception as e:
                logger.warning(f"Failed to send {message.get('type')} to session {session_id}: {e}")
                disconnected.append(connection)

        for connection in disconnected:
            self.disconnect(connection, session_id)

    async def flush(self, session) -> int:
        """
        Deliver everything a player session queued since the last flush.

        Messages are dropped when the tab has no open socket: the next
        connect sends a fresh player_state anyway.

        Returns:
            Number of messages delivered
        """
        messages = session.drain_outbox()
        if not self.is_connected(session.session_id):
            return 0

        for message in messages:
            await self.send_to_session(session.session_id, message)
        return len(messages)

    async def send_personal_message(self, websocket: WebSocket, message: dict):
        try:
            await websocket.send_text(json.dumps(message))
        except Exception as e:
            logger.error(f"Failed to send {message.get('type')} message: {e}", exc_info=True)

    def get_connection_count(self) -> int:
        return sum(len(connections) for connections in self.active_connections.values())
