from typing import Callable, Optional

from fastapi import Depends, HTTPException, status
from fastapi.requests import HTTPConnection
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.core.exceptions import SessionOwnershipError
from app.core.logging import get_logger
from app.schemas.auth import CurrentUser
from app.services.jwt_service import verify_token
from app.services.player_session import PlayerSession, SessionRegistry
from app.services.playlist_repository import PlaylistRepository
from app.services.supabase_service import SupabaseService
from app.services.websocket_manager import WebSocketManager

logger = get_logger("Dependencies")
security = HTTPBearer(auto_error=False)


def resolve_user(token: Optional[str]) -> Optional[CurrentUser]:
    """
    Turn an optional access token into the user context.
    No token means anonymous; an invalid token returns None.
    """
    if not token:
        return CurrentUser()

    user_id = verify_token(token)
    if user_id is None:
        return None
    return CurrentUser(id=user_id, access_token=token)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> CurrentUser:
    """
    Dependency returning the signed-in user, or an anonymous user when no
    bearer token was sent. A token that fails verification is rejected.
    """
    user = resolve_user(credentials.credentials if credentials else None)
    if user is None:
        logger.warning("Invalid or expired token attempted")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_registry(connection: HTTPConnection) -> SessionRegistry:
    """Works for HTTP requests and WebSocket connections alike"""
    return connection.app.state.registry


def get_websocket_manager(connection: HTTPConnection) -> WebSocketManager:
    return connection.app.state.websockets


def get_store_factory() -> Callable[[], SupabaseService]:
    """Each session gets its own client so access tokens never mix"""
    return SupabaseService


def open_player_session(
    session_id: str,
    user: CurrentUser,
    registry: SessionRegistry,
    store_factory: Callable[[], SupabaseService]
) -> PlayerSession:
    """
    Get or create the player session and point its store at the user's token.

    Raises:
        SessionOwnershipError: the session belongs to another user
    """
    session = registry.get_or_create(
        session_id,
        user.id,
        lambda: PlaylistRepository(store_factory(), user.id)
    )
    session.repository.authenticate(user.access_token)
    return session


async def get_player_session(
    session_id: str,
    user: CurrentUser = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_registry),
    store_factory: Callable[[], SupabaseService] = Depends(get_store_factory)
) -> PlayerSession:
    """
    Dependency resolving the player session named in the path.

    Raises:
        HTTPException(403): Session was opened by another user
    """
    try:
        return open_player_session(session_id, user, registry, store_factory)
    except SessionOwnershipError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
