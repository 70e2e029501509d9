from fastapi import HTTPException, status

from app.core.exceptions import (
    NotAuthenticatedError,
    PlayerError,
    PlaylistAccessDeniedError,
    PlaylistNotFoundError,
    PlaylistStoreError,
    PlaylistValidationError,
    SessionOwnershipError,
    UnknownIntentError,
)


def to_http_exception(error: PlayerError) -> HTTPException:
    """
    Map a player domain error to the HTTP response the routes return.

    Access-denied is checked before the generic store error it derives from.
    """
    if isinstance(error, PlaylistValidationError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"reason": error.reason, "message": str(error)}
        )
    if isinstance(error, UnknownIntentError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    if isinstance(error, NotAuthenticatedError):
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(error),
            headers={"WWW-Authenticate": "Bearer"},
        )
    if isinstance(error, (PlaylistAccessDeniedError, SessionOwnershipError)):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(error))
    if isinstance(error, PlaylistNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, PlaylistStoreError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(error))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))
