"""
Domain errors raised by the player services.

Routers translate these into HTTP responses; the player core never lets one
escape an intent with half-applied state.
"""


class PlayerError(Exception):
    """Base class for all player session errors"""


class NotAuthenticatedError(PlayerError):
    """The operation needs a signed-in user"""

    def __init__(self, message: str = "Sign in to manage playlists"):
        super().__init__(message)


class PlaylistValidationError(PlayerError):
    """Rejected before any store call was made"""

    def __init__(self, reason: str, message: str):
        super().__init__(message)
        self.reason = reason


class PlaylistNotFoundError(PlayerError):
    def __init__(self, playlist_id: str):
        super().__init__(f"Playlist not found: {playlist_id}")
        self.playlist_id = playlist_id


class PlaylistStoreError(PlayerError):
    """The relational or object store failed; local state was rolled back"""

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation


class PlaylistAccessDeniedError(PlaylistStoreError):
    """The store's access policy refused the change"""

    def __init__(self, operation: str, playlist_id: str):
        super().__init__(operation, f"access denied for playlist {playlist_id}")
        self.playlist_id = playlist_id


class SessionOwnershipError(PlayerError):
    """A player session was requested by a user that did not open it"""

    def __init__(self, session_id: str):
        super().__init__(f"Player session {session_id} belongs to another user")
        self.session_id = session_id


class UnknownIntentError(PlayerError):
    def __init__(self, action: str):
        super().__init__(f"Unknown player intent: {action}")
        self.action = action
