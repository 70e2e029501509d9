"""
API v1 routes for the player session server.
"""
from app.api.v1 import player, playlists, websocket

__all__ = ["player", "playlists", "websocket"]
