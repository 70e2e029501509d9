from typing import Any, Dict, Iterable, Optional

from app.models import PlaybackState, Playlist, Track


def format_time(seconds: Optional[float]) -> str:
    """
    Format a playback position as m:ss.

    Args:
        seconds: Position or duration in seconds (None or negative shows 0:00)

    Returns:
        Formatted time, e.g. "3:07"
    """
    if not seconds or seconds < 0:
        return "0:00"
    minutes = int(seconds // 60)
    remaining = int(seconds % 60)
    return f"{minutes}:{remaining:02d}"


def format_track(track: Track) -> Dict[str, Any]:
    """
    Format a track for API responses and WebSocket messages.

    Args:
        track: Track model

    Returns:
        Track dictionary with a display duration added
    """
    return {
        **track.model_dump(mode="json"),
        "duration_display": format_time(track.duration),
    }


def format_playback_state(state: PlaybackState) -> Dict[str, Any]:
    """
    Format playback state for API responses and WebSocket messages.

    Args:
        state: Snapshot from the transport controller

    Returns:
        Playback state dictionary with display times for the player bar
    """
    data = state.model_dump(mode="json")
    data["current_track"] = format_track(state.current_track) if state.current_track else None
    data["position_display"] = format_time(state.position)
    data["duration_display"] = format_time(state.duration)
    return data


def format_playlist(
    playlist: Playlist,
    user_id: Optional[str] = None,
    saved_ids: Iterable[str] = ()
) -> Dict[str, Any]:
    """
    Format a playlist together with the viewer's relation to it.

    Args:
        playlist: Cached playlist
        user_id: Current user (None when anonymous)
        saved_ids: Playlist ids the current user has saved

    Returns:
        Playlist dictionary with is_owner, is_saved and track_count
    """
    data = playlist.model_dump(mode="json")
    data["tracks"] = [format_track(track) for track in playlist.tracks]
    data["track_count"] = len(playlist.tracks)
    data["is_owner"] = playlist.owned_by(user_id)
    data["is_saved"] = playlist.id in set(saved_ids)
    return data


def format_notification(message: str, level: str = "info") -> Dict[str, Any]:
    return {
        "type": "notification",
        "data": {
            "message": message,
            "level": level
        }
    }
