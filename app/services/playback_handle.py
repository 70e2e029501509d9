from typing import Callable

from app.core.logging import get_logger

logger = get_logger("RemotePlaybackHandle")


class RemotePlaybackHandle:
    """
    Playback handle backed by the browser's audio element.

    Commands are not sent directly: they are handed to `send`, which queues
    them on the player session's outbox until the caller flushes it to the
    tab's WebSocket. The browser answers loads with handle_event messages.
    """

    def __init__(self, send: Callable[[dict], None]):
        self._send = send

    def load(self, source: str, load_id: int) -> None:
        self._command("load", source=source, load_id=load_id)

    def play(self) -> None:
        self._command("play")

    def pause(self) -> None:
        self._command("pause")

    def seek(self, seconds: float) -> None:
        self._command("seek", position=seconds)

    def set_volume(self, level: float) -> None:
        self._command("set_volume", volume=level)

    def _command(self, command: str, **data) -> None:
        logger.debug(f"Queueing handle command {command} {data or ''}")
        self._send({
            "type": "handle_command",
            "data": {"command": command, **data}
        })
