import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, MutableMapping

from app.config import Settings, get_settings

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEVELOPMENT_FORMAT = "%(levelname)s:\t%(asctime)s - %(name)s - %(message)s"
PRODUCTION_FORMAT = "%(levelname)s:%(asctime)s:%(name)s:%(message)s"

LOG_FILE = Path("logs") / "player-session-server.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

# Store client and HTTP chatter is only interesting when it fails
QUIET_LOGGERS = ("httpx", "httpcore", "hpack", "postgrest", "storage3", "supabase")
UVICORN_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error")


class ColoredFormatter(logging.Formatter):
    """Console formatter that colors the level name by severity"""

    RESET = "\033[0m"
    LEVEL_COLORS = {
        logging.DEBUG: "\033[90m",
        logging.INFO: "\033[94m",
        logging.WARNING: "\033[93m",
        logging.ERROR: "\033[91m",
        logging.CRITICAL: "\033[95m",
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno)
        if color is None:
            return super().format(record)

        # Color a copy so file handlers sharing the record stay plain
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


class SessionLoggerAdapter(logging.LoggerAdapter):
    """Prefixes every message with the player session it belongs to"""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]):
        return f"[session {self.extra['session_id']}] {msg}", kwargs


def _build_formatter(settings: Settings) -> logging.Formatter:
    if settings.is_development:
        return ColoredFormatter(fmt=DEVELOPMENT_FORMAT, datefmt=DATE_FORMAT)
    return logging.Formatter(fmt=PRODUCTION_FORMAT, datefmt=DATE_FORMAT)


def _build_file_handler() -> logging.Handler:
    LOG_FILE.parent.mkdir(exist_ok=True)
    handler = RotatingFileHandler(
        filename=LOG_FILE,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8"
    )
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(fmt=PRODUCTION_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging() -> None:
    """
    Configure logging for the whole server.

    Call once at startup, before the FastAPI app is created. Development
    gets a colored console; production adds a rotating log file.
    """
    settings = get_settings()

    root_logger = logging.getLogger()
    root_logger.setLevel(settings.log_level)
    # Reloads call this again
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(settings.log_level)
    console_handler.setFormatter(_build_formatter(settings))
    root_logger.addHandler(console_handler)

    if settings.is_production:
        root_logger.addHandler(_build_file_handler())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # Let uvicorn records propagate to the root handlers
    for name in UVICORN_LOGGERS:
        logging.getLogger(name).handlers.clear()


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module or service.

    Usage:
        from app.core.logging import get_logger
        logger = get_logger("QueueStore")
    """
    return logging.getLogger(name)


def get_session_logger(name: str, session_id: str) -> SessionLoggerAdapter:
    """Get a logger whose messages are tagged with a player session id"""
    return SessionLoggerAdapter(logging.getLogger(name), {"session_id": session_id})
