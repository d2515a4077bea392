"""
Centralized logging configuration for cartsync.

Usage:
    from cartsync.logging import get_logger
    logger = get_logger(__name__)

    logger.info("Cart fetched")
    logger.error("Fallback fetch failed", exc_info=True)
"""

import logging
import os
import sys
from functools import cache

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FORMAT_SIMPLE = "%(levelname)s - %(name)s - %(message)s"


def _get_log_level() -> int:
    """Get log level from environment or default to INFO."""
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def _configure_root_logger() -> None:
    """Attach a stdout handler to the root logger unless the host app already did."""
    root = logging.getLogger()

    if root.handlers:
        return

    root.setLevel(_get_log_level())

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(_get_log_level())

    is_production = os.environ.get("CARTSYNC_ENV") == "production"
    formatter = logging.Formatter(LOG_FORMAT_SIMPLE if is_production else LOG_FORMAT)
    handler.setFormatter(formatter)

    root.addHandler(handler)

    # Every cart request goes through httpx; its INFO lines drown the sync log
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


_configure_root_logger()


@cache
def get_logger(name: str) -> logging.Logger:
    """
    Get or create a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


def _escape_log_injection(value: str) -> str:
    """Escape control characters that could forge log entries (CWE-117)."""
    return (
        value.replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
        .replace("\x00", "")
    )


# Server messages can echo request data; only this much of them reaches the log
SERVER_MESSAGE_LOG_LENGTH = 80


def mask_session_id(session_id: str | None) -> str:
    """
    Guest session id safe for the log.

    ``guest_<millis>_<random>`` keeps its prefix and timestamp so sessions
    can be told apart; the random tail that identifies the visitor is masked.
    Anything else is escaped and cut to the same length.
    """
    if not session_id:
        return "N/A"
    safe_value = _escape_log_injection(str(session_id))
    head, sep, _tail = safe_value.rpartition("_")
    if sep and head.startswith("guest_"):
        return f"{head}_***"
    return safe_value[:19]


def sanitize_server_message(message: str | None) -> str:
    """Escape and truncate a message sent by the Cart Service."""
    if not message:
        return "N/A"
    safe_value = _escape_log_injection(str(message))
    if len(safe_value) <= SERVER_MESSAGE_LOG_LENGTH:
        return safe_value
    return safe_value[:SERVER_MESSAGE_LOG_LENGTH] + "..."


__all__ = [
    "LOG_FORMAT",
    "LOG_FORMAT_SIMPLE",
    "get_logger",
    "mask_session_id",
    "sanitize_server_message",
]
