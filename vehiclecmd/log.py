"""A process-wide logger with a configurable verbosity level."""

from __future__ import annotations

import sys
import threading
from datetime import datetime
from enum import IntEnum


class Level(IntEnum):
    """Logging verbosity; each level includes every level below it."""

    NONE = 0  # Disables logging.
    ERROR = 1  # Anomalies not expected during normal use.
    WARNING = 2  # Anomalies expected occasionally during normal use.
    INFO = 3  # Major events.
    DEBUG = 4  # Detailed I/O.


_LABELS = {
    Level.DEBUG: "[debug]",
    Level.INFO: "[info ]",
    Level.WARNING: "[warn ]",
    Level.ERROR: "[error]",
}

_lock = threading.Lock()
_level = Level.NONE


def set_level(level: Level) -> None:
    """Set the global logging level."""
    global _level
    with _lock:
        _level = Level(level)


def get_level() -> Level:
    """Return the global logging level."""
    with _lock:
        return _level


def _timestamp() -> str:
    text = datetime.now().astimezone().isoformat(timespec="seconds")
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


def _log(level: Level, message: str, args: tuple) -> None:
    if level > get_level():
        return
    body = message % args if args else message
    print(f"{_timestamp()} {_LABELS[level]} {body}", file=sys.stderr)


def debug(message: str, *args) -> None:
    """Log detailed I/O."""
    _log(Level.DEBUG, message, args)


def info(message: str, *args) -> None:
    """Log a major event."""
    _log(Level.INFO, message, args)


def warning(message: str, *args) -> None:
    """Log an anomaly that is expected occasionally."""
    _log(Level.WARNING, message, args)


def error(message: str, *args) -> None:
    """Log an anomaly that is not expected during normal use."""
    _log(Level.ERROR, message, args)