"""Leveled logging to standard error with a process-wide verbosity level."""

from __future__ import annotations

import enum
import sys
from typing import Optional, TextIO


class LogLevel(enum.IntEnum):
    """Message levels, from most to least important."""

    WARN = 0
    INFO = 1
    DEBUG = 2
    VERBOSE = 3


_current_level = LogLevel.INFO


def log(level: int, message: str, stream: Optional[TextIO] = None) -> int:
    """Write ``message`` if ``level`` is enabled; return the characters written.

    A trailing newline is added when the message has none.  Messages above
    the current level are dropped and 0 is returned.
    """
    if level > _current_level:
        return 0
    out = stream if stream is not None else sys.stderr
    text = message if message.endswith("\n") else message + "\n"
    out.write(text)
    return len(text)


def pr_warn(message: str) -> int:
    """Log ``message`` at warning level."""
    return log(LogLevel.WARN, message)


def pr_info(message: str) -> int:
    """Log ``message`` at info level."""
    return log(LogLevel.INFO, message)


def pr_debug(message: str) -> int:
    """Log ``message`` at debug level."""
    return log(LogLevel.DEBUG, message)


def get_log_level() -> LogLevel:
    """Return the current log level."""
    return _current_level


def set_log_level(level: int) -> LogLevel:
    """Set the log level and return the previous one."""
    global _current_level
    new_level = LogLevel(level)
    old_level = _current_level
    _current_level = new_level
    return old_level


def increase_log_level() -> LogLevel:
    """Raise verbosity by one step, up to VERBOSE; return the new level."""
    global _current_level
    if _current_level < LogLevel.VERBOSE:
        _current_level = LogLevel(_current_level + 1)
    return _current_level