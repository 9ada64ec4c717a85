"""Logging helpers for femtologging integration.

Gleaner emits pre-formatted, structured log lines of the shape
``[event.type] key=value key=value`` so aggregation runs and cache decisions
can be grepped and parsed by log aggregators without a JSON formatter.

Example:
>>> from gleaner.logging import get_logger, log_event
>>> logger = get_logger(__name__)
>>> log_event(logger, "INFO", "cache.hit", endpoint="/api/activity.json")

"""

from __future__ import annotations

import enum
import typing as typ

from femtologging import basicConfig, get_logger


class LogLevel(enum.StrEnum):
    """Supported log levels for femtologging."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def normalize_log_level(level: str | None) -> tuple[str, bool]:
    """Normalize a log level string and report invalid inputs.

    Parameters
    ----------
    level : str | None
        Raw log level string to normalize.

    Returns
    -------
    tuple[str, bool]
        The normalized log level and a flag indicating invalid input.

    """
    if not level:
        return ("INFO", True)

    normalized = level.strip().upper()
    if normalized in LogLevel.__members__:
        return (normalized, False)

    return ("INFO", True)


def configure_logging(level: str, *, force: bool = False) -> tuple[str, bool]:
    """Configure femtologging and return the normalized level."""
    normalized, invalid = normalize_log_level(level)
    basicConfig(level=normalized, force=force)
    return (normalized, invalid)


class _SupportsLog(typ.Protocol):
    """Protocol for femtologging-compatible loggers."""

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str | None: ...


def _render_value(value: object) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:.3f}"
    text = str(value)
    if not text or any(ch.isspace() for ch in text):
        return repr(text)
    return text


def format_event(event: str, **fields: object) -> str:
    """Render a structured event line.

    Parameters
    ----------
    event : str
        Dotted event type, e.g. ``aggregation.run.completed``.
    **fields : object
        Key/value pairs appended in insertion order. ``None`` renders as
        ``-`` and values containing whitespace are quoted.

    Returns
    -------
    str
        The formatted message.

    """
    parts = [f"[{event}]"]
    parts.extend(f"{key}={_render_value(value)}" for key, value in fields.items())
    return " ".join(parts)


def _emit(
    logger: _SupportsLog,
    level: str,
    message: str,
    *,
    exc_info: object | None = None,
) -> None:
    logger.log(level, message, exc_info=exc_info, stack_info=False)


def log_event(
    logger: _SupportsLog,
    level: str,
    event: str,
    *,
    exc_info: object | None = None,
    **fields: object,
) -> None:
    """Log a structured event line at ``level``."""
    _emit(logger, level, format_event(event, **fields), exc_info=exc_info)


def log_info(logger: _SupportsLog, template: str, *args: object) -> None:
    """Log an INFO message with percent-style formatting."""
    _emit(logger, "INFO", template % args)


def log_warning(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log a WARNING message with percent-style formatting."""
    _emit(logger, "WARNING", template % args, exc_info=exc_info)


def log_error(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log an ERROR message with percent-style formatting.

    Parameters
    ----------
    logger : _SupportsLog
        Logger that receives the formatted message.
    template : str
        Message template using percent-style placeholders.
    *args : object
        Values to interpolate into the template.
    exc_info : object | None, optional
        Exception information to attach to the log record.

    """
    _emit(logger, "ERROR", template % args, exc_info=exc_info)


__all__ = [
    "LogLevel",
    "configure_logging",
    "format_event",
    "get_logger",
    "log_error",
    "log_event",
    "log_info",
    "log_warning",
    "normalize_log_level",
]
