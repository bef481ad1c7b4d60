"""
Console formatter.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from structlog.typing import EventDict

# =============================================================================
# Console Formatter (Aligned Columns)
# =============================================================================

COLORS = {
    "reset": "\033[0m",
    "dim": "\033[2m",
    "timestamp": "\033[90m",
    "logger": "\033[35m",
    "key": "\033[34m",
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[1;31m",
}


def colorize(text: str, color: str, use_color: bool = True) -> str:
    """Apply ANSI color to text."""
    if not use_color or color not in COLORS:
        return text
    return f"{COLORS[color]}{text}{COLORS['reset']}"


class ConsoleFormatter:
    """Renders an event dict as `timestamp | LEVEL | logger | message key=value ...`.

    Context entries follow the message; a formatted traceback, when present,
    goes on the following lines.
    """

    TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
    LEVEL_WIDTH = 8
    LOGGER_WIDTH = 32
    SEPARATOR = " | "

    @classmethod
    def configure(
        cls,
        *,
        timestamp_format: str | None = None,
        level_width: int | None = None,
        logger_width: int | None = None,
        separator: str | None = None,
    ) -> None:
        """Configure alignment and rendering parameters."""
        if timestamp_format:
            cls.TIMESTAMP_FORMAT = timestamp_format
        if level_width:
            cls.LEVEL_WIDTH = level_width
        if logger_width:
            cls.LOGGER_WIDTH = logger_width
        if separator is not None:
            cls.SEPARATOR = separator

    @staticmethod
    def _fit_right(text: str, width: int) -> str:
        if width <= 0:
            return text
        if len(text) > width:
            text = text[-width:] if width <= 3 else "..." + text[-(width - 3) :]
        return f"{text:>{width}}"

    @classmethod
    def _format_timestamp(cls, value: Any) -> str:
        if isinstance(value, str):
            try:
                value = datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                value = None
        if not isinstance(value, datetime):
            value = datetime.now(timezone.utc)
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone().strftime(cls.TIMESTAMP_FORMAT)

    @classmethod
    def format(cls, event_dict: EventDict, *, use_color: bool = True) -> str:
        """Format an event dict into an aligned string."""
        level = str(event_dict.get("level", "info")).upper()
        logger_name = str(event_dict.get("logger", "root"))
        message = str(event_dict.get("message", event_dict.get("event", "")))

        context = event_dict.get("context") or {}
        if context:
            pairs = (f"{colorize(str(k), 'key', use_color)}={colorize(str(v), 'dim', use_color)}" for k, v in context.items())
            message = f"{message} " + " ".join(pairs)

        line = cls.SEPARATOR.join(
            [
                colorize(cls._format_timestamp(event_dict.get("timestamp")), "timestamp", use_color),
                colorize(cls._fit_right(level, cls.LEVEL_WIDTH), level, use_color),
                colorize(cls._fit_right(logger_name, cls.LOGGER_WIDTH), "logger", use_color),
                message,
            ]
        )

        exception = event_dict.get("exception")
        if exception:
            line = f"{line}\n{exception}"
        return line
