"""
Core logging configuration and initialization logic.
"""

from __future__ import annotations

import logging
import sys
import threading
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

import structlog
from structlog.typing import EventDict, WrappedLogger

from logvault.config.mongo import MongoSinkSettings

from .formatters import ConsoleFormatter
from .io import StreamToLogger
from .mongo import MongoSink
from .sinks import BaseSink, FileSink, LogFormat, StdioSink
from .status import status_manager

# =============================================================================
# Global State
# =============================================================================

_sinks: list[BaseSink] = []

# Keys with a fixed meaning in the event dict; everything else is context.
RESERVED_KEYS = frozenset(
    {
        "timestamp",
        "level",
        "logger",
        "thread",
        "message",
        "event",
        "_error",
        "exception",
        "exc_info",
        "stack",
        "stack_info",
        "context",
        "_name",
    }
)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(_name=name or "root")


def get_sinks() -> tuple[BaseSink, ...]:
    """Sinks currently attached to the pipeline."""
    return tuple(_sinks)


# =============================================================================
# Structlog Processors
# =============================================================================


# Keys the processors below overwrite or reinterpret. A caller passing one of
# them keeps the value as ordinary context.
PIPELINE_OWNED_KEYS = ("level", "message", "exception", "stack")


def fold_call_site_keys(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Move call-site values that would collide with pipeline fields into `context`.

    A `context` that is not a mapping is kept under the key "context".
    """
    context = event_dict.pop("context", None)
    if isinstance(context, Mapping):
        folded = dict(context)
    elif context is None:
        folded = {}
    else:
        folded = {"context": context}
    for key in PIPELINE_OWNED_KEYS:
        if key in event_dict:
            folded[key] = event_dict.pop(key)
    if folded:
        event_dict["context"] = folded
    return event_dict


def add_timestamp(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add a UTC timestamp unless the event already carries one."""
    event_dict.setdefault("timestamp", datetime.now(timezone.utc))
    return event_dict


def add_logger_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add logger name to log event."""
    name = event_dict.pop("_name", None)
    event_dict.setdefault("logger", name or "root")
    return event_dict


def add_thread_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("thread", threading.current_thread().name)
    return event_dict


def rename_event_key(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Rename 'event' to 'message'."""
    if "event" in event_dict:
        event_dict["message"] = event_dict.pop("event")
    return event_dict


def add_error_info(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Summarize `exc_info` as `_error` {"type", "message"} before it is rendered to a traceback."""
    exc_info = event_dict.get("exc_info")
    if not exc_info:
        return event_dict
    if exc_info is True:
        exc_info = sys.exc_info()
    if isinstance(exc_info, BaseException):
        exc_type, exc = type(exc_info), exc_info
    elif isinstance(exc_info, tuple) and len(exc_info) == 3 and exc_info[0] is not None:
        exc_type, exc = exc_info[0], exc_info[1]
    else:
        return event_dict
    event_dict["_error"] = {"type": exc_type.__name__, "message": str(exc) if exc is not None else ""}
    return event_dict


def collect_context(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Move bound and call-site key/values into a flat str -> str `context` mapping."""
    raw = event_dict.get("context")
    if isinstance(raw, Mapping):
        context = {str(k): str(v) for k, v in raw.items()}
    else:
        context = {} if raw is None else {"context": str(raw)}
    for key in [k for k in event_dict if k not in RESERVED_KEYS]:
        context[key] = str(event_dict.pop(key))
    if context:
        event_dict["context"] = context
    else:
        event_dict.pop("context", None)
    return event_dict


def multi_sink_renderer(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> str:
    """Render log to all configured sinks. Returns empty to suppress default output."""
    for sink in _sinks:
        try:
            sink.emit(event_dict)
        except Exception as exc:
            # Never break the application; report on the side channel instead.
            status_manager.error(type(sink).__name__, "Sink failed to emit event", exc)
    return ""


SHARED_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    fold_call_site_keys,
    structlog.stdlib.add_log_level,
    add_timestamp,
    add_logger_name,
    add_thread_name,
    rename_event_key,
    add_error_info,
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    collect_context,
]


# =============================================================================
# Silent structlog output
# =============================================================================


class _NopFile:
    def write(self, s: str) -> None:
        pass

    def flush(self) -> None:
        pass


_NOP_FILE = _NopFile()


class SilentPrintLoggerFactory:
    """Logger factory that returns a logger writing to nowhere; sinks do the output."""

    def __call__(self, *args: Any) -> structlog.PrintLogger:
        return structlog.PrintLogger(file=_NOP_FILE)


# =============================================================================
# Configuration Logic
# =============================================================================


def _real_stdout() -> Any:
    stream = sys.stdout
    return stream.original_stream if isinstance(stream, StreamToLogger) else stream


def _close_sinks() -> None:
    for sink in _sinks:
        try:
            sink.close()
        except Exception as exc:
            status_manager.error(type(sink).__name__, "Failed to close sink", exc)
    _sinks.clear()


def _initialize_sinks(
    sinks: str,
    fmt: str,
    file_path: str,
    mongo: MongoSinkSettings | None,
    extra_sinks: Sequence[BaseSink],
) -> None:
    """Create the named sinks, append the caller-owned ones, and start them all."""
    previous = list(_sinks)
    _close_sinks()

    log_format: LogFormat = "json" if fmt.lower() == "json" else "console"

    sink_names = [s.strip().lower() for s in sinks.split(",") if s.strip()]
    for name in sink_names:
        if name == "stdio":
            _sinks.append(StdioSink(fmt=log_format, stream=_real_stdout()))
        elif name == "file":
            _sinks.append(FileSink(file_path))
        elif name == "mongo":
            _sinks.append(MongoSink(mongo))
        else:
            status_manager.warn("configure_logging", f"Unknown sink {name!r} ignored")
    for sink in extra_sinks:
        if any(sink is old for old in previous):
            status_manager.warn(
                "configure_logging",
                f"{type(sink).__name__} was closed by this reconfiguration and is attached closed; pass a new instance",
            )
        _sinks.append(sink)

    for sink in _sinks:
        try:
            sink.start()
        except Exception as exc:
            status_manager.error(type(sink).__name__, "Failed to start sink", exc)


def _configure_structlog(level: str) -> None:
    """Configure structlog processors and factory."""
    structlog.configure(
        processors=SHARED_PROCESSORS + [multi_sink_renderer],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.upper(), logging.INFO)),
        context_class=dict,
        logger_factory=SilentPrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def configure_logging(
    *,
    level: str = "INFO",
    sinks: str = "stdio",
    fmt: str = "console",
    file_path: str = "logs/logvault.log",
    mongo: MongoSinkSettings | None = None,
    extra_sinks: Sequence[BaseSink] = (),
    capture_streams: bool = False,
    status_echo: bool = True,
) -> tuple[BaseSink, ...]:
    """
    Configure the logging pipeline and start its sinks.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        sinks: Comma-separated sink names (stdio, file, mongo)
        fmt: Output format for stdio sink (console, json)
        file_path: Path for file sink
        mongo: Settings for the mongo sink (default: read from LV_MONGO_*)
        extra_sinks: Already constructed sinks to attach as well. The pipeline
            owns them from here on: a later `configure_logging` or
            `shutdown_logging` closes them, and a closed MongoSink cannot be
            started again, so reconfiguring needs fresh instances.
        capture_streams: Redirect sys.stdout / sys.stderr into the pipeline
        status_echo: Echo sink self-reports to the original stderr

    Returns:
        The attached sinks; call `shutdown_logging()` to stop them.
    """
    from .interceptors import install_root_handler, quiet_driver_loggers

    level_no = getattr(logging, level.upper(), logging.INFO)
    status_manager.echo = status_echo

    # 1. Initialize and start sinks
    _initialize_sinks(sinks, fmt, file_path, mongo, extra_sinks)

    # 2. Configure structlog
    _configure_structlog(level)

    # 3. Route stdlib logging through the pipeline
    install_root_handler(level_no)
    quiet_driver_loggers()

    # 4. Optionally capture stray prints
    if capture_streams:
        if not isinstance(sys.stdout, StreamToLogger):
            sys.stdout = StreamToLogger(get_logger("stdout"), logging.INFO, sys.stdout)  # type: ignore
        if not isinstance(sys.stderr, StreamToLogger):
            sys.stderr = StreamToLogger(get_logger("stderr"), logging.WARNING, sys.stderr)  # type: ignore

    return get_sinks()


def configure_from_settings(app_settings: Any = None) -> tuple[BaseSink, ...]:
    """Configure logging from `logvault.config.settings` (or the given composite)."""
    if app_settings is None:
        from logvault.config import settings as app_settings

    log_settings = app_settings.logging
    ConsoleFormatter.configure(
        timestamp_format=log_settings.console_timestamp_format,
        level_width=log_settings.console_level_width,
        logger_width=log_settings.console_logger_width,
        separator=log_settings.console_separator,
    )
    return configure_logging(
        level=log_settings.level.value,
        sinks=log_settings.sinks,
        fmt=log_settings.format.value,
        file_path=log_settings.file_path,
        mongo=app_settings.mongo,
        capture_streams=log_settings.capture_streams,
        status_echo=log_settings.status_echo,
    )


def shutdown_logging() -> None:
    """Stop every sink and detach the pipeline from stdlib logging and stdio."""
    from .interceptors import remove_root_handler

    if isinstance(sys.stdout, StreamToLogger):
        sys.stdout.flush()
        sys.stdout = sys.stdout.original_stream
    if isinstance(sys.stderr, StreamToLogger):
        sys.stderr.flush()
        sys.stderr = sys.stderr.original_stream

    remove_root_handler()
    _close_sinks()
