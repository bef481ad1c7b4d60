"""
Structured logging with pluggable sinks.

Sinks:
- stdio: Standard output (console/json format)
- file: Local JSON-lines file with rotation
- mongo: MongoDB collection with TTL-based retention

Design Pattern: Strategy Pattern for sink abstraction.
Library: structlog + orjson for rendering, pymongo for persistence.
"""

from .context import bind_context, bound_context, clear_context, unbind_context
from .core import configure_from_settings, configure_logging, get_logger, get_sinks, shutdown_logging
from .mongo import ErrorKind, MongoSink, SinkError, SinkState
from .records import ErrorInfo, LogDocument, LogRecord, build_document
from .sinks import BaseSink, FileSink, StdioSink
from .status import StatusManager, status_manager

__all__ = [
    "BaseSink",
    "ErrorInfo",
    "ErrorKind",
    "FileSink",
    "LogDocument",
    "LogRecord",
    "MongoSink",
    "SinkError",
    "SinkState",
    "StatusManager",
    "StdioSink",
    "bind_context",
    "bound_context",
    "build_document",
    "clear_context",
    "configure_from_settings",
    "configure_logging",
    "get_logger",
    "get_sinks",
    "shutdown_logging",
    "status_manager",
    "unbind_context",
]
