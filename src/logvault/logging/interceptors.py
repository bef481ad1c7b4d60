"""
Interceptors for capturing standard library logging.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from .core import get_logger

# Loggers of the storage driver. Their DEBUG/INFO output is produced while a
# sink is writing and would otherwise be fed back into that sink.
DRIVER_LOGGERS = ("pymongo", "pymongo.command", "pymongo.connection", "pymongo.serverSelection", "pymongo.topology")


class RedirectStdLibHandler(logging.Handler):
    """
    Redirect standard library logging records into the structlog pipeline.

    The record's own creation time, thread name and exception info are
    forwarded, so stdlib events persist exactly like structlog-native ones.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            if record.name.startswith("structlog"):
                return

            event: dict = {
                "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc),
                "thread": record.threadName or "",
            }
            if record.exc_info and record.exc_info[0] is not None:
                event["exc_info"] = record.exc_info

            logger = get_logger(record.name or "stdlib")
            logger.log(getattr(logging, record.levelname, logging.INFO), record.getMessage(), **event)
        except Exception:
            self.handleError(record)


def install_root_handler(level: int) -> RedirectStdLibHandler:
    """Replace every root handler with a single RedirectStdLibHandler."""
    handler = RedirectStdLibHandler()
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)
    return handler


def remove_root_handler() -> None:
    root_logger = logging.getLogger()
    root_logger.handlers = [h for h in root_logger.handlers if not isinstance(h, RedirectStdLibHandler)]


def quiet_driver_loggers(level: int = logging.WARNING) -> None:
    """Cap driver loggers so routine connection chatter stays out of the sinks."""
    for name in DRIVER_LOGGERS:
        lg = logging.getLogger(name)
        lg.handlers = []
        lg.propagate = True
        lg.setLevel(level)
