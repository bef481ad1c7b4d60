"""
Self-report channel for sinks.

Sinks must not log their own failures through the pipeline they serve, so
they report here instead. Entries are kept in a bounded in-memory buffer and
optionally echoed to the interpreter's original stderr, which is never
redirected by `StreamToLogger`.
"""

from __future__ import annotations

import sys
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

DEFAULT_CAPACITY = 150


class StatusLevel(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


@dataclass(frozen=True)
class Status:
    level: StatusLevel
    origin: str
    message: str
    cause: Optional[BaseException] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def render(self) -> str:
        line = f"{self.timestamp:%Y-%m-%d %H:%M:%S} [logvault] {self.level.value} {self.origin}: {self.message}"
        if self.cause is not None:
            line += f" ({type(self.cause).__name__}: {self.cause})"
        return line


class StatusManager:
    """Thread-safe bounded store of sink status entries.

    Args:
        capacity: Number of entries retained; older entries are discarded.
        echo: Write each entry to `stream` as it arrives.
        stream: Echo target (default: `sys.__stderr__`).
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, echo: bool = True, stream: Any = None):
        self._entries: deque[Status] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self.echo = echo
        self._stream = stream

    def add(self, status: Status) -> None:
        with self._lock:
            self._entries.append(status)
        if self.echo:
            self._write(status)

    def info(self, origin: str, message: str) -> None:
        self.add(Status(StatusLevel.INFO, origin, message))

    def warn(self, origin: str, message: str, cause: Optional[BaseException] = None) -> None:
        self.add(Status(StatusLevel.WARN, origin, message, cause))

    def error(self, origin: str, message: str, cause: Optional[BaseException] = None) -> None:
        self.add(Status(StatusLevel.ERROR, origin, message, cause))

    def entries(self, level: Optional[StatusLevel] = None) -> list[Status]:
        with self._lock:
            snapshot = list(self._entries)
        if level is None:
            return snapshot
        return [s for s in snapshot if s.level == level]

    def has_errors(self) -> bool:
        return bool(self.entries(StatusLevel.ERROR))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _write(self, status: Status) -> None:
        stream = self._stream or sys.__stderr__
        if stream is None:
            return
        try:
            stream.write(status.render() + "\n")
            stream.flush()
        except (OSError, ValueError):
            # Closed or broken stream; the entry is still buffered.
            pass


status_manager = StatusManager()
