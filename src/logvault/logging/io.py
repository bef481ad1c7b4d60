"""
I/O redirection utilities.
"""

from __future__ import annotations

import inspect
from typing import Any

import structlog

_SKIPPED_MODULES = ("logvault.logging", "logging", "structlog")


class StreamToLogger:
    """File-like object that turns written lines into log events.

    Partial lines are buffered until a newline or `flush()`. Attributes not
    defined here are proxied to the original stream.
    """

    def __init__(self, logger: structlog.stdlib.BoundLogger, level: int, original_stream: Any):
        self.logger = logger
        self.level = level
        self.original_stream = original_stream
        self._pending = ""

    @staticmethod
    def _infer_source() -> str | None:
        """Module name of the first caller outside the logging machinery."""
        for frame_info in inspect.stack(context=0)[2:22]:
            module = frame_info.frame.f_globals.get("__name__", "")
            if module and not module.startswith(_SKIPPED_MODULES):
                return "main" if module == "__main__" else module
        return None

    def _log_line(self, line: str) -> None:
        if not line:
            return
        source = self._infer_source()
        if source:
            self.logger.log(self.level, line, source=source)
        else:
            self.logger.log(self.level, line)

    def write(self, buf: str | bytes) -> int:
        if isinstance(buf, bytes):
            buf = buf.decode(self.encoding, errors="replace")

        for chunk in buf.splitlines(True):
            if chunk.endswith(("\n", "\r")):
                line, self._pending = (self._pending + chunk).rstrip(), ""
                self._log_line(line)
            else:
                self._pending += chunk
        return len(buf)

    def flush(self) -> None:
        line, self._pending = self._pending.rstrip(), ""
        self._log_line(line)

    def isatty(self) -> bool:
        return False

    @property
    def encoding(self) -> str:
        return getattr(self.original_stream, "encoding", None) or "utf-8"

    def __getattr__(self, name: str) -> Any:
        return getattr(self.original_stream, name)
