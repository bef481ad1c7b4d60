"""
Log record and persisted document types.

`LogRecord` is what the logging pipeline hands to a sink for one event;
`LogDocument` is its projection as stored in MongoDB. Optional fields are
omitted from the stored document rather than written as null.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict
from structlog.typing import EventDict


@dataclass(frozen=True)
class ErrorInfo:
    """Summary of the exception attached to a log event."""

    class_name: str
    message: str = ""

    def render(self) -> str:
        return f"{self.class_name}: {self.message}"

    @classmethod
    def from_exception(cls, exc: BaseException) -> ErrorInfo:
        return cls(class_name=type(exc).__name__, message=str(exc))


@dataclass(frozen=True)
class LogRecord:
    """One log event as delivered to a sink."""

    timestamp: datetime
    level: str
    logger_name: str
    thread_name: str
    message: str
    error: Optional[ErrorInfo] = None
    context: Dict[str, str] = field(default_factory=dict)


class LogDocument(BaseModel):
    """Stored shape of a log event.

    `exception` and `context` are left as None when absent and dropped on
    serialization, so a stored document never carries empty optional keys.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    level: str
    logger: str
    thread: str
    message: str
    exception: Optional[str] = None
    context: Optional[Dict[str, str]] = None

    def to_mongo(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


def build_document(record: LogRecord) -> LogDocument:
    """Project a record onto its stored document."""
    return LogDocument(
        timestamp=record.timestamp,
        level=record.level,
        logger=record.logger_name,
        thread=record.thread_name,
        message=record.message,
        exception=record.error.render() if record.error is not None else None,
        context=dict(record.context) if record.context else None,
    )


# =============================================================================
# structlog event dict -> LogRecord
# =============================================================================


def _coerce_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return datetime.now(timezone.utc)
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return datetime.now(timezone.utc)
    return datetime.now(timezone.utc)


def _coerce_error(value: Any) -> Optional[ErrorInfo]:
    if isinstance(value, ErrorInfo):
        return value
    if isinstance(value, BaseException):
        return ErrorInfo.from_exception(value)
    if isinstance(value, Mapping) and value.get("type"):
        return ErrorInfo(class_name=str(value["type"]), message=str(value.get("message") or ""))
    return None


def record_from_event(event_dict: EventDict) -> LogRecord:
    """Build a LogRecord from a processed structlog event dict.

    Expects the keys produced by the pipeline in `logvault.logging.core`:
    timestamp, level, logger, thread, message, and optionally `_error` (the
    exception summary written by `add_error_info`) and context. An unparseable
    timestamp falls back to the current time.
    """
    context = event_dict.get("context")
    if not isinstance(context, Mapping):
        context = {}
    return LogRecord(
        timestamp=_coerce_timestamp(event_dict.get("timestamp")),
        level=str(event_dict.get("level", "info")).upper(),
        logger_name=str(event_dict.get("logger", "root")),
        thread_name=str(event_dict.get("thread", "")),
        message=str(event_dict.get("message", event_dict.get("event", ""))),
        error=_coerce_error(event_dict.get("_error")),
        context={str(k): str(v) for k, v in context.items()},
    )
