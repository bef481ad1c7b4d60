"""
MongoDB log sink.

Persists one document per log event into a collection carrying a TTL index
on `timestamp`, so retention is enforced by the server.

Lifecycle:
    UNINITIALIZED --start()--> DISABLED           (enabled == False)
    UNINITIALIZED --start()--> FAILED_TO_START    (blank URI, client error)
    UNINITIALIZED --start()--> STARTING --> STARTED
    any           --stop()---> STOPPED            (DISABLED stays DISABLED)

Nothing raised inside the sink reaches the caller. Failures are reported to
the `StatusManager`; a failed write drops the event. There is no retry and no
buffering: each `append` makes at most one insert on the calling thread, and
how long that may block is governed by the client's own timeouts.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from pymongo import MongoClient
from pymongo.errors import ConfigurationError
from structlog.typing import EventDict

from logvault.config.mongo import MongoSinkSettings

from .records import LogRecord, build_document, record_from_event
from .retention import ensure_retention_index, retention_index_spec
from .sinks import BaseSink
from .status import StatusManager, status_manager


class SinkState(str, Enum):
    UNINITIALIZED = "uninitialized"
    STARTING = "starting"
    STARTED = "started"
    STOPPED = "stopped"
    DISABLED = "disabled"
    FAILED_TO_START = "failed_to_start"


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    CONNECTION = "connection"
    INDEX = "index"
    WRITE = "write"


@dataclass(frozen=True)
class SinkError:
    kind: ErrorKind
    message: str
    cause: Optional[BaseException] = None


ClientFactory = Callable[..., Any]


class MongoSink(BaseSink):
    """Best-effort MongoDB sink with a strict start/stop lifecycle.

    Args:
        settings: Connection, collection and retention configuration.
        client_factory: Callable building the client from a URI and keyword
            options; `pymongo.MongoClient` unless a test substitutes it.
        status: Self-report channel (default: the module-level manager).
    """

    origin = "MongoSink"

    def __init__(
        self,
        settings: MongoSinkSettings | None = None,
        *,
        client_factory: ClientFactory = MongoClient,
        status: StatusManager | None = None,
    ):
        self._settings = settings or MongoSinkSettings()
        self._client_factory = client_factory
        self._status = status or status_manager
        self._state = SinkState.UNINITIALIZED
        self._client: Any = None
        self._collection: Any = None
        self._guard = threading.local()

    @property
    def settings(self) -> MongoSinkSettings:
        return self._settings

    @property
    def state(self) -> SinkState:
        return self._state

    @property
    def started(self) -> bool:
        return self._state is SinkState.STARTED

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        if self._state is not SinkState.UNINITIALIZED:
            return
        if not self._settings.enabled:
            self._state = SinkState.DISABLED
            return
        if not self._settings.uri.strip():
            self._fail(SinkError(ErrorKind.CONFIGURATION, "MongoDB URI is missing"))
            return

        self._state = SinkState.STARTING
        error = self._connect()
        if error is not None:
            self._fail(error)
            return

        # Retention is advisory: the sink accepts writes even without the index.
        index_error = self._provision_retention_index()
        if index_error is not None:
            self._report(index_error)

        self._state = SinkState.STARTED

    def stop(self) -> None:
        if self._state is SinkState.DISABLED:
            return
        client = self._client
        self._client = None
        self._collection = None
        if client is not None:
            self._release_client(client)
        self._state = SinkState.STOPPED

    def close(self) -> None:
        self.stop()

    def _release_client(self, client: Any) -> None:
        try:
            client.close()
        except Exception as exc:
            self._report(SinkError(ErrorKind.CONNECTION, "Failed to close MongoDB client", exc))

    def _client_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {
            "serverSelectionTimeoutMS": self._settings.server_selection_timeout_ms,
            "tz_aware": True,
        }
        if self._settings.app_name:
            options["appname"] = self._settings.app_name
        return options

    def _connect(self) -> SinkError | None:
        client = None
        try:
            client = self._client_factory(self._settings.uri, **self._client_options())
            database = client.get_default_database(default=self._settings.default_database)
            collection = database.get_collection(self._settings.collection)
        except Exception as exc:
            if client is not None:
                self._release_client(client)
            kind = ErrorKind.CONFIGURATION if isinstance(exc, (ConfigurationError, ValueError)) else ErrorKind.CONNECTION
            return SinkError(kind, f"Failed to start MongoSink: {exc}", exc)

        self._client = client
        self._collection = collection
        return None

    def _provision_retention_index(self) -> SinkError | None:
        try:
            spec = retention_index_spec(self._settings.retention_days)
            ensure_retention_index(self._collection, spec)
        except Exception as exc:
            return SinkError(ErrorKind.INDEX, "Failed to create TTL index", exc)
        return None

    # -------------------------------------------------------------------------
    # Write path
    # -------------------------------------------------------------------------

    def append(self, record: LogRecord) -> None:
        """Persist one record. Never raises."""
        collection = self._collection
        if collection is None or self._state is not SinkState.STARTED:
            return
        # Driver logging emitted during our own insert must not recurse.
        if getattr(self._guard, "active", False):
            return
        self._guard.active = True
        try:
            error = self._write(collection, record)
        finally:
            self._guard.active = False
        if error is not None:
            self._report(error)

    def emit(self, event_dict: EventDict) -> None:
        if not self.started:
            return
        try:
            record = record_from_event(event_dict)
        except Exception as exc:
            self._report(SinkError(ErrorKind.WRITE, "Failed to map log event", exc))
            return
        self.append(record)

    def _write(self, collection: Any, record: LogRecord) -> SinkError | None:
        try:
            collection.insert_one(build_document(record).to_mongo())
        except Exception as exc:
            return SinkError(ErrorKind.WRITE, "Failed to write log to MongoDB", exc)
        return None

    # -------------------------------------------------------------------------
    # Self-report
    # -------------------------------------------------------------------------

    def _fail(self, error: SinkError) -> None:
        self._state = SinkState.FAILED_TO_START
        self._report(error)

    def _report(self, error: SinkError) -> None:
        self._status.error(f"{self.origin}[{error.kind.value}]", error.message, error.cause)
