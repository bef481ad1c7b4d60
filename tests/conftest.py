import typing as t
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import structlog

from logvault.config.mongo import MongoSinkSettings
from logvault.logging import core as logging_core
from logvault.logging.records import LogRecord
from logvault.logging.sinks import BaseSink
from logvault.logging.status import StatusManager


class CollectingSink(BaseSink):
    """In-memory sink recording every event dict it receives."""

    def __init__(self) -> None:
        self.events: list[dict] = []
        self.started = False
        self.closed = False

    def start(self) -> None:
        self.started = True

    def emit(self, event_dict: dict) -> None:
        self.events.append(dict(event_dict))

    def close(self) -> None:
        self.closed = True


class FakeMongo:
    """MagicMock-backed stand-in for a pymongo client, its database and collection."""

    def __init__(self) -> None:
        self.client = MagicMock(name="MongoClient()")
        self.database = self.client.get_default_database.return_value
        self.collection = self.database.get_collection.return_value
        self.factory = MagicMock(name="MongoClient", return_value=self.client)

    @property
    def inserted(self) -> list[dict]:
        return [c.args[0] for c in self.collection.insert_one.call_args_list]


@pytest.fixture
def status() -> StatusManager:
    return StatusManager(echo=False)


@pytest.fixture
def fake_mongo() -> FakeMongo:
    return FakeMongo()


@pytest.fixture
def mongo_settings() -> t.Callable[..., MongoSinkSettings]:
    def _make(**overrides: t.Any) -> MongoSinkSettings:
        values = {"uri": "mongodb://localhost:27017/applogs", **overrides}
        return MongoSinkSettings(_env_file=None, **values)

    return _make


@pytest.fixture
def make_record() -> t.Callable[..., LogRecord]:
    def _make(**overrides: t.Any) -> LogRecord:
        values = {
            "timestamp": datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
            "level": "INFO",
            "logger_name": "svc.x",
            "thread_name": "t1",
            "message": "hello",
            **overrides,
        }
        return LogRecord(**values)

    return _make


@pytest.fixture
def collector() -> CollectingSink:
    return CollectingSink()


@pytest.fixture(autouse=True)
def reset_logging_pipeline():
    """Leave structlog, stdlib root handlers and bound context as they were."""
    yield
    logging_core.shutdown_logging()
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()
