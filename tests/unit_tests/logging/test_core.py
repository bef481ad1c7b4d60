"""
End-to-end pipeline tests: structlog / stdlib -> processors -> sinks.
"""

from __future__ import annotations

import io
import logging
import sys
import threading
from datetime import datetime, timezone

import pytest

from logvault.config import Settings
from logvault.logging import (
    MongoSink,
    SinkState,
    bind_context,
    bound_context,
    configure_from_settings,
    configure_logging,
    get_logger,
    get_sinks,
    shutdown_logging,
    status_manager,
)
from logvault.logging.formatters import ConsoleFormatter
from logvault.logging.io import StreamToLogger
from logvault.logging.sinks import BaseSink, StdioSink
from logvault.logging.status import StatusLevel


class ExplodingSink(BaseSink):
    def emit(self, event_dict) -> None:
        raise RuntimeError("sink is broken")

    def close(self) -> None:
        pass


class TestConfigureLogging:
    def test_sinks_are_started_and_returned(self, collector) -> None:
        sinks = configure_logging(sinks="", extra_sinks=[collector], status_echo=False)

        assert sinks == (collector,)
        assert get_sinks() == (collector,)
        assert collector.started

    def test_named_sinks(self, tmp_path) -> None:
        sinks = configure_logging(sinks="stdio, file", file_path=str(tmp_path / "app.log"), status_echo=False)
        assert [type(s).__name__ for s in sinks] == ["StdioSink", "FileSink"]

    def test_unknown_sink_name_is_ignored(self, collector) -> None:
        sinks = configure_logging(sinks="carrier-pigeon", extra_sinks=[collector], status_echo=False)
        assert sinks == (collector,)

    def test_reconfigure_closes_previous_sinks(self, collector) -> None:
        configure_logging(sinks="", extra_sinks=[collector], status_echo=False)
        configure_logging(sinks="", status_echo=False)
        assert collector.closed

    def test_reattaching_a_closed_sink_is_reported(self, mongo_settings, fake_mongo, status) -> None:
        sink = MongoSink(mongo_settings(), client_factory=fake_mongo.factory, status=status)
        configure_logging(sinks="", extra_sinks=[sink], status_echo=False)
        status_manager.clear()

        configure_logging(sinks="", extra_sinks=[sink], status_echo=False)
        get_logger("svc.x").info("dropped")

        assert sink.state is SinkState.STOPPED
        fake_mongo.collection.insert_one.assert_not_called()
        [entry] = status_manager.entries(StatusLevel.WARN)
        assert "MongoSink" in entry.message

    def test_shutdown_closes_sinks(self, collector) -> None:
        configure_logging(sinks="", extra_sinks=[collector], status_echo=False)

        shutdown_logging()

        assert collector.closed
        assert get_sinks() == ()

    def test_mongo_sink_by_name_with_blank_uri_does_not_raise(self, mongo_settings) -> None:
        [sink] = configure_logging(sinks="mongo", mongo=mongo_settings(uri=""), status_echo=False)

        assert isinstance(sink, MongoSink)
        assert sink.state is SinkState.FAILED_TO_START
        get_logger("svc").info("still fine")

    def test_configure_from_settings(self, monkeypatch, collector) -> None:
        monkeypatch.setenv("LV_LOG_SINKS", "mongo")
        monkeypatch.setenv("LV_MONGO_ENABLED", "false")

        [sink] = configure_from_settings(Settings())

        assert isinstance(sink, MongoSink)
        assert sink.state is SinkState.DISABLED

    def test_console_layout_from_settings(self, monkeypatch) -> None:
        for attr in ("TIMESTAMP_FORMAT", "LEVEL_WIDTH", "LOGGER_WIDTH", "SEPARATOR"):
            monkeypatch.setattr(ConsoleFormatter, attr, getattr(ConsoleFormatter, attr))
        monkeypatch.setenv("LV_LOG_SINKS", "")
        monkeypatch.setenv("LV_LOG_CONSOLE_SEPARATOR", " :: ")
        monkeypatch.setenv("LV_LOG_CONSOLE_LOGGER_WIDTH", "6")

        configure_from_settings(Settings())

        line = ConsoleFormatter.format({"level": "info", "logger": "svc.payroll", "message": "x"}, use_color=False)
        assert line.split(" :: ")[2] == "...oll"


class TestProcessors:
    def test_structlog_event_shape(self, collector) -> None:
        configure_logging(sinks="", extra_sinks=[collector], status_echo=False)

        get_logger("svc.x").info("hello", requestId="abc123")

        [event] = collector.events
        assert event["message"] == "hello"
        assert event["level"] == "info"
        assert event["logger"] == "svc.x"
        assert event["thread"] == threading.current_thread().name
        assert isinstance(event["timestamp"], datetime)
        assert event["timestamp"].tzinfo is not None
        assert event["context"] == {"requestId": "abc123"}
        assert "event" not in event
        assert "_error" not in event

    def test_no_context_key_when_nothing_bound(self, collector) -> None:
        configure_logging(sinks="", extra_sinks=[collector], status_echo=False)
        get_logger("svc.x").info("bare")
        assert "context" not in collector.events[0]

    def test_bound_context_is_merged(self, collector) -> None:
        configure_logging(sinks="", extra_sinks=[collector], status_echo=False)

        bind_context(tenant="acme")
        with bound_context(requestId="abc123"):
            get_logger("svc.x").info("inside")
        get_logger("svc.x").info("outside")

        inside, outside = collector.events
        assert inside["context"] == {"tenant": "acme", "requestId": "abc123"}
        assert outside["context"] == {"tenant": "acme"}

    def test_exception_info(self, collector) -> None:
        configure_logging(sinks="", extra_sinks=[collector], status_echo=False)

        try:
            raise OSError("disk full")
        except OSError:
            get_logger("svc.x").exception("boom")

        [event] = collector.events
        assert event["level"] == "error"
        assert event["_error"] == {"type": "OSError", "message": "disk full"}
        assert "OSError: disk full" in event["exception"]
        assert "exc_info" not in event

    def test_level_filtering(self, collector) -> None:
        configure_logging(level="WARNING", sinks="", extra_sinks=[collector], status_echo=False)

        log = get_logger("svc.x")
        log.info("dropped")
        log.warning("kept")

        assert [e["message"] for e in collector.events] == ["kept"]

    def test_broken_sink_does_not_reach_caller(self, collector) -> None:
        configure_logging(sinks="", extra_sinks=[ExplodingSink(), collector], status_echo=False)

        get_logger("svc.x").error("still delivered")

        assert [e["message"] for e in collector.events] == ["still delivered"]


class TestCallSiteKeys:
    """Keyword arguments that share a name with a pipeline field."""

    @pytest.fixture
    def stored(self, mongo_settings, fake_mongo, status):
        sink = MongoSink(mongo_settings(), client_factory=fake_mongo.factory, status=status)
        configure_logging(sinks="", extra_sinks=[sink], status_echo=False)
        return fake_mongo

    @pytest.mark.parametrize(
        ("kwargs", "context"),
        [
            ({"context": "req-1"}, {"context": "req-1"}),
            ({"context": {"requestId": 7}}, {"requestId": "7"}),
            ({"context": ["a", "b"]}, {"context": "['a', 'b']"}),
            ({"error": "disk full"}, {"error": "disk full"}),
            ({"exception": "quota exceeded"}, {"exception": "quota exceeded"}),
            ({"message": "shadowed"}, {"message": "shadowed"}),
            ({"level": "debug"}, {"level": "debug"}),
            ({"stack": "top"}, {"stack": "top"}),
        ],
        ids=["context-str", "context-mapping", "context-list", "error", "exception", "message", "level", "stack"],
    )
    def test_value_is_kept_as_context(self, stored, kwargs, context) -> None:
        get_logger("svc").warning("upload failed", **kwargs)

        [doc] = stored.inserted
        assert doc["message"] == "upload failed"
        assert doc["level"] == "WARNING"
        assert doc["context"] == context
        assert "exception" not in doc

    def test_exception_kwarg_next_to_real_exception(self, stored) -> None:
        try:
            raise OSError("disk full")
        except OSError:
            get_logger("svc").exception("boom", exception="quota exceeded")

        [doc] = stored.inserted
        assert doc["exception"] == "OSError: disk full"
        assert doc["context"] == {"exception": "quota exceeded"}

    def test_explicit_timestamp_overrides_clock(self, stored) -> None:
        ts = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)

        get_logger("svc").info("replayed", timestamp=ts)

        [doc] = stored.inserted
        assert doc["timestamp"] == ts
        assert "context" not in doc

    def test_unparseable_timestamp_uses_clock(self, stored) -> None:
        before = datetime.now(timezone.utc)

        get_logger("svc").info("replayed", timestamp="not a date")

        [doc] = stored.inserted
        assert doc["timestamp"] >= before


class TestStdlibRedirect:
    def test_stdlib_record_is_forwarded(self, collector) -> None:
        configure_logging(sinks="", extra_sinks=[collector], status_echo=False)

        logging.getLogger("svc.stdlib").warning("hello %s", "world")

        [event] = collector.events
        assert event["message"] == "hello world"
        assert event["logger"] == "svc.stdlib"
        assert event["level"] == "warning"
        assert event["thread"] == threading.current_thread().name

    def test_stdlib_exception_is_forwarded(self, collector) -> None:
        configure_logging(sinks="", extra_sinks=[collector], status_echo=False)

        try:
            raise ValueError("bad payroll line")
        except ValueError:
            logging.getLogger("svc.stdlib").exception("parse failed")

        [event] = collector.events
        assert event["message"] == "parse failed"
        assert event["_error"] == {"type": "ValueError", "message": "bad payroll line"}

    def test_driver_loggers_are_capped(self, collector) -> None:
        configure_logging(level="DEBUG", sinks="", extra_sinks=[collector], status_echo=False)

        logging.getLogger("pymongo.command").debug("command started")

        assert collector.events == []


class TestEndToEndMongo:
    def test_exception_reaches_collection(self, mongo_settings, fake_mongo, status) -> None:
        sink = MongoSink(mongo_settings(retention_days=7), client_factory=fake_mongo.factory, status=status)
        configure_logging(sinks="", extra_sinks=[sink], status_echo=False)

        try:
            raise OSError("disk full")
        except OSError:
            get_logger("svc.x").exception("boom")

        [doc] = fake_mongo.inserted
        assert doc["level"] == "ERROR"
        assert doc["logger"] == "svc.x"
        assert doc["message"] == "boom"
        assert doc["exception"] == "OSError: disk full"
        assert "context" not in doc

    def test_context_reaches_collection(self, mongo_settings, fake_mongo, status) -> None:
        sink = MongoSink(mongo_settings(), client_factory=fake_mongo.factory, status=status)
        configure_logging(sinks="", extra_sinks=[sink], status_echo=False)

        with bound_context(requestId="abc123"):
            logging.getLogger("svc.api").info("request done")

        [doc] = fake_mongo.inserted
        assert doc["context"] == {"requestId": "abc123"}

    def test_plain_error_kwarg_is_persisted(self, mongo_settings, fake_mongo, status) -> None:
        sink = MongoSink(mongo_settings(), client_factory=fake_mongo.factory, status=status)
        configure_logging(sinks="", extra_sinks=[sink], status_echo=False)

        get_logger("svc").warning("upload failed", error="disk full", file="a.pdf")

        [doc] = fake_mongo.inserted
        assert doc["context"] == {"error": "disk full", "file": "a.pdf"}
        assert "exception" not in doc

    def test_shutdown_stops_mongo_sink(self, mongo_settings, fake_mongo, status) -> None:
        sink = MongoSink(mongo_settings(), client_factory=fake_mongo.factory, status=status)
        configure_logging(sinks="", extra_sinks=[sink], status_echo=False)

        shutdown_logging()
        get_logger("svc.x").info("after shutdown")

        assert sink.state is SinkState.STOPPED
        fake_mongo.collection.insert_one.assert_not_called()


class TestStreamCapture:
    def test_prints_become_events(self, collector) -> None:
        original = sys.stdout
        configure_logging(sinks="", extra_sinks=[collector], capture_streams=True, status_echo=False)
        try:
            assert isinstance(sys.stdout, StreamToLogger)
            print("hello from print")
        finally:
            shutdown_logging()

        assert sys.stdout is original
        [event] = collector.events
        assert event["logger"] == "stdout"
        assert event["message"] == "hello from print"

    def test_partial_lines_are_buffered(self, collector) -> None:
        configure_logging(sinks="", extra_sinks=[collector], status_echo=False)
        stream = StreamToLogger(get_logger("stdout"), logging.INFO, io.StringIO())

        stream.write("par")
        stream.write("tial\nrest")
        assert [e["message"] for e in collector.events] == ["partial"]

        stream.flush()
        assert [e["message"] for e in collector.events] == ["partial", "rest"]

    def test_stdio_sink_bypasses_captured_stdout(self) -> None:
        configure_logging(sinks="", capture_streams=True, status_echo=False)
        [sink] = configure_logging(sinks="stdio", status_echo=False)

        assert isinstance(sink, StdioSink)
        assert not isinstance(sink._stream, StreamToLogger)


@pytest.fixture(autouse=True)
def _restore_streams():
    stdout, stderr = sys.stdout, sys.stderr
    yield
    sys.stdout, sys.stderr = stdout, stderr
