"""Tests for the buffered Logger, its records, and child loggers.

Tests use the AAA pattern (Arrange-Act-Assert) for clarity.
"""

from __future__ import annotations

import pytest

from axiom_asgi import __version__
from axiom_asgi.config import AxiomConfig
from axiom_asgi.levels import LogLevel
from axiom_asgi.logger import LogBuffer, LogEvent, Logger, RequestReport, to_jsonable

from tests.conftest import RecordingTransport


@pytest.fixture
def logger(unconfigured: AxiomConfig, transport: RecordingTransport) -> Logger:
    return Logger(source="lambda", config=unconfigured, transport=transport)


def make_report(**overrides) -> RequestReport:
    values = dict(start_time=1_000, end_time=1_000, path="/api/users", method="GET")
    values.update(overrides)
    return RequestReport(**values)


# ============================================================================
# Tests: RequestReport
# ============================================================================


class TestRequestReport:
    """Tests for the request report lifecycle."""

    def test_start_sets_end_time_equal_to_start_time(self):
        report = RequestReport.start(path="/", method="GET")

        assert report.end_time == report.start_time
        assert report.status_code is None
        assert report.duration_ms is None

    def test_finish_derives_duration(self):
        # Arrange
        report = make_report()
        report.end_time = 1_042

        # Act
        report.finish(201)

        # Assert
        assert report.status_code == 201
        assert report.duration_ms == 42

    def test_finish_twice_raises(self):
        report = make_report()
        report.finish(200)

        with pytest.raises(RuntimeError, match="already finished"):
            report.finish(500)

    def test_to_dict_uses_camel_case_and_drops_none(self):
        # Arrange
        report = make_report(user_agent="pytest", host=None)
        report.end_time = 1_005
        report.finish(200)

        # Act
        data = report.to_dict()

        # Assert
        assert data == {
            "startTime": 1_000,
            "endTime": 1_005,
            "path": "/api/users",
            "method": "GET",
            "userAgent": "pytest",
            "statusCode": 200,
            "durationMs": 5,
        }

    def test_summary_line(self):
        report = make_report()
        report.end_time = 1_012
        report.finish(404)

        assert report.summary == "GET /api/users 404 in 12ms"

    def test_accepts_camel_case_keys(self):
        # Act
        report = RequestReport.model_validate(
            {"startTime": 5, "endTime": 9, "path": "/", "method": "POST", "userAgent": "curl"}
        )

        # Assert
        assert report.user_agent == "curl"
        assert report.to_dict()["userAgent"] == "curl"

    def test_details_made_json_safe(self):
        # Arrange
        class Opaque:
            def __str__(self) -> str:
                return "opaque"

        # Act
        report = make_report(details={"body": Opaque(), "tags": ("a", "b")})

        # Assert
        assert report.to_dict()["details"] == {"body": "opaque", "tags": ["a", "b"]}


# ============================================================================
# Tests: Emission and filtering
# ============================================================================


class TestEmission:
    """Tests for event creation."""

    async def test_event_wire_format(self, logger: Logger, transport: RecordingTransport):
        # Act
        logger.info("hello", {"user": 7})
        await logger.flush()

        # Assert
        [event] = transport.events
        assert event["level"] == "info"
        assert event["message"] == "hello"
        assert event["source"] == "lambda"
        assert event["fields"] == {"user": 7}
        assert event["@app"] == {"axiom-asgi-version": __version__}
        assert event["_time"].endswith("Z")
        assert event["platform"]["source"] == "lambda"
        assert "request" not in event

    async def test_exception_fields_are_rendered(self, logger: Logger, transport: RecordingTransport):
        try:
            raise ValueError("bad input")
        except ValueError as e:
            logger.error("failed", e)
        await logger.flush()

        fields = transport.events[0]["fields"]
        assert fields["name"] == "ValueError"
        assert fields["message"] == "bad input"
        assert "Traceback" in fields["stack"]

    async def test_non_mapping_fields_go_under_args(self, logger: Logger, transport: RecordingTransport):
        logger.debug("values", [1, 2, 3])
        await logger.flush()

        assert transport.events[0]["fields"] == {"args": [1, 2, 3]}

    def test_events_below_threshold_are_dropped(self, unconfigured: AxiomConfig, transport: RecordingTransport):
        # Arrange
        logger = Logger(config=unconfigured, transport=transport, log_level="warn")

        # Act
        logger.debug("d")
        logger.info("i")
        logger.warn("w")
        logger.error("e")

        # Assert
        assert [event.message for event in logger.buffer] == ["w", "e"]

    def test_off_drops_everything(self, unconfigured: AxiomConfig, transport: RecordingTransport):
        logger = Logger(config=unconfigured, transport=transport, log_level=LogLevel.OFF)

        logger.error("e")

        assert len(logger.buffer) == 0

    def test_http_request_ignores_threshold(self, unconfigured: AxiomConfig, transport: RecordingTransport):
        logger = Logger(config=unconfigured, transport=transport, log_level="error")

        logger.log_http_request(LogLevel.INFO, "GET / 200 in 1ms", make_report())

        assert len(logger.buffer) == 1

    async def test_http_request_carries_report_and_route(self, logger: Logger, transport: RecordingTransport):
        # Arrange
        report = make_report()
        report.finish(200)

        # Act
        logger.log_http_request(LogLevel.INFO, report.summary, report)
        await logger.flush()

        # Assert
        [event] = transport.events
        assert event["request"]["statusCode"] == 200
        assert event["request"]["path"] == "/api/users"
        assert event["platform"]["route"] == "/api/users"


# ============================================================================
# Tests: Child loggers
# ============================================================================


class TestChildLoggers:
    """Tests for with_fields() derivation."""

    def test_child_shares_buffer_and_transport(self, logger: Logger):
        child = logger.with_fields({"request_id": "r1"})

        assert child.buffer is logger.buffer
        assert child.transport is logger.transport

    async def test_child_events_flushed_by_parent(self, logger: Logger, transport: RecordingTransport):
        # Arrange
        child = logger.with_fields({"request_id": "r1"}, source="lambda-log")

        # Act
        child.info("from child")
        logger.info("from parent")
        await logger.flush()

        # Assert
        assert [e["message"] for e in transport.events] == ["from child", "from parent"]
        assert transport.events[0]["fields"] == {"request_id": "r1"}
        assert transport.events[0]["source"] == "lambda-log"
        assert transport.events[1]["fields"] == {}

    def test_child_fields_merge_over_parent(self, unconfigured: AxiomConfig, transport: RecordingTransport):
        parent = Logger(fields={"a": 1, "b": 1}, config=unconfigured, transport=transport)

        child = parent.with_fields({"b": 2})

        assert child.fields == {"a": 1, "b": 2}
        assert parent.fields == {"a": 1, "b": 1}

    async def test_attach_status_applies_to_past_and_future_child_events(
        self, logger: Logger, transport: RecordingTransport
    ):
        # Arrange
        child = logger.with_fields()
        child.info("before")
        logger.info("parent event")

        # Act
        child.attach_response_status(418)
        child.info("after")
        await logger.flush()

        # Assert
        by_message = {e["message"]: e for e in transport.events}
        assert by_message["before"]["request"]["statusCode"] == 418
        assert by_message["after"]["request"]["statusCode"] == 418
        assert "request" not in by_message["parent event"]


# ============================================================================
# Tests: Flush
# ============================================================================


class TestFlush:
    """Tests for draining the buffer."""

    async def test_flush_drains_buffer(self, logger: Logger, transport: RecordingTransport):
        logger.info("one")

        await logger.flush()

        assert len(logger.buffer) == 0
        assert len(transport.batches) == 1

    async def test_empty_flush_sends_nothing(self, logger: Logger, transport: RecordingTransport):
        await logger.flush()

        assert transport.batches == []

    async def test_repeated_flush_ships_only_new_events(self, logger: Logger, transport: RecordingTransport):
        logger.info("one")
        await logger.flush()
        logger.info("two")
        await logger.flush()

        assert [[e["message"] for e in batch] for batch in transport.batches] == [["one"], ["two"]]

    async def test_failed_send_does_not_requeue(self, unconfigured: AxiomConfig):
        # Arrange
        class FailingTransport:
            async def send(self, events):
                raise ConnectionError("down")

        logger = Logger(config=unconfigured, transport=FailingTransport())
        logger.info("lost")

        # Act
        with pytest.raises(ConnectionError):
            await logger.flush()

        # Assert
        assert len(logger.buffer) == 0


class TestHelpers:
    def test_event_model_wire_keys(self):
        # Arrange
        event = LogEvent(level=LogLevel.WARN, message="m", time="2025-01-01T00:00:00.000Z", source="lambda")

        # Act
        data = event.to_dict()

        # Assert
        assert data["_time"] == "2025-01-01T00:00:00.000Z"
        assert data["level"] == "warn"
        assert "time" not in data
        assert "context" not in data
        assert "platform" not in data

    def test_to_jsonable_renders_exceptions(self):
        result = to_jsonable({"error": KeyError("k")})

        assert result["error"]["name"] == "KeyError"
        assert "stack" in result["error"]

    def test_empty_buffer_drains_to_empty_list(self):
        buffer = LogBuffer()
        assert buffer.drain() == []

    def test_to_jsonable_renders_unknown_objects_as_str(self):
        class Thing:
            def __str__(self) -> str:
                return "thing"

        assert to_jsonable({"k": (Thing(), {1})}) == {"k": ["thing", [1]]}
