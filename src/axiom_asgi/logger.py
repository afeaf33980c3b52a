"""Buffered structured logger that ships events to Axiom.

A Logger appends LogEvents to a LogBuffer; flush() drains the buffer and
hands the batch to a transport in a single attempt. Child loggers created
with with_fields() share their parent's buffer and transport by reference
and only carry a lightweight context overlay (source, fields, report,
attached status). Whichever handle produced an event, one flush ships it.

Example usage:
    logger = Logger(source="lambda")
    log = logger.with_fields({"user_id": 42})
    log.info("checkout started", {"cart_size": 3})
    await logger.flush()
"""

from __future__ import annotations

__all__ = [
    "LogBuffer",
    "LogContext",
    "LogEvent",
    "Logger",
    "RequestReport",
    "now_ms",
    "to_jsonable",
]

import time
import traceback
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_serializer, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import to_jsonable_python

from axiom_asgi import __version__
from axiom_asgi.config import AxiomConfig, get_config
from axiom_asgi.levels import LogLevel

if TYPE_CHECKING:
    from axiom_asgi.transport import LogTransport


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def _iso_timestamp() -> str:
    """ISO 8601 UTC timestamp with milliseconds, e.g. 2025-12-04T10:48:37.123Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _fallback(value: Any) -> Any:
    if isinstance(value, BaseException):
        return {
            "name": type(value).__name__,
            "message": str(value),
            "stack": "".join(traceback.format_exception(type(value), value, value.__traceback__)),
        }
    return str(value)


def to_jsonable(value: Any) -> Any:
    """Convert a value into something json.dumps accepts.

    Exceptions become {name, message, stack}; anything pydantic cannot
    serialize is rendered with str().
    """
    return to_jsonable_python(value, fallback=_fallback)


# =============================================================================
# Records
# =============================================================================


class RequestReport(BaseModel):
    """Telemetry for one inbound request.

    Created at the start of a wrapped invocation with end_time == start_time,
    completed exactly once by finish(). Owned by that invocation only.
    Serialized with camelCase keys ("startTime", "statusCode", ...).
    """

    start_time: int
    end_time: int
    path: str
    method: str
    host: Optional[str] = None
    user_agent: Optional[str] = None
    scheme: Optional[str] = None
    ip: Optional[str] = None
    region: Optional[str] = None
    status_code: Optional[int] = None
    duration_ms: Optional[int] = None
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("details", mode="before")
    @classmethod
    def _jsonable_details(cls, value: Any) -> Any:
        return to_jsonable(value) if value is not None else None

    @classmethod
    def start(cls, *, path: str, method: str, **kwargs: Any) -> "RequestReport":
        started = now_ms()
        return cls(start_time=started, end_time=started, path=path, method=method, **kwargs)

    def mark_end(self) -> None:
        """Stamp end_time with the current time."""
        self.end_time = now_ms()

    def finish(self, status_code: int) -> None:
        """Record the final status and duration.

        Args:
            status_code: HTTP status of the completed request.

        Raises:
            RuntimeError: If the report was already finished.
        """
        if self.status_code is not None:
            raise RuntimeError("request report already finished")
        self.status_code = status_code
        self.duration_ms = self.end_time - self.start_time

    @property
    def summary(self) -> str:
        """One-line description, e.g. "GET /api/users 200 in 12ms"."""
        return f"{self.method} {self.path} {self.status_code} in {self.end_time - self.start_time}ms"

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


@dataclass(slots=True)
class LogContext:
    """Per-handle overlay merged into every event a logger emits."""

    source: str
    fields: dict[str, Any] = field(default_factory=dict)
    report: RequestReport | None = None
    status_code: int | None = None


class LogEvent(BaseModel):
    """One buffered log record.

    Attributes:
        level: Event severity, serialized as its label ("warn").
        message: Human-readable message.
        time: ISO 8601 UTC timestamp, serialized as "_time".
        source: Source tag ("lambda", "edge-log", ...).
        fields: Structured fields (already JSON-safe).
        request: Request report the event belongs to, shared by reference.
        platform: Platform metadata block.
        status_code: Response status attached after the handler completed.
        context: Overlay of the logger handle that emitted the event.
    """

    level: LogLevel
    message: str
    time: str = Field(serialization_alias="_time")
    source: str
    fields: Dict[str, Any] = Field(default_factory=dict)
    request: Optional[RequestReport] = None
    platform: Optional[Dict[str, Any]] = None
    status_code: Optional[int] = None
    context: Any = Field(default=None, exclude=True, repr=False)

    @field_serializer("level")
    def _serialize_level(self, level: LogLevel) -> str:
        return level.label

    @computed_field(alias="@app")  # type: ignore[prop-decorator]
    @property
    def app(self) -> dict[str, str]:
        return {"axiom-asgi-version": __version__}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the Axiom ingest wire format."""
        data = self.model_dump(
            by_alias=True,
            exclude_none=True,
            mode="json",
            exclude={"request", "status_code"},
        )
        request = self.request.to_dict() if self.request is not None else {}
        if self.status_code is not None:
            request["statusCode"] = self.status_code
        if request:
            data["request"] = request
        return data


class LogBuffer:
    """Ordered list of pending events shared by a logger and its children."""

    def __init__(self) -> None:
        self._events: list[LogEvent] = []

    def append(self, event: LogEvent) -> None:
        self._events.append(event)

    def drain(self) -> list[LogEvent]:
        """Remove and return every pending event."""
        events, self._events = self._events, []
        return events

    def __iter__(self) -> Iterator[LogEvent]:
        return iter(list(self._events))

    def __len__(self) -> int:
        return len(self._events)


# =============================================================================
# Logger
# =============================================================================


class Logger:
    """Structured logger with a shared event buffer.

    Events below the configured level are dropped. log_http_request() always
    records, because it carries the request report itself.
    """

    def __init__(
        self,
        *,
        source: str = "lambda",
        fields: Mapping[str, Any] | None = None,
        report: RequestReport | None = None,
        config: AxiomConfig | None = None,
        transport: "LogTransport | None" = None,
        log_level: LogLevel | str | None = None,
        buffer: LogBuffer | None = None,
    ) -> None:
        """Initialize a root logger.

        Args:
            source: Source tag attached to every event.
            fields: Base fields merged into every event.
            report: Request report attached to every event.
            config: Axiom configuration. Defaults to get_config().
            transport: Where flush() sends events. Defaults to create_transport(config).
            log_level: Minimum level. Defaults to config.log_level.
            buffer: Existing buffer to share (used for child loggers).
        """
        self._config = config or get_config()
        self._transport = transport
        self._log_level = LogLevel.parse(log_level) if log_level is not None else self._config.log_level
        self._buffer = buffer if buffer is not None else LogBuffer()
        self._context = LogContext(source=source, fields=dict(fields or {}), report=report)

    @property
    def source(self) -> str:
        return self._context.source

    @property
    def fields(self) -> dict[str, Any]:
        return dict(self._context.fields)

    @property
    def log_level(self) -> LogLevel:
        return self._log_level

    @property
    def buffer(self) -> LogBuffer:
        return self._buffer

    @property
    def transport(self) -> "LogTransport":
        """Transport used by flush(), created on first use."""
        if self._transport is None:
            from axiom_asgi.transport import create_transport

            self._transport = create_transport(self._config)
        return self._transport

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    def with_fields(self, fields: Mapping[str, Any] | None = None, *, source: str | None = None) -> "Logger":
        """Derive a child logger that shares this logger's buffer and transport.

        Args:
            fields: Extra fields merged over this logger's fields.
            source: Source tag override for the child.

        Returns:
            Child Logger. Its events are shipped by either handle's flush().
        """
        return Logger(
            source=source or self._context.source,
            fields={**self._context.fields, **(fields or {})},
            report=self._context.report,
            config=self._config,
            transport=self.transport,
            log_level=self._log_level,
            buffer=self._buffer,
        )

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    def debug(self, message: str, fields: Any = None) -> None:
        self.log(LogLevel.DEBUG, message, fields)

    def info(self, message: str, fields: Any = None) -> None:
        self.log(LogLevel.INFO, message, fields)

    def warn(self, message: str, fields: Any = None) -> None:
        self.log(LogLevel.WARN, message, fields)

    def error(self, message: str, fields: Any = None) -> None:
        self.log(LogLevel.ERROR, message, fields)

    def log(self, level: LogLevel | str, message: str, fields: Any = None) -> None:
        """Record an event if its level passes the logger's threshold.

        Args:
            level: Event severity.
            message: Human-readable message.
            fields: Mapping merged into the event fields, an exception
                (recorded as name/message/stack), or any other value
                (recorded under "args").
        """
        level = LogLevel.parse(level)
        if level < self._log_level or level == LogLevel.OFF:
            return
        self._buffer.append(self._build_event(level, message, fields))

    def log_http_request(
        self,
        level: LogLevel | str,
        message: str,
        report: RequestReport,
        fields: Any = None,
    ) -> None:
        """Record the summary event for a completed request.

        Recorded regardless of the logger's threshold.
        """
        event = self._build_event(LogLevel.parse(level), message, fields)
        event.request = report
        event.platform = self._platform_block(report)
        self._buffer.append(event)

    def attach_response_status(self, status_code: int) -> None:
        """Attach the response status to this handle's past and future events.

        Args:
            status_code: Final HTTP status of the request.
        """
        self._context.status_code = status_code
        for event in self._buffer:
            if event.context is self._context:
                event.status_code = status_code

    def _build_event(self, level: LogLevel, message: str, fields: Any) -> LogEvent:
        merged = dict(self._context.fields)
        if isinstance(fields, BaseException):
            merged.update(to_jsonable(fields))
        elif isinstance(fields, Mapping):
            if fields:
                merged.update(to_jsonable(fields))
        elif fields is not None:
            merged["args"] = to_jsonable(fields)

        return LogEvent(
            level=level,
            message=message,
            time=_iso_timestamp(),
            source=self._context.source,
            fields=to_jsonable(merged),
            request=self._context.report,
            platform=self._platform_block(self._context.report),
            status_code=self._context.status_code,
            context=self._context,
        )

    def _platform_block(self, report: RequestReport | None) -> dict[str, Any]:
        platform = self._config.platform_metadata(self._context.source)
        if report is not None:
            platform["route"] = report.path
        return platform

    # ------------------------------------------------------------------
    # Flush
    # ------------------------------------------------------------------

    async def flush(self) -> None:
        """Drain the shared buffer and send the events in one attempt.

        Safe to call repeatedly; each call ships what accumulated since the
        last one. Delivery failures are the transport's to report.
        """
        events = self._buffer.drain()
        if not events:
            return
        await self.transport.send([event.to_dict() for event in events])
