"""Log transports: where a Logger's flushed batch goes.

- HttpTransport: POSTs the batch as a JSON array to the Axiom ingest URL
- ConsoleTransport: prints events to stderr when Axiom is not configured

Transports own delivery. A flush is a single attempt; failures are reported
on the system logger and never raised into request handling.
"""

from __future__ import annotations

__all__ = [
    "ConsoleTransport",
    "HttpTransport",
    "LogTransport",
    "USER_AGENT",
    "close_transports",
    "create_ingest_client",
    "create_transport",
]

import json
import logging
from typing import Any, Protocol, runtime_checkable

import httpx

from axiom_asgi import __version__
from axiom_asgi.config import AxiomConfig
from axiom_asgi.constants import APP_NAME, INGEST_TIMEOUT_SECONDS
from axiom_asgi.system_logger import get_console_logger, get_system_logger

# User-Agent header for ingest requests (informational)
USER_AGENT = f"{APP_NAME}/{__version__}"

_system_logger = get_system_logger()

# Wire level label -> stdlib logging level for console output
_CONSOLE_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

# HTTP transports handed out by create_transport(), keyed by (url, token)
_shared_transports: dict[tuple[str, str | None], HttpTransport] = {}


@runtime_checkable
class LogTransport(Protocol):
    """Sink for serialized log events."""

    async def send(self, events: list[dict[str, Any]]) -> None:
        """Deliver one batch of events."""
        ...


def create_ingest_client(timeout: float = INGEST_TIMEOUT_SECONDS) -> httpx.AsyncClient:
    """Create the pooled httpx client used for log delivery.

    Always includes the axiom-asgi User-Agent header.

    Args:
        timeout: Request timeout in seconds.

    Returns:
        httpx.AsyncClient that stays open until closed by its transport.
    """
    return httpx.AsyncClient(timeout=timeout, headers={"User-Agent": USER_AGENT})


class HttpTransport:
    """Deliver batches to an HTTP ingest endpoint with httpx.

    One client (and its connection pool) is opened on first send and reused
    for every later batch until aclose().

    Usage:
        transport = HttpTransport("https://api.axiom.co/v1/datasets/app/ingest", token="xaat-...")
        await transport.send([event.to_dict()])
        await transport.aclose()
    """

    def __init__(
        self,
        url: str,
        *,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = INGEST_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize HTTP transport.

        Args:
            url: Ingest URL receiving the JSON array of events.
            token: Optional Bearer token.
            client: Caller-owned client. When omitted, the transport creates
                its own on first send and closes it in aclose().
            timeout: Request timeout in seconds.
        """
        self.url = url
        self._token = token
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    @property
    def headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    @property
    def client(self) -> httpx.AsyncClient:
        """Client used for delivery, created on first use."""
        if self._client is None or (self._owns_client and self._client.is_closed):
            self._client = create_ingest_client(self._timeout)
        return self._client

    async def aclose(self) -> None:
        """Close the client if this transport created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send(self, events: list[dict[str, Any]]) -> None:
        """POST the batch once; report failures instead of raising.

        Args:
            events: Serialized events (LogEvent.to_dict()).
        """
        if not events:
            return

        try:
            response = await self.client.post(
                self.url, json=events, headers=self.headers, timeout=self._timeout
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            _system_logger.error(
                {
                    "event": "log_delivery_rejected",
                    "status_code": e.response.status_code,
                    "event_count": len(events),
                    "message": f"Failed to send logs to Axiom: HTTP {e.response.status_code}",
                }
            )
        except httpx.HTTPError as e:
            _system_logger.error(
                {
                    "event": "log_delivery_failed",
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "event_count": len(events),
                    "message": f"Failed to send logs to Axiom: {e}",
                }
            )


class ConsoleTransport:
    """Print events to stderr, one line per event.

    Used when no ingest endpoint is configured so logs stay visible locally.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or get_console_logger()

    @staticmethod
    def format_event(event: dict[str, Any]) -> str:
        """Render an event as "level - message {fields}"."""
        line = f"{event.get('level', 'info')} - {event.get('message', '')}"
        fields = event.get("fields")
        if fields:
            line = f"{line} {json.dumps(fields, default=str)}"
        return line

    async def send(self, events: list[dict[str, Any]]) -> None:
        for event in events:
            level = _CONSOLE_LEVELS.get(str(event.get("level")), logging.INFO)
            self._logger.log(level, self.format_event(event))


def create_transport(config: AxiomConfig) -> LogTransport:
    """Pick the transport for a configuration.

    Args:
        config: Resolved Axiom configuration.

    Returns:
        HttpTransport when an ingest endpoint resolves, ConsoleTransport otherwise.
        HTTP transports are shared per endpoint and token, so requests reuse
        one connection pool.
    """
    if not config.is_env_vars_set:
        return ConsoleTransport()

    key = (config.get_logs_endpoint(), config.token)
    transport = _shared_transports.get(key)
    if transport is None:
        transport = HttpTransport(key[0], token=key[1])
        _shared_transports[key] = transport
    return transport


async def close_transports() -> None:
    """Close every HTTP transport handed out by create_transport().

    Call on application shutdown, after pending flushes have finished.
    """
    transports = list(_shared_transports.values())
    _shared_transports.clear()
    for transport in transports:
        await transport.aclose()
