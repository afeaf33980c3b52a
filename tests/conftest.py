"""Shared fixtures for axiom-asgi tests."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

import pytest

from axiom_asgi import background, transport as transport_module
from axiom_asgi.config import AxiomConfig, reset_config


class RecordingTransport:
    """Transport that keeps every batch it receives."""

    def __init__(self) -> None:
        self.batches: list[list[dict[str, Any]]] = []

    async def send(self, events: list[dict[str, Any]]) -> None:
        self.batches.append(list(events))

    @property
    def events(self) -> list[dict[str, Any]]:
        return [event for batch in self.batches for event in batch]


class FakeHeaders(dict):
    """Lowercase-keyed header mapping with dict.get semantics."""

    def __init__(self, headers: Mapping[str, str] | None = None) -> None:
        super().__init__({k.lower(): v for k, v in (headers or {}).items()})

    def get(self, key: str, default: Any = None) -> Any:  # type: ignore[override]
        return super().get(key.lower(), default)


class FakeRequest:
    """Minimal request shape: method, raw url string, headers."""

    def __init__(
        self,
        method: str = "GET",
        url: str = "https://example.com/api/users?page=2",
        headers: Mapping[str, str] | None = None,
        geo: Mapping[str, str] | None = None,
    ) -> None:
        self.method = method
        self.url = url
        self.headers = FakeHeaders(
            headers
            if headers is not None
            else {
                "host": "example.com",
                "user-agent": "pytest",
                "x-forwarded-for": "203.0.113.7",
            }
        )
        if geo is not None:
            self.geo = geo


class FakeResponse:
    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code


@pytest.fixture(autouse=True)
def _isolate_process_state() -> Iterator[None]:
    """Reset the config singleton, background tasks and shared transports between tests."""
    reset_config()
    yield
    reset_config()
    background._pending.clear()
    transport_module._shared_transports.clear()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def unconfigured() -> AxiomConfig:
    """Config with no ingest endpoint (console-only mode)."""
    return AxiomConfig.from_env({})


@pytest.fixture
def configured() -> AxiomConfig:
    """Self-hosted config with dataset and token."""
    return AxiomConfig.from_env({"AXIOM_DATASET": "web", "AXIOM_TOKEN": "xaat-test"})


@pytest.fixture
def integration() -> AxiomConfig:
    """Vercel with the managed integration endpoint."""
    return AxiomConfig.from_env(
        {
            "VERCEL": "1",
            "VERCEL_ENV": "production",
            "AXIOM_INGEST_ENDPOINT": "https://api.axiom.co/v1/integrations/vercel",
        }
    )


@pytest.fixture
def request_factory() -> type[FakeRequest]:
    return FakeRequest


@pytest.fixture
def response_factory() -> type[FakeResponse]:
    return FakeResponse
