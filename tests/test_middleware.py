"""Tests for the FastAPI/Starlette middleware.

Tests use the AAA pattern (Arrange-Act-Assert) for clarity.
"""

from __future__ import annotations

import pytest
from fastapi import Depends, FastAPI, HTTPException
from fastapi.testclient import TestClient
from starlette.requests import Request

from axiom_asgi.config import AxiomConfig
from axiom_asgi.logger import Logger
from axiom_asgi.middleware import AxiomMiddleware, LogDep, get_log
from tests.conftest import RecordingTransport


@pytest.fixture
def app(unconfigured: AxiomConfig, transport: RecordingTransport) -> FastAPI:
    app = FastAPI()
    app.add_middleware(
        AxiomMiddleware,
        options={"log_request_details": ["query"]},
        config=unconfigured,
        transport=transport,
    )

    @app.get("/items")
    async def list_items(log: Logger = Depends(get_log)):
        log.info("listing items", {"count": 2})
        return [1, 2]

    @app.get("/annotated")
    async def annotated(log: LogDep):
        log.warn("via alias")
        return {"ok": True}

    @app.get("/missing")
    async def missing():
        raise HTTPException(status_code=404, detail="nope")

    @app.get("/crash")
    async def crash():
        raise RuntimeError("kaboom")

    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app, raise_server_exceptions=False)


class TestAxiomMiddleware:
    """Tests for per-request instrumentation through the ASGI stack."""

    def test_successful_request_reported(self, client: TestClient, transport: RecordingTransport):
        # Act
        response = client.get("/items?limit=5")

        # Assert
        assert response.status_code == 200
        assert response.json() == [1, 2]
        messages = [e["message"] for e in transport.events]
        assert "listing items" in messages
        [summary] = [e for e in transport.events if e["message"].startswith("GET /items")]
        assert summary["request"]["statusCode"] == 200
        assert summary["request"]["details"] == {"query": {"limit": "5"}}

    def test_endpoint_log_carries_final_status(self, client: TestClient, transport: RecordingTransport):
        client.get("/items")

        [event] = [e for e in transport.events if e["message"] == "listing items"]
        assert event["fields"] == {"count": 2}
        assert event["request"]["statusCode"] == 200
        assert event["source"] == "lambda-log"

    def test_http_exception_status_reported(self, client: TestClient, transport: RecordingTransport):
        response = client.get("/missing")

        assert response.status_code == 404
        [summary] = [e for e in transport.events if e["message"].startswith("GET /missing")]
        assert summary["request"]["statusCode"] == 404

    def test_unhandled_error_reported_as_500(self, client: TestClient, transport: RecordingTransport):
        # Act
        response = client.get("/crash")

        # Assert
        assert response.status_code == 500
        [summary] = [e for e in transport.events if e["message"].startswith("GET /crash")]
        assert summary["request"]["statusCode"] == 500
        assert summary["level"] == "error"
        assert any(e["message"] == "kaboom" for e in transport.events)

    def test_one_batch_per_request(self, client: TestClient, transport: RecordingTransport):
        client.get("/items")
        client.get("/items")

        assert len(transport.batches) == 2


class TestGetLog:
    def test_without_middleware_raises(self):
        request = Request({"type": "http", "method": "GET", "path": "/", "headers": []})

        with pytest.raises(RuntimeError, match="AxiomMiddleware"):
            get_log(request)

    def test_annotated_alias_resolves_logger(self, client: TestClient, transport: RecordingTransport):
        response = client.get("/annotated")

        assert response.status_code == 200
        [event] = [e for e in transport.events if e["message"] == "via alias"]
        assert event["level"] == "warn"
