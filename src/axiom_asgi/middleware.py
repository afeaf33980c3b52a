"""Starlette/FastAPI integration.

AxiomMiddleware instruments every request of an application by running the
downstream app through wrap_handler(); endpoints reach the request-scoped
logger through request.state.log, or with the get_log dependency in FastAPI.

Usage:
    app = FastAPI()
    app.add_middleware(AxiomMiddleware, options={"log_request_details": ["query"]})

    @app.get("/items")
    async def items(log: LogDep):
        log.info("listing items")
        return []
"""

from __future__ import annotations

__all__ = [
    "AxiomMiddleware",
    "LogDep",
    "get_log",
]

from collections.abc import Mapping
from typing import Annotated, Any

from fastapi import Depends
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from axiom_asgi.config import AxiomConfig
from axiom_asgi.handler import RouteHandlerConfig, wrap_handler
from axiom_asgi.logger import Logger
from axiom_asgi.transport import LogTransport


async def _call_downstream(request: Request, call_next: RequestResponseEndpoint) -> Response:
    return await call_next(request)


class AxiomMiddleware(BaseHTTPMiddleware):
    """Report and log every HTTP request that passes through the app.

    Exceptions escaping the app are reported and re-raised for the
    framework's own error handling.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        options: RouteHandlerConfig | Mapping[str, Any] | None = None,
        config: AxiomConfig | None = None,
        transport: LogTransport | None = None,
    ) -> None:
        """Initialize middleware.

        Args:
            app: Downstream ASGI app.
            options: Handler options applied to every request.
            config: Axiom configuration override.
            transport: Log transport override.
        """
        super().__init__(app)
        self._handler = wrap_handler(_call_downstream, options, config=config, transport=transport)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response: Response = await self._handler(request, call_next)
        return response


def get_log(request: Request) -> Logger:
    """FastAPI dependency returning the request-scoped logger.

    Use directly with Depends(get_log), or through the LogDep alias.

    Raises:
        RuntimeError: If AxiomMiddleware is not installed.
    """
    log = getattr(request.state, "log", None)
    if log is None:
        raise RuntimeError("No request logger found; add AxiomMiddleware to the application")
    return log


LogDep = Annotated[Logger, Depends(get_log)]
