"""Request wrapper: per-request telemetry around a route handler.

wrap_handler() instruments a handler so that each invocation:

1. Starts a RequestReport (path, method, host, user agent, region, ...)
2. Creates a request-scoped Logger and exposes a child logger to the
   handler as request.log (and request.state.log on starlette requests)
3. Runs the handler, the only suspension point besides the flush
4. Classifies the outcome into a status code and severity
5. Records the summary line and attaches the status before flushing, so a
   flush never ships a report without its final status

Handler results are returned unchanged and handler exceptions are re-raised
unchanged; the wrapper only observes.

Example usage:
    async def endpoint(request):
        request.log.info("loading user")
        return JSONResponse({"ok": True})

    app = Starlette(routes=[Route("/", wrap_handler(endpoint))])
"""

from __future__ import annotations

__all__ = [
    "RouteHandlerConfig",
    "wrap_handler",
]

import functools
import inspect
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, field_validator

from axiom_asgi.background import wait_until
from axiom_asgi.config import AxiomConfig, get_config
from axiom_asgi.levels import LogLevel
from axiom_asgi.logger import Logger
from axiom_asgi.navigation import classify_error
from axiom_asgi.request_details import RequestDetailField, build_request_report
from axiom_asgi.system_logger import get_system_logger
from axiom_asgi.transport import LogTransport

_system_logger = get_system_logger()

Handler = Callable[..., Union[Any, Awaitable[Any]]]

# Status reported when a handler returns something without a status
DEFAULT_STATUS_CODE = 200


class RouteHandlerConfig(BaseModel):
    """Per-handler options.

    Attributes:
        log_request_details: False to skip request details, True to capture
            all of them, or an allow-list of detail fields.
        not_found_log_level: Severity for not-found signals.
        redirect_log_level: Severity for redirect signals.
    """

    model_config = ConfigDict(frozen=True)

    log_request_details: Union[bool, list[RequestDetailField]] = False
    not_found_log_level: LogLevel = LogLevel.WARN
    redirect_log_level: LogLevel = LogLevel.INFO

    @field_validator("not_found_log_level", "redirect_log_level", mode="before")
    @classmethod
    def _parse_level(cls, value: Any) -> LogLevel:
        return LogLevel.parse(value)

    @classmethod
    def coerce(cls, options: "RouteHandlerConfig | Mapping[str, Any] | None") -> "RouteHandlerConfig":
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        return cls.model_validate(dict(options))


def _attach_logger(request: Any, log: Logger) -> None:
    """Expose the child logger on the request (and its starlette state)."""
    setattr(request, "log", log)
    state = getattr(request, "state", None)
    if state is not None:
        state.log = log


def _response_status(result: Any) -> int:
    for attr in ("status_code", "status"):
        status = getattr(result, attr, None)
        if isinstance(status, int):
            return status
    return DEFAULT_STATUS_CODE


async def _flush(logger: Logger, config: AxiomConfig) -> None:
    """Flush in the background on Vercel, inline everywhere else.

    A failing flush is reported, never raised, so it cannot replace the
    handler's own outcome.
    """
    if config.is_vercel:
        wait_until(logger.flush())
        return
    try:
        await logger.flush()
    except Exception as e:
        _system_logger.error(
            {
                "event": "log_flush_failed",
                "error": str(e),
                "error_type": type(e).__name__,
                "message": f"Failed to flush request logs: {e}",
            }
        )


def wrap_handler(
    handler: Handler,
    options: RouteHandlerConfig | Mapping[str, Any] | None = None,
    *,
    config: AxiomConfig | None = None,
    transport: LogTransport | None = None,
) -> Callable[..., Awaitable[Any]]:
    """Instrument a request handler with request reporting and logging.

    Args:
        handler: Sync or async callable taking the request and optional
            passthrough arguments, returning a response with a status.
        options: RouteHandlerConfig or a mapping of its fields.
        config: Axiom configuration. Defaults to get_config() per invocation.
        transport: Log transport. Defaults to create_transport(config).

    Returns:
        Async handler with the same call signature.

    Raises:
        pydantic.ValidationError: If options are invalid.
    """
    handler_config = RouteHandlerConfig.coerce(options)

    @functools.wraps(handler)
    async def wrapped(request: Any, *args: Any) -> Any:
        axiom_config = config or get_config()
        report = await build_request_report(request, handler_config.log_request_details)

        runtime = "edge" if axiom_config.is_edge_runtime else "lambda"
        # Main logger carries the HTTP summary; the child is handed to the handler
        logger = Logger(source=runtime, report=report, config=axiom_config, transport=transport)
        log = logger.with_fields(
            source=runtime if axiom_config.is_vercel_integration else f"{runtime}-log",
        )
        _attach_logger(request, log)

        try:
            result = handler(request, *args)
            if inspect.isawaitable(result):
                result = await result
        except Exception as error:
            # Capture timing before any further processing
            report.mark_end()
            status_code, level = classify_error(
                error,
                not_found_log_level=handler_config.not_found_log_level,
                redirect_log_level=handler_config.redirect_log_level,
            )
            report.finish(status_code)

            if not axiom_config.is_vercel_integration:
                logger.log_http_request(level, report.summary, report)
            log.log(level, str(error), {"error": error})
            log.attach_response_status(status_code)

            await _flush(logger, axiom_config)
            raise

        report.mark_end()
        status_code = _response_status(result)
        report.finish(status_code)

        if not axiom_config.is_vercel_integration:
            logger.log_http_request(LogLevel.INFO, report.summary, report)
        log.attach_response_status(status_code)

        await _flush(logger, axiom_config)
        return result

    return wrapped
