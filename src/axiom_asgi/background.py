"""Background completion of flushes on platforms that outlive the response.

wait_until() schedules an awaitable as a tracked task so the request can
return immediately; drain_pending() awaits whatever is still running.
shutdown() drains and then closes the pooled ingest clients; call it from the
application's lifespan handler:

    @asynccontextmanager
    async def lifespan(app):
        yield
        await shutdown()
"""

from __future__ import annotations

__all__ = [
    "drain_pending",
    "pending_count",
    "shutdown",
    "wait_until",
]

import asyncio
from collections.abc import Awaitable
from typing import Any

from axiom_asgi.system_logger import get_system_logger
from axiom_asgi.transport import close_transports

_system_logger = get_system_logger()

# Strong references keep scheduled tasks alive until they finish
_pending: set[asyncio.Future[Any]] = set()


def _on_done(task: asyncio.Future[Any]) -> None:
    _pending.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        _system_logger.error(
            {
                "event": "background_flush_failed",
                "error": str(exc),
                "error_type": type(exc).__name__,
                "message": f"Background log flush failed: {exc}",
            }
        )


def wait_until(awaitable: Awaitable[Any]) -> asyncio.Future[Any]:
    """Run an awaitable in the background and keep track of it.

    Must be called from a running event loop.

    Args:
        awaitable: Work to complete after the caller returns.

    Returns:
        The scheduled task.
    """
    task = asyncio.ensure_future(awaitable)
    _pending.add(task)
    task.add_done_callback(_on_done)
    return task


def pending_count() -> int:
    """Number of scheduled tasks that have not finished yet."""
    return len(_pending)


async def drain_pending(timeout: float | None = None) -> None:
    """Wait for scheduled background work to finish.

    Args:
        timeout: Maximum seconds to wait. None waits indefinitely.
    """
    if not _pending:
        return
    await asyncio.wait(set(_pending), timeout=timeout)


async def shutdown(timeout: float | None = None) -> None:
    """Finish background flushes, then close pooled ingest clients.

    Args:
        timeout: Maximum seconds to wait for pending flushes.
    """
    await drain_pending(timeout)
    await close_transports()
