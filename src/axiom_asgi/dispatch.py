"""Single entry point that instruments either a routing config or a handler.

with_axiom() is a convenience dispatcher over three explicit entry points:

- with_axiom_config(mapping)      -> config with telemetry proxy rewrites
- with_axiom_config_fn(function)  -> config function whose result gets rewrites
- wrap_handler(handler, options)  -> instrumented request handler

Config functions and handlers are both callables, so they are told apart by
arity: a callable with exactly two required positional parameters
(phase, context) is treated as a config function, anything else as a
handler. This is a best-effort heuristic. A handler declaring two required
parameters is misrouted; call wrap_handler() directly in that case.
"""

from __future__ import annotations

__all__ = [
    "ConfigFunction",
    "is_config_fn",
    "with_axiom",
    "with_axiom_config",
    "with_axiom_config_fn",
]

import inspect
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Union

from axiom_asgi.config import AxiomConfig
from axiom_asgi.exceptions import InvalidWrapTargetError
from axiom_asgi.handler import RouteHandlerConfig, wrap_handler
from axiom_asgi.rewrites import apply_rewrites

ConfigFunction = Callable[[str, Any], Union[Mapping[str, Any], Awaitable[Mapping[str, Any]]]]

_POSITIONAL_KINDS = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


def is_config_fn(param: Any) -> bool:
    """Whether a callable looks like a config function (phase, context).

    Counts required positional parameters; exactly two means config function.
    Callables without an inspectable signature are treated as handlers.
    """
    if not callable(param):
        return False
    try:
        signature = inspect.signature(param)
    except (TypeError, ValueError):
        return False

    required = [
        p
        for p in signature.parameters.values()
        if p.kind in _POSITIONAL_KINDS and p.default is inspect.Parameter.empty
    ]
    return len(required) == 2


def with_axiom_config(
    next_config: Mapping[str, Any],
    *,
    config: AxiomConfig | None = None,
) -> dict[str, Any]:
    """Add telemetry proxy rewrites to a routing config mapping.

    The mapping is shallow-copied; the original is left untouched.
    """
    return apply_rewrites(dict(next_config), config=config)


def with_axiom_config_fn(
    config_fn: ConfigFunction,
    *,
    config: AxiomConfig | None = None,
) -> Callable[[str, Any], Awaitable[dict[str, Any]]]:
    """Wrap a config function so its result gets telemetry proxy rewrites.

    Args:
        config_fn: Sync or async function (phase, context) -> config mapping.
        config: Axiom configuration override.

    Returns:
        Async function (phase, context) -> config dict with rewrites.
    """

    async def wrapped(phase: str, context: Any) -> dict[str, Any]:
        next_config = config_fn(phase, context)
        if inspect.isawaitable(next_config):
            next_config = await next_config
        return apply_rewrites(dict(next_config), config=config)

    return wrapped


def with_axiom(
    param: Any,
    options: RouteHandlerConfig | Mapping[str, Any] | None = None,
    *,
    config: AxiomConfig | None = None,
) -> Any:
    """Instrument a routing config, a config function, or a request handler.

    Args:
        param: Config mapping, config function (phase, context), or handler.
        options: Handler options; ignored for configs.
        config: Axiom configuration override.

    Returns:
        Config dict, async config function, or instrumented handler.

    Raises:
        InvalidWrapTargetError: If param is neither a mapping nor callable.
    """
    if isinstance(param, Mapping):
        return with_axiom_config(param, config=config)
    if callable(param):
        if is_config_fn(param):
            return with_axiom_config_fn(param, config=config)
        return wrap_handler(param, options, config=config)
    raise InvalidWrapTargetError(param)
