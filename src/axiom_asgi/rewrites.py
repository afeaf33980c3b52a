"""Route rewrites that proxy client telemetry through the app's own origin.

Browsers block or CORS-reject third-party telemetry requests, so client-side
web-vitals and logs are posted to same-origin paths (<proxy>/web-vitals and
<proxy>/logs) and rewritten to the ingest endpoints by the routing layer.

The routing configuration is an opaque mapping with an optional "rewrites"
provider (sync or async, no arguments). A provider returns either:

- a flat sequence of rules, or
- a mapping of phases ("beforeFiles", "afterFiles", "fallback")

apply_rewrites() returns a shallow copy of the config whose provider merges
the two proxy rules into whatever the original provider returns.
"""

from __future__ import annotations

__all__ = [
    "FlatRewrites",
    "PhasedRewrites",
    "RewriteSet",
    "RouteRule",
    "apply_rewrites",
    "build_proxy_rules",
    "parse_rewrites",
]

import inspect
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Union

from axiom_asgi.config import AxiomConfig, get_config
from axiom_asgi.constants import EndpointType
from axiom_asgi.exceptions import InvalidRewritesError
from axiom_asgi.system_logger import get_system_logger

_system_logger = get_system_logger()

# Phase that proxy rules are appended to in the phased form
AFTER_FILES_PHASE = "afterFiles"

RewritesProvider = Callable[[], Union[Any, Awaitable[Any]]]


@dataclass(frozen=True, slots=True)
class RouteRule:
    """A single rewrite rule.

    Attributes:
        source: Path pattern matched on incoming requests.
        destination: URL the request is rewritten to.
        base_path: Whether the app's basePath is prefixed to source.
    """

    source: str
    destination: str
    base_path: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"source": self.source, "destination": self.destination, "basePath": self.base_path}


@dataclass(frozen=True, slots=True)
class FlatRewrites:
    """Rewrites given as an ordered list."""

    rules: tuple[Any, ...] = ()

    def merge(self, extra: Sequence[RouteRule]) -> list[Any]:
        return [*self.rules, *(rule.to_dict() for rule in extra)]


@dataclass(frozen=True, slots=True)
class PhasedRewrites:
    """Rewrites grouped by routing phase."""

    phases: Mapping[str, Any]

    def merge(self, extra: Sequence[RouteRule]) -> dict[str, Any]:
        merged = dict(self.phases)
        after_files = list(merged.get(AFTER_FILES_PHASE) or [])
        merged[AFTER_FILES_PHASE] = [*after_files, *(rule.to_dict() for rule in extra)]
        return merged


RewriteSet = Union[FlatRewrites, PhasedRewrites]


def parse_rewrites(value: Any) -> RewriteSet:
    """Classify a provider's return value.

    Args:
        value: None, a sequence of rules, or a mapping of phases.

    Returns:
        FlatRewrites or PhasedRewrites.

    Raises:
        InvalidRewritesError: For any other shape.
    """
    if value is None:
        return FlatRewrites()
    if isinstance(value, Mapping):
        return PhasedRewrites(value)
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return FlatRewrites(tuple(value))
    raise InvalidRewritesError(value)


def build_proxy_rules(config: AxiomConfig) -> list[RouteRule]:
    """Build the web-vitals and logs proxy rules for a configuration."""
    return [
        RouteRule(
            source=f"{config.proxy_path}/web-vitals",
            destination=config.get_ingest_url(EndpointType.WEB_VITALS),
        ),
        RouteRule(
            source=f"{config.proxy_path}/logs",
            destination=config.get_ingest_url(EndpointType.LOGS),
        ),
    ]


async def _resolve(provider: RewritesProvider | None) -> Any:
    if provider is None:
        return None
    result = provider()
    if inspect.isawaitable(result):
        result = await result
    return result


def apply_rewrites(
    next_config: Mapping[str, Any],
    *,
    config: AxiomConfig | None = None,
) -> dict[str, Any]:
    """Return a copy of a routing config with telemetry proxy rewrites added.

    The input mapping is not modified. The returned "rewrites" provider is
    async and recomputes its result on every call, so calling it repeatedly
    never accumulates duplicate rules.

    Args:
        next_config: Routing configuration, optionally with a "rewrites" provider.
        config: Axiom configuration. Defaults to get_config() at call time.

    Returns:
        New config dict whose "rewrites" provider includes the proxy rules.
    """
    original_provider: RewritesProvider | None = next_config.get("rewrites")

    async def rewrites() -> Any:
        original = await _resolve(original_provider)

        axiom_config = config or get_config()
        web_vitals_endpoint = axiom_config.get_ingest_url(EndpointType.WEB_VITALS)
        logs_endpoint = axiom_config.get_ingest_url(EndpointType.LOGS)
        if not web_vitals_endpoint and not logs_endpoint:
            _system_logger.warning(
                {
                    "event": "axiom_not_configured",
                    "message": "axiom: Envvars not detected. If this is production please see "
                    "https://github.com/axiomhq/next-axiom for help",
                }
            )
            _system_logger.warning(
                {
                    "event": "axiom_local_fallback",
                    "message": "axiom: Sending Web Vitals to /dev/null and logs to console",
                }
            )
            return original if original is not None else []

        return parse_rewrites(original).merge(build_proxy_rules(axiom_config))

    return {**next_config, "rewrites": rewrites}
