"""Request telemetry and log shipping to Axiom for ASGI applications.

Import directly from submodules, or use the re-exports below:
    from axiom_asgi import with_axiom, wrap_handler, AxiomMiddleware
"""

__version__ = "0.1.0"

from axiom_asgi.background import drain_pending, shutdown  # noqa: E402
from axiom_asgi.config import AxiomConfig, get_config, reset_config  # noqa: E402
from axiom_asgi.constants import EndpointType  # noqa: E402
from axiom_asgi.dispatch import with_axiom, with_axiom_config, with_axiom_config_fn  # noqa: E402
from axiom_asgi.handler import RouteHandlerConfig, wrap_handler  # noqa: E402
from axiom_asgi.levels import LogLevel  # noqa: E402
from axiom_asgi.logger import Logger, RequestReport  # noqa: E402
from axiom_asgi.middleware import AxiomMiddleware, LogDep, get_log  # noqa: E402
from axiom_asgi.navigation import not_found, redirect  # noqa: E402
from axiom_asgi.rewrites import apply_rewrites  # noqa: E402

__all__ = [
    "AxiomConfig",
    "AxiomMiddleware",
    "EndpointType",
    "LogDep",
    "LogLevel",
    "Logger",
    "RequestReport",
    "RouteHandlerConfig",
    "__version__",
    "apply_rewrites",
    "drain_pending",
    "get_config",
    "get_log",
    "not_found",
    "redirect",
    "reset_config",
    "shutdown",
    "with_axiom",
    "with_axiom_config",
    "with_axiom_config_fn",
    "wrap_handler",
]
