"""Application-wide constants for axiom-asgi.

Constants that define library behavior and the environment variables it reads.
For resolved per-process settings, see config.py.
"""

from enum import Enum

__all__ = [
    # Library identity
    "APP_NAME",
    # Ingest endpoints
    "DEFAULT_AXIOM_URL",
    "DEFAULT_PROXY_PATH",
    "EndpointType",
    # Environment variables
    "ENV_DATASET",
    "ENV_EDGE_RUNTIME",
    "ENV_ENVIRONMENT",
    "ENV_INGEST_ENDPOINT",
    "ENV_LOG_LEVEL",
    "ENV_PROXY_PATH",
    "ENV_TOKEN",
    "ENV_URL",
    # Transport
    "INGEST_TIMEOUT_SECONDS",
    # Navigation signals
    "NOT_FOUND_SIGNAL",
    "REDIRECT_SIGNAL",
    "DEFAULT_REDIRECT_STATUS",
]

# ============================================================================
# Library Identity
# ============================================================================

# Used for logger names and the User-Agent header sent with log batches
APP_NAME: str = "axiom-asgi"

# ============================================================================
# Ingest Endpoints
# ============================================================================

DEFAULT_AXIOM_URL: str = "https://api.axiom.co"

# Same-origin prefix under which client telemetry is rewritten to the ingest URL
DEFAULT_PROXY_PATH: str = "/_axiom"


class EndpointType(str, Enum):
    """Kinds of telemetry accepted by the ingest endpoint."""

    WEB_VITALS = "web-vitals"
    LOGS = "logs"


# ============================================================================
# Environment Variables
# ============================================================================

ENV_TOKEN: str = "AXIOM_TOKEN"
ENV_DATASET: str = "AXIOM_DATASET"
ENV_URL: str = "AXIOM_URL"
# Set by the managed integration; its presence switches off the HTTP summary line
ENV_INGEST_ENDPOINT: str = "AXIOM_INGEST_ENDPOINT"
ENV_PROXY_PATH: str = "AXIOM_PROXY_PATH"
ENV_LOG_LEVEL: str = "AXIOM_LOG_LEVEL"
ENV_ENVIRONMENT: str = "AXIOM_ENVIRONMENT"
ENV_EDGE_RUNTIME: str = "AXIOM_EDGE_RUNTIME"

# ============================================================================
# Transport
# ============================================================================

# Per-batch timeout for log delivery (seconds)
INGEST_TIMEOUT_SECONDS: float = 10.0

# ============================================================================
# Navigation Signals
# ============================================================================

# Message conventions for control-flow errors raised by handlers.
# Redirect signals carry a digest "NEXT_REDIRECT;<type>;<url>;<status>;"
NOT_FOUND_SIGNAL: str = "NEXT_NOT_FOUND"
REDIRECT_SIGNAL: str = "NEXT_REDIRECT"
DEFAULT_REDIRECT_STATUS: int = 307
