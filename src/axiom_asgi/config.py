"""Process configuration for axiom-asgi.

Resolves ingest endpoints, the client proxy path, and platform/runtime
capability flags from environment variables. The configuration is an
immutable pydantic model built once per process by get_config(), or built
explicitly and injected into components (handy for tests).

An unconfigured process (no endpoint, no dataset/token) is a supported
state: ingest URLs resolve to "" and log events are printed to the console.

Example usage:
    config = AxiomConfig.from_env({"AXIOM_DATASET": "app", "AXIOM_TOKEN": "xaat-..."})
    config.get_ingest_url(EndpointType.LOGS)
    # "https://api.axiom.co/v1/datasets/app/ingest"
"""

from __future__ import annotations

__all__ = [
    "AxiomConfig",
    "get_config",
    "reset_config",
]

import os
import sys
from collections.abc import Mapping
from typing import Any, Literal

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

from axiom_asgi.constants import (
    DEFAULT_AXIOM_URL,
    DEFAULT_PROXY_PATH,
    ENV_DATASET,
    ENV_EDGE_RUNTIME,
    ENV_ENVIRONMENT,
    ENV_INGEST_ENDPOINT,
    ENV_LOG_LEVEL,
    ENV_PROXY_PATH,
    ENV_TOKEN,
    ENV_URL,
    EndpointType,
)
from axiom_asgi.levels import LogLevel
from axiom_asgi.system_logger import get_system_logger

_system_logger = get_system_logger()

Platform = Literal["vercel", "netlify", "generic"]

# Platform metadata copied from the environment into every log event
_VERCEL_METADATA_ENV: dict[str, str] = {
    "deploymentId": "VERCEL_DEPLOYMENT_ID",
    "deploymentUrl": "VERCEL_URL",
    "project": "VERCEL_PROJECT_PRODUCTION_URL",
    "git.commit": "VERCEL_GIT_COMMIT_SHA",
    "git.repo": "VERCEL_GIT_REPO_SLUG",
    "git.ref": "VERCEL_GIT_COMMIT_REF",
}
_NETLIFY_METADATA_ENV: dict[str, str] = {
    "siteId": "SITE_ID",
    "buildId": "BUILD_ID",
    "context": "CONTEXT",
    "deploymentUrl": "DEPLOY_URL",
    "deploymentId": "DEPLOY_ID",
}

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def _is_truthy(value: str | None) -> bool:
    return value is not None and value.strip().lower() in _TRUTHY


def _nonempty(environ: Mapping[str, str], name: str) -> str | None:
    value = environ.get(name)
    return value if value else None


class AxiomConfig(BaseModel):
    """Resolved ingest and platform configuration.

    Attributes:
        platform: Hosting platform detected from the environment.
        token: Axiom API token (Bearer credential), if any.
        dataset: Dataset receiving events when no custom endpoint is set.
        axiom_url: Axiom API base URL.
        custom_endpoint: Ingest endpoint provided by the managed integration.
        proxy_path: Same-origin prefix for client telemetry rewrites.
        log_level: Minimum level recorded by loggers.
        environment: Deployment environment tag (e.g. "production", "preview").
        region: Region the process runs in, if known.
        edge_runtime: True when running in a restricted (edge) runtime.
        platform_info: Extra platform metadata attached to every event.
    """

    model_config = ConfigDict(frozen=True)

    platform: Platform = "generic"
    token: str | None = None
    dataset: str | None = None
    axiom_url: str = DEFAULT_AXIOM_URL
    custom_endpoint: str | None = None
    proxy_path: str = DEFAULT_PROXY_PATH
    log_level: LogLevel = LogLevel.DEBUG
    environment: str | None = None
    region: str | None = None
    edge_runtime: bool = False
    platform_info: dict[str, Any] = Field(default_factory=dict)

    @field_validator("log_level", mode="before")
    @classmethod
    def _parse_log_level(cls, value: Any) -> LogLevel:
        return LogLevel.parse(value)

    @field_validator("axiom_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AxiomConfig":
        """Build configuration from environment variables.

        Args:
            environ: Environment mapping. Defaults to os.environ.

        Returns:
            AxiomConfig snapshot of the given environment.
        """
        env = os.environ if environ is None else environ

        platform: Platform
        if _is_truthy(env.get("VERCEL")):
            platform = "vercel"
        elif _is_truthy(env.get("NETLIFY")):
            platform = "netlify"
        else:
            platform = "generic"

        log_level = LogLevel.DEBUG
        raw_level = _nonempty(env, ENV_LOG_LEVEL)
        if raw_level is not None:
            try:
                log_level = LogLevel.parse(raw_level)
            except ValueError:
                _system_logger.warning(
                    {
                        "event": "invalid_log_level",
                        "value": raw_level,
                        "message": f"axiom: Ignoring invalid {ENV_LOG_LEVEL}={raw_level!r}, using debug",
                    }
                )

        if platform == "vercel":
            environment = _nonempty(env, "VERCEL_ENV")
            region = _nonempty(env, "VERCEL_REGION")
            metadata_env = _VERCEL_METADATA_ENV
        elif platform == "netlify":
            environment = _nonempty(env, "CONTEXT")
            region = _nonempty(env, "AWS_REGION")
            metadata_env = _NETLIFY_METADATA_ENV
        else:
            environment = None
            region = _nonempty(env, "AWS_REGION")
            metadata_env = {}

        platform_info = {key: env[name] for key, name in metadata_env.items() if env.get(name)}

        return cls(
            platform=platform,
            token=_nonempty(env, ENV_TOKEN),
            dataset=_nonempty(env, ENV_DATASET),
            axiom_url=_nonempty(env, ENV_URL) or DEFAULT_AXIOM_URL,
            custom_endpoint=_nonempty(env, ENV_INGEST_ENDPOINT),
            proxy_path=_nonempty(env, ENV_PROXY_PATH) or DEFAULT_PROXY_PATH,
            log_level=log_level,
            environment=environment or _nonempty(env, ENV_ENVIRONMENT),
            region=region,
            edge_runtime=sys.platform == "emscripten" or _is_truthy(env.get(ENV_EDGE_RUNTIME)),
            platform_info=platform_info,
        )

    # ------------------------------------------------------------------
    # Capability flags
    # ------------------------------------------------------------------

    @property
    def is_vercel(self) -> bool:
        """Running on Vercel, where background work outlives the response."""
        return self.platform == "vercel"

    @property
    def is_netlify(self) -> bool:
        return self.platform == "netlify"

    @property
    def is_vercel_integration(self) -> bool:
        """Logs are forwarded by the managed integration (custom endpoint set)."""
        return self.custom_endpoint is not None

    @property
    def is_edge_runtime(self) -> bool:
        return self.edge_runtime

    @property
    def is_env_vars_set(self) -> bool:
        """True when events can be delivered somewhere other than the console."""
        return self.custom_endpoint is not None or (self.dataset is not None and self.token is not None)

    # ------------------------------------------------------------------
    # Endpoint resolution
    # ------------------------------------------------------------------

    def get_ingest_url(self, endpoint_type: EndpointType | str) -> str:
        """Resolve the ingest URL for an endpoint type.

        Args:
            endpoint_type: EndpointType.WEB_VITALS or EndpointType.LOGS.

        Returns:
            Ingest URL, or "" when Axiom is not configured.
        """
        kind = EndpointType(endpoint_type)

        if self.custom_endpoint is not None:
            if self.is_vercel:
                # The integration endpoint multiplexes event kinds on ?type=
                return str(httpx.URL(self.custom_endpoint).copy_merge_params({"type": kind.value}))
            return self.custom_endpoint

        if self.dataset is not None and self.token is not None:
            return f"{self.axiom_url}/v1/datasets/{self.dataset}/ingest"

        return ""

    def get_logs_endpoint(self) -> str:
        """Ingest URL for server-side log batches."""
        return self.get_ingest_url(EndpointType.LOGS)

    def platform_metadata(self, source: str) -> dict[str, Any]:
        """Build the platform block attached to each log event.

        Args:
            source: Event source tag ("lambda", "edge-log", ...).

        Returns:
            Dict with environment, region, source and platform-specific fields.
            Dotted keys in platform_info ("git.commit") become nested dicts.
        """
        metadata: dict[str, Any] = {
            "environment": self.environment,
            "region": self.region,
            "source": source,
        }
        for key, value in self.platform_info.items():
            if "." in key:
                group, name = key.split(".", 1)
                metadata.setdefault(group, {})[name] = value
            else:
                metadata[key] = value
        return metadata


# Module-level singleton, built on first use
_config: AxiomConfig | None = None


def get_config() -> AxiomConfig:
    """Get the process-wide configuration, building it from os.environ once.

    Returns:
        AxiomConfig: Shared configuration instance.
    """
    global _config

    if _config is None:
        _config = AxiomConfig.from_env()
    return _config


def reset_config() -> None:
    """Forget the cached configuration so the next get_config() re-reads the environment."""
    global _config
    _config = None
