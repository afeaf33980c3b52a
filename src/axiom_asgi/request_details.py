"""Request metadata extraction for request reports.

Works with starlette.requests.Request and with any object of the same shape
(method, url, headers, and optionally geo, client, cookies, query_params,
path_params, body()).
"""

from __future__ import annotations

__all__ = [
    "REQUEST_DETAIL_FIELDS",
    "RequestDetailField",
    "build_request_report",
    "extract_pathname",
    "extract_region",
    "request_to_json",
]

import json
from collections.abc import Mapping, Sequence
from typing import Any, Literal, get_args
from urllib.parse import parse_qsl, urlsplit

from axiom_asgi.logger import RequestReport

RequestDetailField = Literal[
    "method",
    "url",
    "headers",
    "cookies",
    "query",
    "path_params",
    "ip",
    "geo",
    "body",
]
REQUEST_DETAIL_FIELDS: tuple[str, ...] = get_args(RequestDetailField)

# Header set by Vercel's edge network for the visitor's region
_REGION_HEADER = "x-vercel-ip-country-region"

# Methods whose body is captured in request details
_BODY_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def _header(request: Any, name: str) -> str | None:
    headers = getattr(request, "headers", None)
    if headers is None:
        return None
    return headers.get(name)


def extract_region(request: Any) -> str:
    """Region from a geo-capable request, else the platform geo header, else "".

    Args:
        request: Inbound request.

    Returns:
        Region code (e.g. "CA"), or "" when unknown.
    """
    geo = getattr(request, "geo", None)
    if isinstance(geo, Mapping):
        return str(geo.get("region") or "")
    if geo is not None and getattr(geo, "region", None):
        return str(geo.region)
    return _header(request, _REGION_HEADER) or ""


def extract_pathname(request: Any) -> str:
    """Path of the request URL.

    Uses the framework's parsed URL (starlette URL.path) when available,
    otherwise parses the raw URL string.
    """
    url = getattr(request, "url", None)
    if url is None:
        return ""
    path = getattr(url, "path", None)
    if isinstance(path, str):
        return path
    return urlsplit(str(url)).path


def _scheme(request: Any) -> str | None:
    url = getattr(request, "url", None)
    if url is None:
        return None
    raw = str(url)
    return raw.split("://")[0] if "://" in raw else None


def _query(request: Any) -> dict[str, str]:
    query_params = getattr(request, "query_params", None)
    if query_params is not None:
        return dict(query_params)
    return dict(parse_qsl(urlsplit(str(getattr(request, "url", ""))).query))


async def _read_body(request: Any) -> Any:
    """Read the (cached) request body as JSON, falling back to text."""
    body_reader = getattr(request, "body", None)
    if not callable(body_reader):
        return None
    raw = await body_reader()
    if not raw:
        return None
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else str(raw)
    try:
        return json.loads(text)
    except ValueError:
        return text


async def request_to_json(request: Any) -> dict[str, Any]:
    """Snapshot request metadata as a JSON-friendly dict.

    Keys are REQUEST_DETAIL_FIELDS. The body is only read for methods that
    carry one; starlette caches it, so the handler can still read it.

    Args:
        request: Inbound request.

    Returns:
        Dict of request details.
    """
    client = getattr(request, "client", None)
    geo = getattr(request, "geo", None)
    method = str(getattr(request, "method", "")).upper()
    headers = getattr(request, "headers", None) or {}

    return {
        "method": method,
        "url": str(getattr(request, "url", "")),
        "headers": dict(headers),
        "cookies": dict(getattr(request, "cookies", None) or {}),
        "query": _query(request),
        "path_params": dict(getattr(request, "path_params", None) or {}),
        "ip": getattr(client, "host", None) if client is not None else None,
        "geo": dict(geo) if isinstance(geo, Mapping) else None,
        "body": await _read_body(request) if method in _BODY_METHODS else None,
    }


async def build_request_report(
    request: Any,
    log_request_details: bool | Sequence[str] = False,
) -> RequestReport:
    """Start a RequestReport for an inbound request.

    Args:
        request: Inbound request.
        log_request_details: False to skip details, True for all of them,
            or an allow-list of REQUEST_DETAIL_FIELDS.

    Returns:
        RequestReport with start_time == end_time.
    """
    details: dict[str, Any] | None = None
    if log_request_details is True:
        details = await request_to_json(request)
    elif isinstance(log_request_details, Sequence) and not isinstance(log_request_details, str):
        allowed = set(log_request_details)
        details = {key: value for key, value in (await request_to_json(request)).items() if key in allowed}

    return RequestReport.start(
        path=extract_pathname(request),
        method=str(getattr(request, "method", "")),
        host=_header(request, "host"),
        user_agent=_header(request, "user-agent"),
        scheme=_scheme(request),
        ip=_header(request, "x-forwarded-for"),
        region=extract_region(request),
        details=details,
    )
