"""Navigation signals raised by handlers and their outcome classification.

Handlers may abort with a "not found" or "redirect" signal instead of
returning a response. Both are ordinary exceptions recognized by message
convention, so signals raised by other code using the same convention are
classified the same way:

- NEXT_NOT_FOUND: 404
- NEXT_REDIRECT: status from the digest "NEXT_REDIRECT;<type>;<url>;<status>;"

Starlette's HTTPException is classified by its own status code.
"""

from __future__ import annotations

__all__ = [
    "NotFoundSignal",
    "RedirectSignal",
    "classify_error",
    "not_found",
    "redirect",
    "redirect_status_from_digest",
]

from typing import Literal, NoReturn

from starlette.exceptions import HTTPException

from axiom_asgi.constants import DEFAULT_REDIRECT_STATUS, NOT_FOUND_SIGNAL, REDIRECT_SIGNAL
from axiom_asgi.levels import LogLevel


class NotFoundSignal(Exception):
    """Handler asked for a 404 response."""

    def __init__(self) -> None:
        super().__init__(NOT_FOUND_SIGNAL)


class RedirectSignal(Exception):
    """Handler asked for a redirect.

    Attributes:
        url: Redirect target.
        status_code: 307 (temporary) or 308 (permanent).
        digest: Encoded signal, "NEXT_REDIRECT;<type>;<url>;<status>;".
    """

    def __init__(
        self,
        url: str,
        status_code: int = DEFAULT_REDIRECT_STATUS,
        redirect_type: Literal["replace", "push"] = "replace",
    ) -> None:
        super().__init__(REDIRECT_SIGNAL)
        self.url = url
        self.status_code = status_code
        self.digest = f"{REDIRECT_SIGNAL};{redirect_type};{url};{status_code};"


def not_found() -> NoReturn:
    """Abort the handler with a not-found signal."""
    raise NotFoundSignal()


def redirect(url: str, status_code: int = DEFAULT_REDIRECT_STATUS) -> NoReturn:
    """Abort the handler with a redirect signal."""
    raise RedirectSignal(url, status_code)


def redirect_status_from_digest(digest: str | None) -> int:
    """Extract the redirect status (4th ';' segment) from a digest.

    Args:
        digest: Signal digest, e.g. "NEXT_REDIRECT;replace;/login;308;".

    Returns:
        The encoded status, or 307 if the digest is missing or malformed.
    """
    if not digest:
        return DEFAULT_REDIRECT_STATUS
    parts = digest.split(";")
    if len(parts) < 4:
        return DEFAULT_REDIRECT_STATUS
    try:
        return int(parts[3])
    except ValueError:
        return DEFAULT_REDIRECT_STATUS


def classify_error(
    error: BaseException,
    *,
    not_found_log_level: LogLevel = LogLevel.WARN,
    redirect_log_level: LogLevel = LogLevel.INFO,
) -> tuple[int, LogLevel]:
    """Map a handler exception to a response status and log severity.

    Args:
        error: Exception raised by the handler.
        not_found_log_level: Severity for not-found signals.
        redirect_log_level: Severity for redirect signals.

    Returns:
        (status_code, level). Unrecognized errors are (500, ERROR).
    """
    message = str(error)

    if message == NOT_FOUND_SIGNAL:
        return 404, not_found_log_level
    if message == REDIRECT_SIGNAL:
        return redirect_status_from_digest(getattr(error, "digest", None)), redirect_log_level

    if isinstance(error, HTTPException):
        if error.status_code == 404:
            return 404, not_found_log_level
        return error.status_code, LogLevel.ERROR

    return 500, LogLevel.ERROR
