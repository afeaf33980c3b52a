"""Custom exceptions for axiom-asgi.

Only caller mistakes raise. Everything else degrades:

Caller Errors (raised):
    - InvalidRewritesError: Original rewrites provider returned an unsupported shape
    - InvalidWrapTargetError: with_axiom() received neither a mapping nor a callable

Degraded States (never raised):
    - Missing Axiom configuration: logged as warnings, logs go to the console
    - Log delivery failures: reported on the system logger by the transport

Handler exceptions are never wrapped or replaced; the request wrapper
re-raises them unchanged after reporting.

Usage:
    from axiom_asgi.exceptions import InvalidRewritesError
"""

from __future__ import annotations

__all__ = [
    "AxiomError",
    "InvalidRewritesError",
    "InvalidWrapTargetError",
]


class AxiomError(Exception):
    """Base exception for errors raised by axiom-asgi itself."""


class InvalidRewritesError(AxiomError, TypeError):
    """Rewrites provider returned something other than a list or a phase mapping.

    Attributes:
        value_type: Type name of the unsupported value.
    """

    def __init__(self, value: object) -> None:
        self.value_type = type(value).__name__
        super().__init__(
            f"rewrites() must return a sequence of rules or a mapping of phases, got {self.value_type}"
        )


class InvalidWrapTargetError(AxiomError, TypeError):
    """with_axiom() was given a value it cannot instrument.

    Accepted values are a config mapping, a config function of exactly two
    parameters, or a request handler.
    """

    def __init__(self, value: object) -> None:
        self.value_type = type(value).__name__
        super().__init__(
            f"with_axiom() expects a config mapping, a config function or a request handler, "
            f"got {self.value_type}"
        )
