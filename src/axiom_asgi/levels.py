"""Severity levels for log events."""

from __future__ import annotations

__all__ = ["LogLevel"]

from enum import IntEnum


class LogLevel(IntEnum):
    """Ordered event severity.

    Ordering is used both to filter events below the configured level and to
    classify handler outcomes. OFF disables every level.
    """

    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3
    OFF = 100

    @property
    def label(self) -> str:
        """Lowercase name used on the wire (e.g. "warn")."""
        return self.name.lower()

    @classmethod
    def parse(cls, value: "str | int | LogLevel") -> "LogLevel":
        """Parse a level from its name, alias, or numeric value.

        Args:
            value: Level name ("debug", "WARNING"), integer value, or LogLevel.

        Returns:
            The matching LogLevel.

        Raises:
            ValueError: If the value does not name a level.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, int):
            return cls(value)

        name = str(value).strip().upper()
        if name == "WARNING":
            name = "WARN"
        try:
            return cls[name]
        except KeyError:
            raise ValueError(f"Unknown log level: {value!r}") from None
