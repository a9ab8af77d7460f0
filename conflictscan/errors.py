"""
Error Types

Only malformed configuration is reported as an error: an uncompilable
dictionary pattern, a structurally broken dictionary, or an unparsable
query string. Malformed record text never raises.
"""

from __future__ import annotations

from typing import Any, Optional


class ConflictScanError(Exception):
    """Base class for all engine errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Dictionary form for API responses and log payloads."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
            "type": self.__class__.__name__,
        }
        if self.context:
            result["context"] = self.context
        return result

    def __str__(self) -> str:
        return self.message


class InvalidPattern(ConflictScanError):
    """
    A dictionary entry whose pattern text failed to compile.

    Collected as a diagnostic on the loaded dictionary; the entry is
    excluded and loading continues.
    """

    def __init__(self, key: str, group: str, pattern: str, reason: str):
        super().__init__(
            f"Invalid regex for {group} '{key}': {reason}",
            context={"key": key, "group": group, "pattern": pattern},
        )
        self.key = key
        self.group = group
        self.pattern = pattern
        self.reason = reason


class PatternLoadError(ConflictScanError):
    """The pattern dictionary input is structurally unusable."""


class MalformedQuery(ConflictScanError, ValueError):
    """
    A boolean query string could not be parsed.

    Callers may fall back to treating the whole string as a literal
    substring query.
    """

    def __init__(self, message: str, query: str, position: Optional[int] = None):
        context: dict[str, Any] = {"query": query}
        if position is not None:
            context["position"] = position
        super().__init__(message, context=context)
        self.query = query
        self.position = position
