"""Exceptions raised inside the detection engine.

All of them are recovered locally (pattern, run or page level); none is
meant to reach the host process.
"""

from __future__ import annotations


class RedactionError(Exception):
    """Base class for engine errors."""


class MalformedPatternError(RedactionError):
    """A detector's regular expression failed to compile."""

    def __init__(self, name: str, regex: str, reason: str) -> None:
        super().__init__(f"Pattern {name!r} is malformed: {reason}")
        self.name = name
        self.regex = regex
        self.reason = reason


class GeometryUnavailable(RedactionError):
    """A text run has no usable position data for a strategy."""
