"""Exceptions.  None of these escape a public operation."""

from __future__ import annotations


class RedactError(Exception):
    """Base class for redaction errors."""


class PatternCompileError(RedactError):
    """A custom pattern is not a valid regular expression."""

    def __init__(self, pattern: object, reason: str) -> None:
        super().__init__(f"invalid pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


class SelectionError(RedactError):
    """A selection cannot be wrapped without splitting an element."""


class PersistenceParseError(RedactError):
    """The persisted settings blob is not a usable JSON object."""
