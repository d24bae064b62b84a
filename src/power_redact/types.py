"""Core types."""

from __future__ import annotations
import re
from dataclasses import dataclass
from enum import Enum


class RevealState(str, Enum):
    HIDDEN = "hidden"
    REVEALED = "revealed"


class DisplayMode(str, Enum):
    INLINE = "inline"
    BLOCK = "block"


class RevealBehavior(str, Enum):
    CURSOR = "cursor"
    CLICK = "click"
    HOVER = "hover"


@dataclass(frozen=True, slots=True)
class MatchSpan:
    """A single surviving match inside one text leaf."""
    start: int
    end: int
    text: str
    rule: str              # e.g. "EMAIL", "PHONE", or the custom pattern
    source: str            # "regex" | "custom" | "presidio"


@dataclass(frozen=True, slots=True)
class RegexPattern:
    """A user-supplied regular expression, kept in source form."""
    source: str
    ignore_case: bool = False
    flags: int = 0         # other re flags (VERBOSE, MULTILINE, ...)

    @classmethod
    def from_compiled(cls, regex: re.Pattern) -> RegexPattern:
        # str patterns always carry re.UNICODE; it is implied on compile
        extra = regex.flags & ~(re.IGNORECASE | re.UNICODE)
        return cls(regex.pattern, bool(regex.flags & re.IGNORECASE), extra)

    def compile_flags(self) -> int:
        return self.flags | (re.IGNORECASE if self.ignore_case else 0)
