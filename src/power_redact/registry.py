"""Redacted-span registry and the shared reveal state.

Design goals:
  - One RedactedSpan per span node, looked up by node identity
  - The "currently revealed" pointer is an explicit object, not a global,
    so the reveal state machine can be driven without a document
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Iterator

from .document import (
    MARKER_BLOCK,
    MARKER_HIDDEN,
    MARKER_REDACTED,
    MARKER_REVEALED,
    MARKER_TOUCH_LOCK,
)
from .types import DisplayMode, RevealState


@dataclass(eq=False, slots=True)
class RedactedSpan:
    """A wrapped region of sensitive text.  Compared by identity."""
    node: Any
    original_text: str
    display_mode: DisplayMode = DisplayMode.INLINE
    reveal_state: RevealState = RevealState.HIDDEN
    touch_locked: bool = False

    @property
    def is_revealed(self) -> bool:
        return self.reveal_state is RevealState.REVEALED

    def markers(self) -> set[str]:
        """Marker set the presentation layer reads for this span."""
        out = {MARKER_REDACTED}
        out.add(MARKER_REVEALED if self.is_revealed else MARKER_HIDDEN)
        if self.touch_locked:
            out.add(MARKER_TOUCH_LOCK)
        if self.display_mode is DisplayMode.BLOCK:
            out.add(MARKER_BLOCK)
        return out


@dataclass(slots=True)
class RevealStateHolder:
    """At most one span document-wide is revealed; this points at it."""
    current: RedactedSpan | None = None


@dataclass
class SpanRegistry:
    """Live set of spans created by the scanner or the selection redactor."""

    _spans: dict[int, RedactedSpan] = field(default_factory=dict, repr=False)

    # ------------------------------------------------------------------
    # Core API
    # ------------------------------------------------------------------

    def add(self, span: RedactedSpan) -> RedactedSpan:
        self._spans[id(span.node)] = span
        return span

    def discard(self, span: RedactedSpan) -> None:
        existing = self._spans.get(id(span.node))
        if existing is span:
            del self._spans[id(span.node)]

    def get(self, node: Any) -> RedactedSpan | None:
        """Return the span wrapping this node, if any."""
        span = self._spans.get(id(node))
        if span is not None and span.node is node:
            return span
        return None

    def revealed(self) -> list[RedactedSpan]:
        return [s for s in self._spans.values() if s.is_revealed]

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def __iter__(self) -> Iterator[RedactedSpan]:
        return iter(list(self._spans.values()))

    def __len__(self) -> int:
        return len(self._spans)

    def __contains__(self, span: object) -> bool:
        return isinstance(span, RedactedSpan) and self.get(span.node) is span

    def clear(self) -> None:
        self._spans.clear()
