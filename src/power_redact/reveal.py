"""Reveal state machine — Hidden <-> Revealed for pointer and touch input.

Whatever the input path, revealing a span first hides the span that is
currently revealed, so at most one span is ever Revealed.  Only the touch
path sets the touch lock.

Usage:
    state = RevealStateHolder()
    machine = RevealStateMachine(state)

    machine.reveal(a)
    machine.reveal(b)          # a is hidden first
    machine.toggle_touch(b)    # b hidden, lock cleared
"""

from __future__ import annotations
import logging
from typing import Callable

from .registry import RedactedSpan, RevealStateHolder
from .types import RevealBehavior, RevealState

logger = logging.getLogger(__name__)


class RevealStateMachine:
    """Drives per-span reveal state against one shared RevealStateHolder."""

    def __init__(
        self,
        state: RevealStateHolder | None = None,
        *,
        behavior: RevealBehavior = RevealBehavior.CURSOR,
        on_change: Callable[[RedactedSpan], None] | None = None,
    ) -> None:
        self.state = state or RevealStateHolder()
        self.behavior = behavior
        self._on_change = on_change

    @property
    def current(self) -> RedactedSpan | None:
        return self.state.current

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def reveal(self, span: RedactedSpan) -> None:
        """Hidden -> Revealed, evicting whichever other span is revealed."""
        current = self.state.current
        if current is not None and current is not span:
            self.hide(current)

        if not span.is_revealed:
            span.reveal_state = RevealState.REVEALED
            self._changed(span)
        self.state.current = span

    def hide(self, span: RedactedSpan) -> None:
        """Revealed -> Hidden.  Leaving Revealed always drops the touch lock."""
        if span.is_revealed or span.touch_locked:
            span.reveal_state = RevealState.HIDDEN
            span.touch_locked = False
            self._changed(span)
        if self.state.current is span:
            self.state.current = None

    def toggle_touch(self, span: RedactedSpan) -> None:
        if span.is_revealed:
            self.hide(span)
        else:
            self.reveal(span)
            span.touch_locked = True
            self._changed(span)

    # ------------------------------------------------------------------
    # Pointer input (non-touch devices)
    # ------------------------------------------------------------------

    def pointer_enter(self, span: RedactedSpan) -> None:
        if self.behavior is RevealBehavior.CLICK:
            return
        self.reveal(span)

    def pointer_leave(self, span: RedactedSpan) -> None:
        if self.behavior is RevealBehavior.CLICK:
            return
        if self.state.current is span:
            self.hide(span)

    def click(self, span: RedactedSpan) -> None:
        if self.behavior is not RevealBehavior.CLICK:
            return
        if span.is_revealed:
            self.hide(span)
        else:
            self.reveal(span)

    def reset(self) -> None:
        """Hide the revealed span, if any."""
        if self.state.current is not None:
            self.hide(self.state.current)

    def _changed(self, span: RedactedSpan) -> None:
        # never log original_text
        logger.debug("span %#x -> %s (touch_locked=%s)",
                     id(span), span.reveal_state.value, span.touch_locked)
        if self._on_change is not None:
            self._on_change(span)
