"""Tree scanner — finds matches in every visible text leaf and wraps them.

Matching happens against each leaf's original text; the leaf is then
replaced by plain text nodes and span nodes built directly, so matched text
is never re-parsed as markup.  Leaves inside an existing span or inside the
settings panel are rejected, which makes a second scan a no-op.
"""

from __future__ import annotations
import logging
from typing import Any

from .document import MARKER_REDACTED, MARKER_SETTINGS, DocumentAdapter, NodeTreeAdapter
from .patterns import PatternSet
from .registry import RedactedSpan
from .types import DisplayMode, MatchSpan

logger = logging.getLogger(__name__)

_REJECT_MARKERS = frozenset({MARKER_REDACTED, MARKER_SETTINGS})


class TreeScanner:
    """Applies a PatternSet to a subtree, in place."""

    def __init__(
        self,
        adapter: DocumentAdapter | None = None,
        *,
        display_mode: DisplayMode = DisplayMode.INLINE,
    ) -> None:
        self.adapter = adapter or NodeTreeAdapter()
        self.display_mode = display_mode

    def scan(self, root: Any, pattern_set: PatternSet) -> list[RedactedSpan]:
        """Wrap every surviving match under root.  Returns the new spans.

        Synchronous full traversal; there is no batching or cancellation.
        """
        created: list[RedactedSpan] = []
        leaves = [leaf for leaf in self.adapter.list_text_leaves(root) if self.accepts(leaf)]
        for leaf in leaves:
            text = self.adapter.text_of(leaf)
            matches = pattern_set.find_matches(text)
            if matches:
                created.extend(self._rewrite(leaf, text, matches))
        logger.debug("Scanned %d text leaves, created %d spans", len(leaves), len(created))
        return created

    def accepts(self, leaf: Any) -> bool:
        """False if the leaf sits inside a span or the settings panel."""
        node = self.adapter.parent_of(leaf)
        while node is not None:
            if self.adapter.marker_set(node) & _REJECT_MARKERS:
                return False
            node = self.adapter.parent_of(node)
        return True

    def _rewrite(self, leaf: Any, text: str, matches: list[MatchSpan]) -> list[RedactedSpan]:
        nodes: list[Any] = []
        spans: list[RedactedSpan] = []
        pos = 0
        for m in matches:
            if m.start > pos:
                nodes.append(self.adapter.create_text(text[pos:m.start]))
            span = self.make_span(m.text)
            nodes.append(span.node)
            spans.append(span)
            pos = m.end
        if pos < len(text):
            nodes.append(self.adapter.create_text(text[pos:]))
        self.adapter.replace_leaf(leaf, nodes)
        return spans

    def make_span(self, text: str) -> RedactedSpan:
        span = RedactedSpan(node=None, original_text=text, display_mode=self.display_mode)
        span.node = self.adapter.create_span(text, span.markers())
        return span
