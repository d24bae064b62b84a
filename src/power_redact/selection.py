"""Manual redaction of a user selection.

A range can be wrapped only when wrapping it does not split an element:
both endpoints must sit in text nodes under the same parent.  Anything else
is a SelectionError, which is logged and leaves the document and the
selection untouched.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field

from .document import MARKER_REDACTED, SPAN_TAG, Element, NodeTreeAdapter, Node, Text
from .errors import SelectionError
from .registry import RedactedSpan, SpanRegistry
from .types import DisplayMode

logger = logging.getLogger(__name__)


@dataclass
class TextRange:
    start_leaf: Text
    start_offset: int
    end_leaf: Text
    end_offset: int

    @property
    def collapsed(self) -> bool:
        return self.start_leaf is self.end_leaf and self.start_offset == self.end_offset


@dataclass
class TextSelection:
    ranges: list[TextRange] = field(default_factory=list)

    @classmethod
    def within(cls, leaf: Text, start: int, end: int) -> TextSelection:
        """Selection of leaf.data[start:end]."""
        return cls([TextRange(leaf, start, leaf, end)])

    @property
    def range_count(self) -> int:
        return len(self.ranges)

    def get_range_at(self, index: int) -> TextRange:
        return self.ranges[index]

    def remove_all_ranges(self) -> None:
        self.ranges.clear()


class SelectionRedactor:
    """Wraps a selection into a new span and registers it."""

    def __init__(
        self,
        registry: SpanRegistry,
        *,
        adapter: NodeTreeAdapter | None = None,
        display_mode: DisplayMode = DisplayMode.INLINE,
    ) -> None:
        self.registry = registry
        self.adapter = adapter or NodeTreeAdapter()
        self.display_mode = display_mode

    def redact_selection(self, selection: TextSelection) -> RedactedSpan | None:
        """Wrap the first range.  Returns None (and logs) if it can't be wrapped."""
        if selection.range_count == 0:
            return None
        try:
            span = self._wrap(selection.get_range_at(0))
        except SelectionError as exc:
            logger.warning("Could not redact selection: %s", exc)
            return None
        self.registry.add(span)
        selection.remove_all_ranges()
        return span

    def _wrap(self, rng: TextRange) -> RedactedSpan:
        start, end = rng.start_leaf, rng.end_leaf
        if not isinstance(start, Text) or not isinstance(end, Text):
            raise SelectionError("range endpoints must be text nodes")
        if rng.collapsed:
            raise SelectionError("selection is empty")
        parent = start.parent
        if parent is None or end.parent is not parent:
            raise SelectionError("selection partially covers an element")
        if not 0 <= rng.start_offset <= len(start.data):
            raise SelectionError(f"start offset {rng.start_offset} out of range")
        if not 0 <= rng.end_offset <= len(end.data):
            raise SelectionError(f"end offset {rng.end_offset} out of range")
        if any(a.has_class(MARKER_REDACTED) for a in start.ancestors()):
            raise SelectionError("selection is inside a redacted span")

        i, j = parent.index(start), parent.index(end)
        if i > j or (i == j and rng.start_offset > rng.end_offset):
            raise SelectionError("selection runs backwards")

        middle = parent.children[i + 1:j]
        for node in middle:
            if isinstance(node, Element) and _contains_span(node):
                raise SelectionError("selection contains a redacted span")

        if start is end:
            before = start.data[:rng.start_offset]
            inner: list[Node] = [Text(start.data[rng.start_offset:rng.end_offset])]
            after = start.data[rng.end_offset:]
        else:
            before = start.data[:rng.start_offset]
            inner = [Text(start.data[rng.start_offset:]), *middle, Text(end.data[:rng.end_offset])]
            after = end.data[rng.end_offset:]

        text = "".join(n.text_content() for n in inner)
        if not text:
            raise SelectionError("selection contains no text")

        # Detach the covered children, then splice in before/span/after
        covered = parent.children[i:j + 1]
        for node in covered:
            node.parent = None
        span_node = Element(SPAN_TAG, children=[n for n in inner if not (isinstance(n, Text) and not n.data)])
        span = RedactedSpan(node=span_node, original_text=text, display_mode=self.display_mode)
        self.adapter.set_markers(span_node, span.markers())

        replacement: list[Node] = []
        if before:
            replacement.append(Text(before))
        replacement.append(span_node)
        if after:
            replacement.append(Text(after))
        for node in replacement:
            node.parent = parent
        parent.children[i:j + 1] = replacement
        return span


def _contains_span(el: Element) -> bool:
    if el.has_class(MARKER_REDACTED):
        return True
    return any(isinstance(n, Element) and n.has_class(MARKER_REDACTED) for n in el.iter_descendants())
