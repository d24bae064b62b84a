"""Document tree — a small mutable text tree plus the adapter the scanner uses.

The scanner never touches nodes directly; it goes through a DocumentAdapter,
so the same core runs against any tree-shaped text model.  NodeTreeAdapter
is the implementation for the Element/Text tree in this module, which can
be built from HTML with parse_html() and written back with to_html().
"""

from __future__ import annotations
import html
from html.parser import HTMLParser
from typing import Any, Iterator, Protocol

# ------------------------------------------------------------------
# Marker vocabulary (CSS class names read by the presentation layer)
# ------------------------------------------------------------------

MARKER_REDACTED = "power-redact"
MARKER_HIDDEN = "power-redact-hidden"
MARKER_REVEALED = "power-redact-revealed"
MARKER_TOUCH_LOCK = "power-redact-touch-lock"
MARKER_BLOCK = "block-style"
MARKER_SETTINGS = "power-redact-settings"

STATE_MARKERS = frozenset({MARKER_HIDDEN, MARKER_REVEALED, MARKER_TOUCH_LOCK, MARKER_BLOCK})

SPAN_TAG = "span"

_VOID_TAGS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "source", "track", "wbr",
})
_RAW_TEXT_TAGS = frozenset({"script", "style"})
# Text under these is not part of the visible text layer
_INVISIBLE_TAGS = frozenset({"script", "style", "template", "noscript"})


# ------------------------------------------------------------------
# Nodes
# ------------------------------------------------------------------

class Node:
    __slots__ = ("parent",)

    def __init__(self) -> None:
        self.parent: Element | None = None

    def text_content(self) -> str:
        raise NotImplementedError

    def clone(self) -> Node:
        raise NotImplementedError

    def replace_with(self, *nodes: Node) -> None:
        """Put nodes in this node's place.  Detaches this node."""
        parent = self.parent
        if parent is None:
            raise ValueError("cannot replace a detached node")
        idx = parent.index(self)
        for n in nodes:
            if n.parent is not None:
                n.parent.remove(n)
            n.parent = parent
        parent.children[idx:idx + 1] = list(nodes)
        self.parent = None

    def ancestors(self) -> Iterator[Element]:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent


class Text(Node):
    __slots__ = ("data",)

    def __init__(self, data: str = "") -> None:
        super().__init__()
        self.data = data

    def text_content(self) -> str:
        return self.data

    def clone(self) -> Text:
        return Text(self.data)

    def __repr__(self) -> str:
        return f"Text({self.data!r})"


class Element(Node):
    __slots__ = ("tag", "attrs", "classes", "children")

    def __init__(
        self,
        tag: str | None,
        attrs: dict[str, str | None] | None = None,
        classes: list[str] | None = None,
        children: list[Node] | None = None,
    ) -> None:
        super().__init__()
        self.tag = tag              # None for a fragment root
        self.attrs = dict(attrs or {})
        self.classes = list(classes or [])
        self.children: list[Node] = []
        for child in children or []:
            self.append(child)

    def append(self, child: Node) -> Node:
        if child.parent is not None:
            child.parent.remove(child)
        child.parent = self
        self.children.append(child)
        return child

    def remove(self, child: Node) -> None:
        self.children.remove(child)
        child.parent = None

    def index(self, child: Node) -> int:
        for i, c in enumerate(self.children):
            if c is child:
                return i
        raise ValueError("not a child of this element")

    def has_class(self, name: str) -> bool:
        return name in self.classes

    def text_content(self) -> str:
        return "".join(c.text_content() for c in self.children)

    def set_text(self, text: str) -> None:
        for c in self.children:
            c.parent = None
        self.children = []
        if text:
            self.append(Text(text))

    def iter_descendants(self) -> Iterator[Node]:
        """Depth-first, document order."""
        for child in self.children:
            yield child
            if isinstance(child, Element):
                yield from child.iter_descendants()

    def clone(self) -> Element:
        return Element(
            self.tag,
            attrs=self.attrs,
            classes=self.classes,
            children=[c.clone() for c in self.children],
        )

    def normalize(self) -> None:
        """Merge adjacent text children and drop empty ones, recursively."""
        merged: list[Node] = []
        for child in self.children:
            if isinstance(child, Text):
                if not child.data:
                    child.parent = None
                    continue
                if merged and isinstance(merged[-1], Text):
                    merged[-1].data += child.data
                    child.parent = None
                    continue
            elif isinstance(child, Element):
                child.normalize()
            merged.append(child)
        self.children = merged

    def __repr__(self) -> str:
        return f"Element({self.tag!r}, classes={self.classes!r}, children={len(self.children)})"


def fragment(*children: Node | str) -> Element:
    """Build a fragment root; plain strings become Text nodes."""
    return Element(None, children=[Text(c) if isinstance(c, str) else c for c in children])


# ------------------------------------------------------------------
# HTML in/out
# ------------------------------------------------------------------

class _TreeBuilder(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.root = Element(None)
        self._stack: list[Element] = [self.root]

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        el = _element_from_attrs(tag, attrs)
        self._stack[-1].append(el)
        if tag not in _VOID_TAGS:
            self._stack.append(el)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self._stack[-1].append(_element_from_attrs(tag, attrs))

    def handle_endtag(self, tag: str) -> None:
        # Close up to the matching open tag; ignore stray end tags
        for i in range(len(self._stack) - 1, 0, -1):
            if self._stack[i].tag == tag:
                del self._stack[i:]
                return

    def handle_data(self, data: str) -> None:
        parent = self._stack[-1]
        if parent.children and isinstance(parent.children[-1], Text):
            parent.children[-1].data += data
        else:
            parent.append(Text(data))


def _element_from_attrs(tag: str, attrs: list[tuple[str, str | None]]) -> Element:
    classes: list[str] = []
    rest: dict[str, str | None] = {}
    for name, value in attrs:
        if name == "class":
            classes = (value or "").split()
        else:
            rest[name] = value
    return Element(tag, attrs=rest, classes=classes)


def parse_html(markup: str) -> Element:
    """Parse markup into a fragment root."""
    builder = _TreeBuilder()
    builder.feed(markup)
    builder.close()
    return builder.root


def to_html(node: Node) -> str:
    """Serialize a node (outer HTML).  A fragment root serializes its children."""
    parts: list[str] = []
    _write(node, parts, raw=False)
    return "".join(parts)


def inner_html(node: Element) -> str:
    parts: list[str] = []
    raw = node.tag in _RAW_TEXT_TAGS
    for child in node.children:
        _write(child, parts, raw=raw)
    return "".join(parts)


def _write(node: Node, parts: list[str], *, raw: bool) -> None:
    if isinstance(node, Text):
        parts.append(node.data if raw else html.escape(node.data, quote=False))
        return
    assert isinstance(node, Element)
    if node.tag is None:
        for child in node.children:
            _write(child, parts, raw=False)
        return
    parts.append(f"<{node.tag}")
    if node.classes:
        parts.append(f' class="{html.escape(" ".join(node.classes))}"')
    for name, value in node.attrs.items():
        if value is None:
            parts.append(f" {name}")
        else:
            parts.append(f' {name}="{html.escape(value)}"')
    parts.append(">")
    if node.tag in _VOID_TAGS:
        return
    raw_children = node.tag in _RAW_TEXT_TAGS
    for child in node.children:
        _write(child, parts, raw=raw_children)
    parts.append(f"</{node.tag}>")


# ------------------------------------------------------------------
# Adapter
# ------------------------------------------------------------------

class DocumentAdapter(Protocol):
    """What the scanner needs from a document model."""

    def list_text_leaves(self, root: Any) -> list[Any]: ...
    def text_of(self, leaf: Any) -> str: ...
    def parent_of(self, node: Any) -> Any | None: ...
    def marker_set(self, node: Any) -> set[str]: ...
    def set_markers(self, node: Any, markers: set[str]) -> None: ...
    def create_text(self, text: str) -> Any: ...
    def create_span(self, text: str, markers: set[str]) -> Any: ...
    def replace_leaf(self, leaf: Any, nodes: list[Any]) -> None: ...


class NodeTreeAdapter:
    """DocumentAdapter over Element/Text trees."""

    def list_text_leaves(self, root: Element) -> list[Text]:
        leaves: list[Text] = []
        self._collect(root, leaves)
        return leaves

    def _collect(self, el: Element, out: list[Text]) -> None:
        if el.tag in _INVISIBLE_TAGS:
            return
        for child in el.children:
            if isinstance(child, Text):
                if child.data:
                    out.append(child)
            elif isinstance(child, Element):
                self._collect(child, out)

    def text_of(self, leaf: Text) -> str:
        return leaf.data

    def parent_of(self, node: Node) -> Element | None:
        return node.parent

    def marker_set(self, node: Node) -> set[str]:
        if isinstance(node, Element):
            return set(node.classes)
        return set()

    def set_markers(self, node: Element, markers: set[str]) -> None:
        """Replace the state markers on a span, leaving other classes alone."""
        kept = [c for c in node.classes if c not in STATE_MARKERS and c != MARKER_REDACTED]
        ordered = [MARKER_REDACTED] + sorted(markers - {MARKER_REDACTED})
        node.classes = ordered + [c for c in kept if c not in markers]

    def create_text(self, text: str) -> Text:
        return Text(text)

    def create_span(self, text: str, markers: set[str]) -> Element:
        span = Element(SPAN_TAG, children=[Text(text)] if text else [])
        self.set_markers(span, markers)
        return span

    def replace_leaf(self, leaf: Text, nodes: list[Node]) -> None:
        leaf.replace_with(*nodes)
