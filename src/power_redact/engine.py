"""PowerRedact — the main API.  Scan, reveal, manual redaction, export.

Usage:
    from power_redact import PowerRedact, parse_html

    root = parse_html("<p>Call 555-123-4567</p>")
    redact = PowerRedact(root)
    redact.init()                          # loads settings, runs auto-redaction

    span = next(iter(redact.registry))
    redact.handle_pointer_enter(span.node) # revealed
    print(redact.export_redacted_content())
    # <p>Call <span class="power-redact ...">██████</span></p>
"""

from __future__ import annotations
import logging
from typing import Any

from .document import MARKER_REDACTED, Element, NodeTreeAdapter, Text, inner_html
from .patterns import PatternSet
from .registry import RedactedSpan, RevealStateHolder, SpanRegistry
from .reveal import RevealStateMachine
from .scanner import TreeScanner
from .selection import SelectionRedactor, TextSelection
from .settings import KeyValueStore, RedactionSettings, SettingsStore
from .types import DisplayMode, RevealBehavior

logger = logging.getLogger(__name__)

BLOCK_CHAR = "█"
SETTINGS_SHORTCUT = "R"


def mask(text: str) -> str:
    """Run of block characters, half the length of text (at least one)."""
    return BLOCK_CHAR * max(1, len(text) // 2)


class PowerRedact:
    """Redaction engine bound to one document."""

    def __init__(
        self,
        root: Element,
        store: KeyValueStore | None = None,
        *,
        is_touch: bool = False,
        defaults: RedactionSettings | None = None,
        adapter: NodeTreeAdapter | None = None,
    ) -> None:
        self.root = root
        self.is_touch = is_touch
        self.adapter = adapter or NodeTreeAdapter()
        self.settings_store = SettingsStore(store, defaults=defaults)
        self.registry = SpanRegistry()
        self.reveal_state = RevealStateHolder()
        self.reveal = RevealStateMachine(self.reveal_state, on_change=self._apply_markers)
        self.scanner = TreeScanner(self.adapter)
        self.selection_redactor = SelectionRedactor(self.registry, adapter=self.adapter)
        self.settings_open = False

    @property
    def settings(self) -> RedactionSettings:
        return self.settings_store.settings

    def init(self) -> None:
        self.settings_store.load()
        self._sync_settings()
        if self.settings.enabled:
            self.start_auto_redaction()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start_auto_redaction(self) -> list[RedactedSpan]:
        """Scan the document with the current settings.  Returns new spans."""
        settings = self.settings
        if not settings.enabled or not settings.auto_redact_pii:
            return []
        self._sync_settings()
        spans = self.scanner.scan(self.root, PatternSet.from_settings(settings))
        for span in spans:
            self.registry.add(span)
        if spans:
            logger.info("Auto-redaction wrapped %d spans", len(spans))
        return spans

    def redact_text(self, text: str) -> RedactedSpan:
        """Create a detached span for text.  The caller inserts span.node."""
        self._sync_settings()
        span = self.scanner.make_span(text)
        self.registry.add(span)
        return span

    def redact_selection(self, selection: TextSelection) -> RedactedSpan | None:
        self._sync_settings()
        return self.selection_redactor.redact_selection(selection)

    def clear_all_redactions(self) -> None:
        """Unwrap every span in the document back to plain text."""
        self.reveal.reset()
        nodes = [
            n for n in self.root.iter_descendants()
            if isinstance(n, Element) and n.has_class(MARKER_REDACTED)
        ]
        unwrapped = 0
        for node in nodes:
            # Nested markers were already replaced with their outer span
            if node.parent is None or not _attached(node, self.root):
                continue
            node.replace_with(Text(node.text_content()))
            unwrapped += 1
        self.root.normalize()
        self.registry.clear()
        logger.info("Cleared %d redactions", unwrapped)

    def export_redacted_content(self) -> str:
        """Serialize the document with every span's text masked."""
        clone = self.root.clone()
        for node in list(clone.iter_descendants()):
            if isinstance(node, Element) and node.has_class(MARKER_REDACTED):
                node.set_text(mask(node.text_content()))
        return inner_html(clone)

    # ------------------------------------------------------------------
    # Settings editor hooks
    # ------------------------------------------------------------------

    def save_settings(self) -> None:
        self.settings_store.save()

    def show_settings(self) -> None:
        self.settings_open = True

    def hide_settings(self) -> None:
        self.settings_open = False

    def save_and_close(self) -> list[RedactedSpan]:
        """Persist, close the editor, and re-run auto-redaction."""
        self.save_settings()
        self.hide_settings()
        return self.start_auto_redaction()

    # ------------------------------------------------------------------
    # Input dispatch
    # ------------------------------------------------------------------

    def handle_pointer_enter(self, node: Any) -> None:
        span = self.registry.get(node)
        if span is None or self.is_touch:
            return
        self.reveal.pointer_enter(span)

    def handle_pointer_leave(self, node: Any) -> None:
        span = self.registry.get(node)
        if span is None or self.is_touch:
            return
        self.reveal.pointer_leave(span)

    def handle_click(self, node: Any) -> None:
        span = self.registry.get(node)
        if span is None or self.is_touch:
            return
        self.reveal.click(span)

    def handle_touch_start(self, node: Any) -> bool:
        """Toggle on touch.  True means the event was consumed."""
        span = self.registry.get(node)
        if span is None or not self.is_touch or not self.settings.touch_support:
            return False
        self.reveal.toggle_touch(span)
        return True

    def handle_key(self, key: str, *, ctrl: bool = False, shift: bool = False) -> bool:
        """Ctrl+Shift+R opens the settings editor; Escape closes it."""
        if ctrl and shift and key.upper() == SETTINGS_SHORTCUT:
            self.show_settings()
            return True
        if key == "Escape" and self.settings_open:
            self.hide_settings()
            return True
        return False

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _sync_settings(self) -> None:
        mode = DisplayMode.BLOCK if self.settings.block_style else DisplayMode.INLINE
        self.scanner.display_mode = mode
        self.selection_redactor.display_mode = mode
        self.reveal.behavior = RevealBehavior(self.settings.reveal_behavior)

    def _apply_markers(self, span: RedactedSpan) -> None:
        self.adapter.set_markers(span.node, span.markers())


def _attached(node: Element, root: Element) -> bool:
    return any(a is root for a in node.ancestors())
