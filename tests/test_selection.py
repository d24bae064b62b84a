"""Tests for manual redaction of a user selection."""

import logging
import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from power_redact import DisplayMode, SelectionRedactor, SpanRegistry, TextRange, TextSelection, parse_html, to_html


def _redactor(**kw):
    registry = SpanRegistry()
    return registry, SelectionRedactor(registry, **kw)


def test_wrap_within_one_text_node():
    root = parse_html("<p>my secret word</p>")
    leaf = root.children[0].children[0]
    selection = TextSelection.within(leaf, 3, 9)
    registry, redactor = _redactor()

    span = redactor.redact_selection(selection)

    assert span is not None
    assert span.original_text == "secret"
    assert span in registry
    assert selection.range_count == 0
    assert to_html(root) == '<p>my <span class="power-redact power-redact-hidden">secret</span> word</p>'


def test_wrap_across_sibling_nodes():
    root = parse_html("<p>one <b>two</b> three</p>")
    p = root.children[0]
    start, end = p.children[0], p.children[2]
    _, redactor = _redactor()

    span = redactor.redact_selection(TextSelection([TextRange(start, 2, end, 3)]))

    assert span.original_text == "e two th"
    assert to_html(root) == (
        '<p>on<span class="power-redact power-redact-hidden">e <b>two</b> th</span>ree</p>'
    )


def test_whole_text_node():
    root = parse_html("<p>secret</p>")
    leaf = root.children[0].children[0]
    _, redactor = _redactor(display_mode=DisplayMode.BLOCK)
    span = redactor.redact_selection(TextSelection.within(leaf, 0, 6))
    assert to_html(root) == '<p><span class="power-redact block-style power-redact-hidden">secret</span></p>'
    assert span.display_mode is DisplayMode.BLOCK


def test_partial_element_overlap_is_rejected(caplog):
    markup = "<p>one <b>two</b></p>"
    root = parse_html(markup)
    p = root.children[0]
    start, end = p.children[0], p.children[1].children[0]
    selection = TextSelection([TextRange(start, 1, end, 2)])
    registry, redactor = _redactor()

    with caplog.at_level(logging.WARNING, logger="power_redact.selection"):
        assert redactor.redact_selection(selection) is None

    assert to_html(root) == markup
    assert selection.range_count == 1
    assert len(registry) == 0
    assert "Could not redact selection" in caplog.text


def test_selection_inside_existing_span_is_rejected():
    root = parse_html("<p>my secret word</p>")
    _, redactor = _redactor()
    span = redactor.redact_selection(TextSelection.within(root.children[0].children[0], 3, 9))
    inner = span.node.children[0]
    assert redactor.redact_selection(TextSelection.within(inner, 0, 3)) is None


def test_selection_containing_span_is_rejected():
    root = parse_html("<p>my secret word</p>")
    _, redactor = _redactor()
    redactor.redact_selection(TextSelection.within(root.children[0].children[0], 3, 9))
    before = to_html(root)
    p = root.children[0]
    rng = TextRange(p.children[0], 0, p.children[2], 2)
    assert redactor.redact_selection(TextSelection([rng])) is None
    assert to_html(root) == before


def test_collapsed_backwards_and_empty_selections():
    root = parse_html("<p>abc</p>")
    leaf = root.children[0].children[0]
    _, redactor = _redactor()
    assert redactor.redact_selection(TextSelection()) is None
    assert redactor.redact_selection(TextSelection.within(leaf, 1, 1)) is None
    assert redactor.redact_selection(TextSelection.within(leaf, 2, 1)) is None
    assert redactor.redact_selection(TextSelection.within(leaf, 0, 10)) is None
    assert to_html(root) == "<p>abc</p>"
