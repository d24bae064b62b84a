"""Tests for the reveal state machine — eviction, touch lock, reveal behaviors."""

import random
import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from power_redact import RedactedSpan, RevealBehavior, RevealState, RevealStateHolder, RevealStateMachine


def _span(text="sensitive data"):
    return RedactedSpan(node=object(), original_text=text)


# ── Pointer path ─────────────────────────────────────────────────────

def test_reveal_evicts_previous():
    state = RevealStateHolder()
    machine = RevealStateMachine(state)
    a, b = _span("a"), _span("b")

    machine.reveal(a)
    machine.reveal(b)

    assert a.reveal_state is RevealState.HIDDEN
    assert b.reveal_state is RevealState.REVEALED
    assert state.current is b


def test_hide_clears_current():
    machine = RevealStateMachine()
    a = _span()
    machine.reveal(a)
    machine.hide(a)
    assert a.reveal_state is RevealState.HIDDEN
    assert machine.current is None


def test_pointer_leave_only_hides_current():
    machine = RevealStateMachine()
    a, b = _span("a"), _span("b")
    machine.pointer_enter(a)
    machine.pointer_leave(b)
    assert a.is_revealed
    machine.pointer_leave(a)
    assert not a.is_revealed
    assert machine.current is None


def test_pointer_never_sets_touch_lock():
    machine = RevealStateMachine()
    a = _span()
    machine.pointer_enter(a)
    assert a.is_revealed
    assert not a.touch_locked


# ── Touch path ───────────────────────────────────────────────────────

def test_toggle_touch_twice():
    machine = RevealStateMachine()
    s = _span()

    machine.toggle_touch(s)
    assert s.reveal_state is RevealState.REVEALED
    assert s.touch_locked is True

    machine.toggle_touch(s)
    assert s.reveal_state is RevealState.HIDDEN
    assert s.touch_locked is False


def test_touch_reveal_evicts_and_unlocks_previous():
    machine = RevealStateMachine()
    a, b = _span("a"), _span("b")
    machine.toggle_touch(a)
    machine.toggle_touch(b)
    assert not a.is_revealed
    assert not a.touch_locked
    assert b.is_revealed and b.touch_locked
    assert machine.current is b


def test_pointer_reveal_evicts_touch_revealed():
    machine = RevealStateMachine()
    a, b = _span("a"), _span("b")
    machine.toggle_touch(a)
    machine.pointer_enter(b)
    assert not a.is_revealed and not a.touch_locked
    assert b.is_revealed and not b.touch_locked


# ── Reveal behaviors ─────────────────────────────────────────────────

def test_click_behavior_ignores_pointer_motion():
    machine = RevealStateMachine(behavior=RevealBehavior.CLICK)
    a = _span()
    machine.pointer_enter(a)
    assert not a.is_revealed
    machine.click(a)
    assert a.is_revealed and not a.touch_locked
    machine.pointer_leave(a)
    assert a.is_revealed
    machine.click(a)
    assert not a.is_revealed


def test_click_ignored_for_cursor_behavior():
    machine = RevealStateMachine(behavior=RevealBehavior.CURSOR)
    a = _span()
    machine.click(a)
    assert not a.is_revealed


# ── Change notifications ─────────────────────────────────────────────

def test_on_change_reports_each_transition():
    seen = []
    machine = RevealStateMachine(on_change=lambda s: seen.append((s.original_text, s.reveal_state)))
    a, b = _span("a"), _span("b")
    machine.reveal(a)
    machine.reveal(b)
    assert seen == [
        ("a", RevealState.REVEALED),
        ("a", RevealState.HIDDEN),
        ("b", RevealState.REVEALED),
    ]


def test_reset_hides_current():
    machine = RevealStateMachine()
    a = _span()
    machine.toggle_touch(a)
    machine.reset()
    assert not a.is_revealed and not a.touch_locked
    assert machine.current is None


# ── Invariant ────────────────────────────────────────────────────────

def test_at_most_one_revealed_under_random_input():
    rng = random.Random(1234)
    for behavior in RevealBehavior:
        machine = RevealStateMachine(behavior=behavior)
        spans = [_span(str(i)) for i in range(5)]
        ops = [
            machine.reveal, machine.hide, machine.toggle_touch,
            machine.pointer_enter, machine.pointer_leave, machine.click,
        ]
        for _ in range(2000):
            rng.choice(ops)(rng.choice(spans))
            revealed = [s for s in spans if s.is_revealed]
            assert len(revealed) <= 1
            if revealed:
                assert machine.current is revealed[0]
            else:
                assert machine.current is None
            assert not any(s.touch_locked and not s.is_revealed for s in spans)
