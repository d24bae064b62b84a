"""Tests for the pattern set — built-in rules, ordering, exclusion, custom patterns."""

import logging
import re
import sys, os
from types import ModuleType, SimpleNamespace
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

from power_redact import PatternSet, RedactionSettings, RegexPattern, find_matches, is_excluded
from power_redact import presidio_layer
from power_redact.errors import PatternCompileError
from power_redact.patterns import PII_RULE_NAMES, Rule, compile_pattern


SAMPLE = "Contact John at john.doe@email.com or call 555-123-4567"


# ── Built-in rules ───────────────────────────────────────────────────

def test_builtin_order():
    assert PII_RULE_NAMES == ("SSN", "CREDIT_CARD", "EMAIL", "PHONE")


def test_email_and_phone():
    matches = PatternSet.builtin().find_matches(SAMPLE)
    assert [m.text for m in matches] == ["john.doe@email.com", "555-123-4567"]
    assert [m.rule for m in matches] == ["EMAIL", "PHONE"]
    assert all(m.source == "regex" for m in matches)
    assert SAMPLE[matches[0].start:matches[0].end] == "john.doe@email.com"


def test_ssn_detection():
    matches = PatternSet.builtin().find_matches("SSN: 123-45-6789")
    assert len(matches) == 1
    assert matches[0].rule == "SSN"
    assert matches[0].text == "123-45-6789"


def test_credit_card_not_double_matched_as_phone():
    matches = PatternSet.builtin().find_matches("Card 4111 1111 1111 1111 on file")
    assert len(matches) == 1
    assert matches[0].rule == "CREDIT_CARD"
    assert matches[0].text == "4111 1111 1111 1111"


def test_phone_formats():
    for number in ("555-123-4567", "555.123.4567", "555 123 4567", "5551234567"):
        matches = PatternSet.builtin().find_matches(f"call {number} now")
        assert [m.text for m in matches] == [number]


def test_no_match_on_clean_text():
    assert PatternSet.builtin().find_matches("The weather is nice today") == []


# ── Ordering ─────────────────────────────────────────────────────────

def test_earlier_rule_wins_overlap():
    rules = PatternSet.builtin().rules + [Rule("john", compile_pattern("john"), "custom")]
    matches = find_matches("mail john.doe@email.com", rules)
    assert len(matches) == 1
    assert matches[0].rule == "EMAIL"


def test_later_rule_matches_outside_taken_regions():
    rules = PatternSet.builtin().rules + [Rule("john", compile_pattern("john"), "custom")]
    matches = find_matches("John: john.doe@email.com", rules)
    assert [m.text for m in matches] == ["John", "john.doe@email.com"]


def test_empty_matches_are_ignored():
    rules = [Rule("x*", compile_pattern(RegexPattern("x*")), "custom")]
    assert find_matches("abc", rules) == []


# ── Exclusion ────────────────────────────────────────────────────────

def test_is_excluded_case_insensitive():
    assert is_excluded("John.Doe@Email.com", ["john.doe"])
    assert is_excluded("555-123-4567", ["123"])
    assert not is_excluded("555-123-4567", ["999"])


def test_is_excluded_ignores_empty_terms():
    assert not is_excluded("anything", [""])


def test_excluded_match_not_returned():
    ps = PatternSet.builtin()
    ps.exclude_terms = ["john.doe@email.com"]
    matches = ps.find_matches(SAMPLE)
    assert [m.text for m in matches] == ["555-123-4567"]


def test_excluded_candidate_does_not_take_region():
    rules = [
        Rule("secret plan", compile_pattern("secret plan"), "custom"),
        Rule("secret", compile_pattern("secret"), "custom"),
    ]
    matches = find_matches("the secret plan", rules, ["plan"])
    assert [(m.text, m.rule) for m in matches] == [("secret", "secret")]


# ── Custom patterns ──────────────────────────────────────────────────

def test_literal_is_escaped_and_case_insensitive():
    regex = compile_pattern("a.b")
    assert regex.search("xx A.B yy")
    assert not regex.search("axb")


def test_regex_pattern_flags():
    assert compile_pattern(RegexPattern(r"prj-\d+", ignore_case=True)).search("PRJ-42")
    assert not compile_pattern(RegexPattern(r"prj-\d+")).search("PRJ-42")


def test_regex_pattern_extra_flags():
    regex = compile_pattern(RegexPattern(r"prj - \d+  # ticket", flags=re.VERBOSE))
    assert regex.search("PRJ-42") is None
    assert regex.search("prj-42")
    assert RegexPattern(r"x", True, re.M).compile_flags() == re.I | re.M


def test_compiled_pattern_passthrough():
    regex = re.compile(r"\bALPHA\b")
    assert compile_pattern(regex) is regex


def test_invalid_regex_raises():
    with pytest.raises(PatternCompileError):
        compile_pattern(RegexPattern("("))


def test_invalid_custom_pattern_skipped(caplog):
    settings = RedactionSettings(custom_patterns=[RegexPattern("("), "confidential"])
    with caplog.at_level(logging.WARNING, logger="power_redact.patterns"):
        ps = PatternSet.from_settings(settings)
    assert [r.name for r in ps.rules] == list(PII_RULE_NAMES) + ["confidential"]
    assert "Skipping custom pattern" in caplog.text
    matches = ps.find_matches("This contains confidential information")
    assert [m.text for m in matches] == ["confidential"]
    assert matches[0].source == "custom"


def test_from_settings_without_pii():
    ps = PatternSet.from_settings(RedactionSettings(auto_redact_pii=False, custom_patterns=["x"]))
    assert [r.name for r in ps.rules] == ["x"]


# ── Presidio layer ───────────────────────────────────────────────────

class _FakeEngine:
    def __init__(self, results):
        self.results = results

    def analyze(self, *, text, language, entities, score_threshold):
        return self.results


def test_presidio_layer_adds_non_overlapping(monkeypatch):
    text = "Alice mailed bob@example.com"
    fake = _FakeEngine([
        SimpleNamespace(entity_type="PERSON", start=0, end=5, score=0.85),
        # overlaps the email taken by the pattern rules
        SimpleNamespace(entity_type="URL", start=17, end=28, score=0.5),
    ])
    monkeypatch.setattr(presidio_layer, "_get_engine", lambda language="en": fake)

    ps = PatternSet.builtin()
    ps.use_presidio = True
    matches = ps.find_matches(text)
    assert [(m.text, m.source) for m in matches] == [
        ("Alice", "presidio"),
        ("bob@example.com", "regex"),
    ]


def test_presidio_layer_respects_exclusions(monkeypatch):
    fake = _FakeEngine([SimpleNamespace(entity_type="PERSON", start=0, end=5, score=0.85)])
    monkeypatch.setattr(presidio_layer, "_get_engine", lambda language="en": fake)

    ps = PatternSet(use_presidio=True, exclude_terms=["alice"])
    assert ps.find_matches("Alice was here") == []


def test_presidio_unavailable_contributes_nothing(monkeypatch):
    monkeypatch.setattr(presidio_layer, "_get_engine", lambda language="en": None)
    assert presidio_layer.scan_presidio("Alice was here") == []


def _install_fake_presidio(monkeypatch, create_engine):
    analyzer = ModuleType("presidio_analyzer")
    analyzer.AnalyzerEngine = lambda **kw: _FakeEngine([])
    nlp = ModuleType("presidio_analyzer.nlp_engine")
    nlp.NlpEngineProvider = lambda nlp_configuration: SimpleNamespace(create_engine=create_engine)
    monkeypatch.setitem(sys.modules, "presidio_analyzer", analyzer)
    monkeypatch.setitem(sys.modules, "presidio_analyzer.nlp_engine", nlp)
    monkeypatch.setattr(presidio_layer, "_engine", None)
    monkeypatch.setattr(presidio_layer, "_engine_lang", "")
    monkeypatch.setattr(presidio_layer, "_unavailable", False)


def test_presidio_missing_model_disables_layer(monkeypatch, caplog):
    calls = []

    def create_engine():
        calls.append(1)
        raise OSError("[E050] Can't find model 'en_core_web_sm'")

    _install_fake_presidio(monkeypatch, create_engine)
    with caplog.at_level(logging.WARNING, logger="power_redact.presidio_layer"):
        assert presidio_layer.scan_presidio("Alice was here") == []
        assert presidio_layer.scan_presidio("Bob was here") == []
    assert calls == [1]
    assert caplog.text.count("NER layer disabled") == 1


def test_patterns_still_match_when_presidio_cannot_load(monkeypatch):
    def create_engine():
        raise OSError("[E050] Can't find model 'en_core_web_sm'")

    _install_fake_presidio(monkeypatch, create_engine)
    ps = PatternSet.builtin()
    ps.use_presidio = True
    assert [m.rule for m in ps.find_matches("Alice at 555-123-4567")] == ["PHONE"]
