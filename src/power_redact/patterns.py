"""Pattern set — built-in PII rules, user patterns, and the exclusion filter.

Rules are evaluated in declared order against the original leaf text.  A
region taken by an earlier rule is never considered by a later one, so
spans cannot overlap or nest.
"""

from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Union

from .errors import PatternCompileError
from .types import MatchSpan, RegexPattern

if TYPE_CHECKING:
    from .settings import RedactionSettings

logger = logging.getLogger(__name__)

CustomPattern = Union[str, RegexPattern, re.Pattern]

# Each built-in: (rule name, compiled regex).  Order matters.
_PII_PATTERNS: list[tuple[str, re.Pattern]] = [
    # SSN (US)
    ("SSN", re.compile(r"\b\d{3}-\d{2}-\d{4}\b")),

    # Credit card — four groups of four, optional space/dash separators
    ("CREDIT_CARD", re.compile(r"\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b")),

    # Email
    ("EMAIL", re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")),

    # Phone — 555-123-4567, 555.123.4567, 555 123 4567, 5551234567
    ("PHONE", re.compile(r"\b\d{3}[\s.-]?\d{3}[\s.-]?\d{4}\b")),
]

PII_RULE_NAMES = tuple(name for name, _ in _PII_PATTERNS)


@dataclass(frozen=True, slots=True)
class Rule:
    name: str
    regex: re.Pattern
    source: str            # "regex" for built-ins, "custom" for user patterns


def compile_pattern(entry: CustomPattern) -> re.Pattern:
    """Compile a custom pattern entry.

    Literal strings are escaped and matched case-insensitively anywhere in
    the text.  Raises PatternCompileError for a regex that will not compile.
    """
    if isinstance(entry, re.Pattern):
        return entry
    if isinstance(entry, RegexPattern):
        try:
            return re.compile(entry.source, entry.compile_flags())
        except (re.error, ValueError) as exc:
            raise PatternCompileError(entry.source, str(exc)) from exc
    if isinstance(entry, str):
        return re.compile(re.escape(entry), re.IGNORECASE)
    raise PatternCompileError(entry, f"unsupported pattern type {type(entry).__name__}")


def describe_pattern(entry: CustomPattern) -> str:
    if isinstance(entry, re.Pattern):
        return entry.pattern
    if isinstance(entry, RegexPattern):
        return entry.source
    return str(entry)


@dataclass
class PatternSet:
    """Ordered match rules plus the exclusion list."""

    rules: list[Rule] = field(default_factory=list)
    exclude_terms: list[str] = field(default_factory=list)
    use_presidio: bool = False

    @classmethod
    def from_settings(cls, settings: RedactionSettings) -> PatternSet:
        rules: list[Rule] = []
        if settings.auto_redact_pii:
            rules.extend(Rule(name, regex, "regex") for name, regex in _PII_PATTERNS)
        for entry in settings.custom_patterns:
            try:
                regex = compile_pattern(entry)
            except PatternCompileError as exc:
                logger.warning("Skipping custom pattern: %s", exc)
                continue
            rules.append(Rule(describe_pattern(entry), regex, "custom"))
        return cls(
            rules=rules,
            exclude_terms=list(settings.exclude_terms),
            use_presidio=settings.use_presidio,
        )

    @classmethod
    def builtin(cls) -> PatternSet:
        return cls(rules=[Rule(name, regex, "regex") for name, regex in _PII_PATTERNS])

    def find_matches(self, text: str) -> list[MatchSpan]:
        matches = find_matches(text, self.rules, self.exclude_terms)
        if self.use_presidio and text.strip():
            from .presidio_layer import scan_presidio
            extra = scan_presidio(text, exclude_spans=[(m.start, m.end) for m in matches])
            extra = [m for m in extra if not is_excluded(m.text, self.exclude_terms)]
            if extra:
                matches = sorted(matches + extra, key=lambda m: m.start)
        return matches


def find_matches(
    text: str,
    rules: list[Rule],
    exclude_terms: list[str] | None = None,
) -> list[MatchSpan]:
    """Run rules in order against text.  Returns non-overlapping matches.

    Every rule sees the same original text; a candidate that overlaps a
    region already taken is dropped, as is one vetoed by an exclude term.
    Excluded candidates do not take their region.
    """
    exclude = exclude_terms or []
    taken: list[MatchSpan] = []
    for rule in rules:
        for m in rule.regex.finditer(text):
            start, end = m.span()
            if start == end:
                continue
            if any(start < t.end and end > t.start for t in taken):
                continue
            if is_excluded(m.group(), exclude):
                continue
            taken.append(MatchSpan(
                start=start,
                end=end,
                text=m.group(),
                rule=rule.name,
                source=rule.source,
            ))
    return sorted(taken, key=lambda s: s.start)


def is_excluded(matched_text: str, exclude_terms: list[str]) -> bool:
    """True iff any exclude term is a case-insensitive substring of the match."""
    folded = matched_text.casefold()
    return any(term and term.casefold() in folded for term in exclude_terms)
