"""Power Redact — scan a document for sensitive text and hide it behind revealable spans."""

from .document import Element, Text, parse_html, to_html, inner_html, NodeTreeAdapter
from .engine import PowerRedact
from .errors import PatternCompileError, PersistenceParseError, RedactError, SelectionError
from .patterns import PatternSet, find_matches, is_excluded
from .registry import RedactedSpan, RevealStateHolder, SpanRegistry
from .reveal import RevealStateMachine
from .scanner import TreeScanner
from .selection import SelectionRedactor, TextRange, TextSelection
from .settings import MemoryStore, RedactionSettings, SettingsStore, SqliteStore
from .types import DisplayMode, MatchSpan, RegexPattern, RevealBehavior, RevealState

__all__ = [
    "PowerRedact",
    "Element", "Text", "parse_html", "to_html", "inner_html", "NodeTreeAdapter",
    "PatternSet", "find_matches", "is_excluded",
    "TreeScanner",
    "RedactedSpan", "RevealStateHolder", "SpanRegistry",
    "RevealStateMachine",
    "SelectionRedactor", "TextRange", "TextSelection",
    "RedactionSettings", "SettingsStore", "MemoryStore", "SqliteStore",
    "DisplayMode", "MatchSpan", "RegexPattern", "RevealBehavior", "RevealState",
    "RedactError", "PatternCompileError", "SelectionError", "PersistenceParseError",
]
__version__ = "2.0.0"
