"""Optional NER layer — Presidio detection for names, places and organizations.

Runs after the pattern rules when ``use_presidio`` is set.  Presidio (and
spaCy under it) is only imported on first use; if it is missing, or the
model cannot be loaded, the layer logs once and contributes nothing.
"""

from __future__ import annotations
import logging
from typing import TYPE_CHECKING

from .types import MatchSpan

if TYPE_CHECKING:
    from presidio_analyzer import AnalyzerEngine

logger = logging.getLogger(__name__)

# Lazy singleton — don't load spaCy until first use
_engine: AnalyzerEngine | None = None
_engine_lang: str = ""
_unavailable: bool = False


def _get_engine(language: str = "en") -> AnalyzerEngine | None:
    """Lazy-init the Presidio analyzer engine."""
    global _engine, _engine_lang, _unavailable
    if _unavailable:
        return None
    if _engine is None or _engine_lang != language:
        try:
            from presidio_analyzer import AnalyzerEngine
            from presidio_analyzer.nlp_engine import NlpEngineProvider
        except ImportError:
            logger.warning("presidio-analyzer is not installed; NER layer disabled")
            _unavailable = True
            return None

        # A missing spaCy model surfaces here (OSError) rather than at import
        try:
            provider = NlpEngineProvider(nlp_configuration={
                "nlp_engine_name": "spacy",
                "models": [{"lang_code": language, "model_name": f"{language}_core_web_sm"}],
            })
            nlp_engine = provider.create_engine()
            _engine = AnalyzerEngine(nlp_engine=nlp_engine, supported_languages=[language])
        except Exception as exc:
            logger.warning("Presidio engine unavailable (%s); NER layer disabled", exc)
            _unavailable = True
            return None
        _engine_lang = language
    return _engine


DEFAULT_ENTITIES = [
    "PERSON",
    "LOCATION",
    "ORGANIZATION",
]


def scan_presidio(
    text: str,
    *,
    language: str = "en",
    entities: list[str] | None = None,
    score_threshold: float = 0.35,
    exclude_spans: list[tuple[int, int]] | None = None,
) -> list[MatchSpan]:
    """Run Presidio analysis on text.

    Args:
        text: Leaf text to scan.
        language: ISO language code.
        entities: Entity types to detect (None = DEFAULT_ENTITIES).
        score_threshold: Minimum confidence score.
        exclude_spans: Regions already taken by pattern rules.
    """
    engine = _get_engine(language)
    if engine is None:
        return []
    results = engine.analyze(
        text=text,
        language=language,
        entities=entities or DEFAULT_ENTITIES,
        score_threshold=score_threshold,
    )

    taken = list(exclude_spans or [])
    matches: list[MatchSpan] = []
    for r in sorted(results, key=lambda r: (-r.score, r.start)):
        if r.start >= r.end:
            continue
        # Pattern rules win for structured PII
        if any(r.start < e and r.end > s for s, e in taken):
            continue
        taken.append((r.start, r.end))
        matches.append(MatchSpan(
            start=r.start,
            end=r.end,
            text=text[r.start:r.end],
            rule=r.entity_type,
            source="presidio",
        ))

    return sorted(matches, key=lambda m: m.start)
