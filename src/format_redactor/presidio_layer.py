"""Optional Presidio NER layer for the name category.

The capitalized-words heuristic misses single names and lowercase
names; Presidio's PERSON recognizer catches many of them.  Uses spaCy
under the hood, so it's only imported when enabled.
"""

from __future__ import annotations
from typing import TYPE_CHECKING

from .patterns import Scanner
from .types import Category, EntityMatch

if TYPE_CHECKING:
    from presidio_analyzer import AnalyzerEngine

# Lazy singleton; spaCy loads on first use
_engine: AnalyzerEngine | None = None
_engine_lang: str = ""

PERSON_SCORE = 0.65     # between the name heuristic and the address pattern


def _get_engine(language: str = "en") -> AnalyzerEngine:
    """Lazy-init the Presidio analyzer engine."""
    global _engine, _engine_lang
    if _engine is None or _engine_lang != language:
        from presidio_analyzer import AnalyzerEngine
        from presidio_analyzer.nlp_engine import NlpEngineProvider

        provider = NlpEngineProvider(nlp_configuration={
            "nlp_engine_name": "spacy",
            "models": [{"lang_code": language, "model_name": f"{language}_core_web_sm"}],
        })
        nlp_engine = provider.create_engine()
        _engine = AnalyzerEngine(nlp_engine=nlp_engine, supported_languages=[language])
        _engine_lang = language
    return _engine


def scan_person_names(
    text: str,
    *,
    language: str = "en",
    score_threshold: float = 0.35,
) -> list[EntityMatch]:
    """Return PERSON detections as name-category matches."""
    if not text.strip():
        return []
    engine = _get_engine(language)
    results = engine.analyze(
        text=text,
        language=language,
        entities=["PERSON"],
        score_threshold=score_threshold,
    )
    matches = [
        EntityMatch(
            entity_type=Category.NAMES.value,
            start=r.start,
            end=r.end,
            text=text[r.start:r.end],
            score=PERSON_SCORE,
            source="presidio",
        )
        for r in results
    ]
    return sorted(matches, key=lambda m: m.start)


def name_scanner(*, language: str = "en", score_threshold: float = 0.35) -> Scanner:
    """Bind settings into a scanner usable by PatternLibrary."""
    def _scan(text: str) -> list[EntityMatch]:
        return scan_person_names(text, language=language, score_threshold=score_threshold)
    return _scan
