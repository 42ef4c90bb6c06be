"""
Field Validator / Coercer
=========================

Converts loosely typed parsed LLM output into typed records. Every function
here is total: bad or missing input becomes a safe default, never an error.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar

from .parser import ParseMode
from .schemas import (
    Analysis,
    Contradiction,
    ContradictionSource,
    Difficulty,
    Gap,
    GenerationResult,
    Priority,
    Question,
    QuestionCategory,
    Severity,
    TimelineEvent,
)

logger = logging.getLogger(__name__)

MAX_QUESTIONS = 20
QUESTION_PLACEHOLDER = "Question not available"
DEFAULT_TOPIC = "General"

E = TypeVar("E", bound=Enum)

# Default used for every enum field when the value is missing or unknown
ENUM_DEFAULTS: Dict[Type[Enum], Enum] = {
    QuestionCategory: QuestionCategory.GENERAL,
    Priority: Priority.MEDIUM,
    Severity: Severity.MODERATE,
    Difficulty: Difficulty.MEDIUM,
}


def coerce_enum(value: Any, enum_cls: Type[E]) -> E:
    """Map value onto enum_cls, falling back to its entry in ENUM_DEFAULTS"""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        try:
            return enum_cls(normalized)
        except ValueError:
            pass
    return ENUM_DEFAULTS[enum_cls]


def _text(value: Any) -> Optional[str]:
    """Strings pass through, numbers are stringified, everything else is None"""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return None


def _optional_text(value: Any) -> Optional[str]:
    text = _text(value)
    if text is None or not text.strip():
        return None
    return text


def _string_list(value: Any) -> Optional[List[str]]:
    if not isinstance(value, list):
        return None
    items = []
    for item in value:
        text = _text(item)
        if text is not None:
            items.append(text)
    return items


def _pick(raw: Dict[str, Any], *keys: str) -> Any:
    """First present key, so both camelCase and snake_case output is accepted"""
    for key in keys:
        if key in raw:
            return raw[key]
    return None


def coerce_question(raw: Any) -> Question:
    if not isinstance(raw, dict):
        raw = {"question": raw} if isinstance(raw, str) else {}

    question = _text(raw.get("question"))
    if question is None or not question.strip():
        question = QUESTION_PLACEHOLDER

    return Question(
        question=question,
        topic=_optional_text(raw.get("topic")) or DEFAULT_TOPIC,
        category=coerce_enum(raw.get("category"), QuestionCategory),
        priority=coerce_enum(raw.get("priority"), Priority),
        difficulty=coerce_enum(raw.get("difficulty"), Difficulty),
        document_reference=_optional_text(_pick(raw, "documentReference", "document_reference")),
        page_reference=_optional_text(_pick(raw, "pageReference", "page_reference")),
        rationale=_optional_text(raw.get("rationale")),
        follow_up_questions=_string_list(_pick(raw, "followUpQuestions", "follow_up_questions")),
        exhibit_to_show=_optional_text(_pick(raw, "exhibitToShow", "exhibit_to_show")),
        suggested_approach=_optional_text(_pick(raw, "suggestedApproach", "suggested_approach")),
        weak_point=_optional_text(_pick(raw, "weakPoint", "weak_point")),
    )


def coerce_questions(raw: Any, limit: int = MAX_QUESTIONS) -> List[Question]:
    """Coerce a list of question objects, truncated to ``limit``"""
    if not isinstance(raw, list):
        return []
    return [coerce_question(item) for item in raw[:limit]]


def coerce_gap(raw: Any) -> Gap:
    if not isinstance(raw, dict):
        raw = {}
    return Gap(
        description=_text(raw.get("description")) or "",
        document_references=_string_list(_pick(raw, "documentReferences", "document_references")) or [],
        severity=coerce_enum(raw.get("severity"), Severity),
        suggested_questions=_string_list(_pick(raw, "suggestedQuestions", "suggested_questions")) or [],
    )


def _coerce_source(raw: Any) -> ContradictionSource:
    if not isinstance(raw, dict):
        raw = {}
    return ContradictionSource(
        document=_text(raw.get("document")) or "",
        excerpt=_text(raw.get("excerpt")) or "",
        page=_optional_text(raw.get("page")),
    )


def coerce_contradiction(raw: Any) -> Contradiction:
    if not isinstance(raw, dict):
        raw = {}
    return Contradiction(
        description=_text(raw.get("description")) or "",
        source1=_coerce_source(raw.get("source1")),
        source2=_coerce_source(raw.get("source2")),
        severity=coerce_enum(raw.get("severity"), Severity),
        suggested_questions=_string_list(_pick(raw, "suggestedQuestions", "suggested_questions")) or [],
    )


def coerce_analysis(raw: Any) -> Analysis:
    if not isinstance(raw, dict):
        raw = {}

    events = []
    raw_events = _pick(raw, "timelineEvents", "timeline_events")
    if isinstance(raw_events, list):
        for item in raw_events:
            if not isinstance(item, dict):
                continue
            events.append(TimelineEvent(
                date=_text(item.get("date")) or "",
                event=_text(item.get("event")) or "",
                source=_text(item.get("source")) or "",
            ))

    return Analysis(
        key_themes=_string_list(_pick(raw, "keyThemes", "key_themes")) or [],
        timeline_events=events,
        witnesses=_string_list(raw.get("witnesses")) or [],
        key_exhibits=_string_list(_pick(raw, "keyExhibits", "key_exhibits")) or [],
    )


def _coerce_list(raw: Any, coerce) -> list:
    if not isinstance(raw, list):
        return []
    return [coerce(item) for item in raw]


def coerce_generation(parsed: Any, mode: ParseMode) -> Optional[GenerationResult]:
    """
    Build a GenerationResult from parser output.

    ARRAY mode expects a question list; OBJECT mode expects the analysis
    object with ``questions``, ``gaps``, ``contradictions`` and ``analysis``.

    Returns:
        The result, or None when no question survives coercion. Callers
        treat None as a parse failure.
    """
    if mode == ParseMode.ARRAY:
        if isinstance(parsed, dict):
            parsed = parsed.get("questions")
        questions = coerce_questions(parsed)
        result = GenerationResult(questions=questions)
    else:
        if not isinstance(parsed, dict):
            return None
        result = GenerationResult(
            questions=coerce_questions(parsed.get("questions")),
            gaps=_coerce_list(parsed.get("gaps"), coerce_gap),
            contradictions=_coerce_list(parsed.get("contradictions"), coerce_contradiction),
            analysis=coerce_analysis(parsed.get("analysis")),
        )

    if not result.questions:
        logger.warning(f"Parsed LLM output held no questions ({mode.value})")
        return None
    return result
