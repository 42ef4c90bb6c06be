"""
Robust LLM Response Parser
==========================

Turns a completion that should be JSON into a parsed value. Hosted models
wrap valid JSON in prose or markdown fences, or emit one malformed entry
among valid ones, so parsing walks an ordered chain of strategies and the
first success of the right shape wins:

1. Parse as-is
2. Strip BOM and markdown fences, then parse
3. Greedy regex for the first object / array-of-objects span
4. First opening to last closing bracket
5. (array) Textual repairs: trailing commas, raw control characters
6. (array) Salvage each ``{... "question" ...}`` object independently

Nothing here raises. ``None`` means "unparsable" and callers treat it
exactly like a transport failure.
"""

import hashlib
import json
import logging
import re
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class ParseMode(str, Enum):
    """Expected top-level JSON shape"""
    OBJECT = "object"  # Deposition analysis, practice feedback
    ARRAY = "array"    # Witness question list


_FENCE_OPEN = re.compile(r"^```(?:json)?\s*\n?", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\n?```\s*$")
_OBJECT_SPAN = re.compile(r"\{[\s\S]*\}")
_ARRAY_SPAN = re.compile(r"\[\s*\{[\s\S]*\}\s*\]")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_QUESTION_OBJECT = re.compile(r"\{[^{}]*\"question\"[^{}]*\}")


def safe_log_content(content: str, max_chars: int = 120) -> str:
    """
    Create a safe log representation of content.

    Args:
        content: Content to log
        max_chars: Maximum characters to show

    Returns:
        Safe log string with length and hash
    """
    if not content:
        return "(empty)"

    content_hash = hashlib.sha256(content.encode()).hexdigest()[:12]
    preview = content[:max_chars].replace('\n', ' ')

    return f"len={len(content)} hash={content_hash} preview='{preview}...'"


def _shape_ok(value: Any, mode: ParseMode) -> bool:
    if mode == ParseMode.ARRAY:
        return isinstance(value, list)
    return isinstance(value, dict)


def _loads(text: str, strict: bool = True) -> Any:
    """json.loads returning None instead of raising"""
    if not text:
        return None
    try:
        return json.loads(text, strict=strict)
    except (ValueError, RecursionError):
        return None


def _brackets(mode: ParseMode) -> Tuple[str, str]:
    return ("[", "]") if mode == ParseMode.ARRAY else ("{", "}")


def _outer_span(content: str, mode: ParseMode) -> Optional[str]:
    opener, closer = _brackets(mode)
    first = content.find(opener)
    last = content.rfind(closer)
    if first == -1 or last <= first:
        return None
    return content[first:last + 1]


# =============================================================================
# Strategies
# =============================================================================

def _as_is(content: str, mode: ParseMode) -> Any:
    return _loads(content)


def _strip_fences(content: str, mode: ParseMode) -> Any:
    cleaned = content.strip().lstrip("\ufeff")
    cleaned = _FENCE_OPEN.sub("", cleaned)
    cleaned = _FENCE_CLOSE.sub("", cleaned)
    return _loads(cleaned.strip())


def _greedy_span(content: str, mode: ParseMode) -> Any:
    pattern = _ARRAY_SPAN if mode == ParseMode.ARRAY else _OBJECT_SPAN
    match = pattern.search(content)
    if not match:
        return None
    return _loads(match.group(0))


def _first_to_last(content: str, mode: ParseMode) -> Any:
    span = _outer_span(content, mode)
    return _loads(span) if span else None


def _repair(content: str, mode: ParseMode) -> Any:
    fixed = _outer_span(content, mode) or content
    fixed = _TRAILING_COMMA.sub(r"\1", fixed)
    # strict=False admits raw newlines and tabs inside string literals
    return _loads(fixed, strict=False)


def _salvage_questions(content: str, mode: ParseMode) -> Any:
    questions: List[dict] = []
    for match in _QUESTION_OBJECT.finditer(content):
        candidate = _loads(match.group(0), strict=False)
        if isinstance(candidate, dict) and isinstance(candidate.get("question"), str):
            questions.append(candidate)
    return questions or None


Strategy = Tuple[str, Callable[[str, ParseMode], Any], bool]

# (name, function, array_only)
STRATEGIES: List[Strategy] = [
    ("as_is", _as_is, False),
    ("strip_fences", _strip_fences, False),
    ("greedy_span", _greedy_span, False),
    ("first_to_last", _first_to_last, False),
    ("repair", _repair, True),
    ("salvage_questions", _salvage_questions, True),
]


def parse_llm_json_detailed(content: Optional[str], mode: ParseMode) -> Tuple[Any, Optional[str]]:
    """
    Parse LLM output, reporting which strategy succeeded.

    Returns:
        (parsed_value, strategy_name) or (None, None) when every strategy fails
    """
    if not content or not content.strip():
        return None, None

    for name, strategy, array_only in STRATEGIES:
        if array_only and mode != ParseMode.ARRAY:
            continue
        value = strategy(content, mode)
        if value is not None and _shape_ok(value, mode):
            if name != "as_is":
                logger.debug(f"LLM JSON recovered via {name}")
            return value, name

    logger.warning(f"LLM JSON unparsable ({mode.value}): {safe_log_content(content)}")
    return None, None


def parse_llm_json(content: Optional[str], mode: ParseMode) -> Any:
    """Parse LLM output into a dict (OBJECT) or list (ARRAY), or None"""
    value, _ = parse_llm_json_detailed(content, mode)
    return value
