"""
Entity Extractor - Regex entities from case documents
=====================================================

Feeds the fallback synthesizer. Each entity class is an independent pure
function from text to an ordered, deduplicated, capped list of strings:

- names: two consecutive capitalized words
- dates: "Month D, YYYY", D/M/Y, YYYY-MM-DD
- amounts: $-prefixed or thousand-separated numerals
- locations: in/at/from/to + capitalized phrase
- quotes: "...", '...', "stated/claimed/testified that ..."
- summary: first two sentences longer than 20 chars

extract_entities() runs them over a document set, skipping placeholder
content and deduplicating across documents (first source wins).
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Set

from .ingest.base import is_placeholder
from .schemas import Document

MAX_NAMES_PER_DOC = 5
MAX_DATES_PER_DOC = 5
MAX_AMOUNTS_PER_DOC = 3
MAX_LOCATIONS_PER_DOC = 3
MAX_QUOTES_PER_DOC = 3

MIN_QUOTE_CHARS = 10
MAX_QUOTE_CHARS = 100
MIN_SENTENCE_CHARS = 20
SUMMARY_SENTENCES = 2
MAX_SUMMARY_CHARS = 200

MONTHS = (
    "January", "February", "March", "April", "May", "June", "July",
    "August", "September", "October", "November", "December",
)

# Capitalized words that start a sentence or a date rather than a name
NON_NAME_WORDS: Set[str] = {
    *MONTHS,
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
    "The", "This", "That", "These", "Those", "There", "Then", "When", "Where",
    "What", "Who", "Why", "How", "And", "But", "For", "From", "With", "Without",
    "After", "Before", "During", "Under", "Over", "Upon", "Into", "Our", "Your",
    "His", "Her", "Their", "Its", "Mr", "Mrs", "Ms", "Dr", "In", "On", "At",
    "To", "By", "Of", "If", "As", "Is", "It", "We", "He", "She", "They",
    "Page", "Exhibit", "Case", "Court", "Question", "Answer", "Document",
    "Plaintiff", "Defendant", "Witness", "Deponent", "Counsel", "Attorney",
    "Yes", "No", "Okay", "Well", "Please",
}

_MONTH_ALT = "|".join(MONTHS) + r"|Jan|Feb|Mar|Apr|Jun|Jul|Aug|Sept|Sep|Oct|Nov|Dec"

NAME_PATTERN = re.compile(r"\b([A-Z][a-z]+)\s+([A-Z][a-z]+)\b")
DATE_PATTERN = re.compile(
    rf"\b(?:(?:{_MONTH_ALT})\.?\s+\d{{1,2}}(?:st|nd|rd|th)?,?\s+\d{{4}}"
    r"|\d{1,2}/\d{1,2}/\d{2,4}"
    r"|\d{4}-\d{2}-\d{2})\b"
)
AMOUNT_PATTERN = re.compile(
    r"\$\s?\d[\d,]*(?:\.\d+)?"
    r"|\b\d{1,3}(?:,\d{3})+(?:\.\d+)?\b"
)
LOCATION_PATTERN = re.compile(r"\b(?:in|at|from|to)\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)")
QUOTE_PATTERN = re.compile(
    r"\"([^\"\n]+)\""
    r"|“([^”\n]+)”"
    r"|(?<!\w)'([^'\n]+)'(?!\w)"
    r"|\b(?:stated|claimed|testified)\s+that\s+([^.!?\n]+)",
    re.IGNORECASE,
)
SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")


@dataclass
class Entity:
    """An extracted value and the document it came from"""
    value: str
    source: str


@dataclass
class ExtractedEntities:
    summaries: List[Entity] = field(default_factory=list)
    names: List[Entity] = field(default_factory=list)
    dates: List[Entity] = field(default_factory=list)
    amounts: List[Entity] = field(default_factory=list)
    locations: List[Entity] = field(default_factory=list)
    quotes: List[Entity] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.names or self.dates or self.amounts or self.locations or self.quotes)


def _dedupe(values: Iterable[str], cap: int) -> List[str]:
    seen: Set[str] = set()
    result: List[str] = []
    for value in values:
        value = value.strip()
        key = value.casefold()
        if not value or key in seen:
            continue
        seen.add(key)
        result.append(value)
        if len(result) >= cap:
            break
    return result


def _name_tokens(name: str) -> Set[str]:
    return {token.casefold() for token in re.findall(r"[A-Za-z]+", name) if len(token) > 1}


def overlaps_subject(candidate: str, subject_name: Optional[str]) -> bool:
    """True when candidate shares any name token with the subject"""
    if not subject_name:
        return False
    return bool(_name_tokens(candidate) & _name_tokens(subject_name))


# =============================================================================
# Per-class extraction
# =============================================================================

def extract_names(text: str, subject_name: Optional[str] = None, cap: int = MAX_NAMES_PER_DOC) -> List[str]:
    candidates = []
    for match in NAME_PATTERN.finditer(text):
        first, last = match.group(1), match.group(2)
        if first in NON_NAME_WORDS or last in NON_NAME_WORDS:
            continue
        name = f"{first} {last}"
        if overlaps_subject(name, subject_name):
            continue
        candidates.append(name)
    return _dedupe(candidates, cap)


def extract_dates(text: str, cap: int = MAX_DATES_PER_DOC) -> List[str]:
    return _dedupe((m.group(0) for m in DATE_PATTERN.finditer(text)), cap)


def extract_amounts(text: str, cap: int = MAX_AMOUNTS_PER_DOC) -> List[str]:
    return _dedupe((m.group(0).rstrip(",").replace("$ ", "$") for m in AMOUNT_PATTERN.finditer(text)), cap)


def extract_locations(
    text: str,
    subject_name: Optional[str] = None,
    cap: int = MAX_LOCATIONS_PER_DOC,
) -> List[str]:
    candidates = []
    for match in LOCATION_PATTERN.finditer(text):
        place = match.group(1)
        words = place.split()
        if words[0] in NON_NAME_WORDS or overlaps_subject(place, subject_name):
            continue
        candidates.append(place)
    return _dedupe(candidates, cap)


def extract_quotes(text: str, cap: int = MAX_QUOTES_PER_DOC) -> List[str]:
    candidates = []
    for match in QUOTE_PATTERN.finditer(text):
        quote = next(group for group in match.groups() if group is not None).strip()
        if MIN_QUOTE_CHARS <= len(quote) <= MAX_QUOTE_CHARS:
            candidates.append(quote)
    return _dedupe(candidates, cap)


def summarize(text: str) -> Optional[str]:
    """First two sentences longer than 20 characters, truncated to 200"""
    sentences = [
        sentence.strip()
        for sentence in SENTENCE_SPLIT.split(" ".join(text.split()))
        if len(sentence.strip()) > MIN_SENTENCE_CHARS
    ]
    if not sentences:
        return None
    return " ".join(sentences[:SUMMARY_SENTENCES])[:MAX_SUMMARY_CHARS].strip()


# =============================================================================
# Document set
# =============================================================================

def _merge(
    target: List[Entity],
    seen: Set[str],
    values: List[str],
    source: str,
) -> None:
    for value in values:
        key = value.casefold()
        if key in seen:
            continue
        seen.add(key)
        target.append(Entity(value=value, source=source))


def extract_entities(documents: Iterable[Document], subject_name: Optional[str] = None) -> ExtractedEntities:
    """
    Extract every entity class from a document set.

    Deterministic: the same documents always yield the same lists in the
    same order.
    """
    result = ExtractedEntities()
    seen = {name: set() for name in ("names", "dates", "amounts", "locations", "quotes")}

    extractors: List[tuple] = [
        ("names", lambda t: extract_names(t, subject_name)),
        ("dates", extract_dates),
        ("amounts", extract_amounts),
        ("locations", lambda t: extract_locations(t, subject_name)),
        ("quotes", extract_quotes),
    ]

    for doc in documents:
        text = doc.content or ""
        if is_placeholder(text):
            continue

        summary = summarize(text)
        if summary:
            result.summaries.append(Entity(value=summary, source=doc.name))

        for attr, extract in extractors:
            extract_fn: Callable[[str], List[str]] = extract
            _merge(getattr(result, attr), seen[attr], extract_fn(text), doc.name)

    return result
