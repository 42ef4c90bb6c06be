"""
Document Categorizer
====================

Guesses a document's category from its filename and text, and pulls light
metadata (witness name, date, estimated page count) for display.

Rules are checked in order, first match wins:
- TRANSCRIPT: "transcript"/"deposition" in the name, or Q:/A: markers in the text
- PRIOR_TESTIMONY: "testimony"/"statement" in the name, or sworn language
- EXHIBIT: "exhibit" or "ex-12" style names
- CASE_FILE: complaint, motion, brief or filing names
- OTHER
"""

import logging
import re
from typing import Optional

from .ingest.base import estimate_page_count
from .schemas import DocumentCategory, DocumentMetadata

logger = logging.getLogger(__name__)


TRANSCRIPT_NAME_MARKERS = ("transcript", "deposition")
TRANSCRIPT_TEXT_MARKERS = ("q:", "a:", "question:", "answer:")
TESTIMONY_NAME_MARKERS = ("testimony", "statement")
TESTIMONY_TEXT_MARKERS = ("sworn", "under oath")
CASE_FILE_NAME_MARKERS = ("complaint", "motion", "brief", "filing")

EXHIBIT_NAME_PATTERN = re.compile(r"ex[_-]?\d+")

WITNESS_PATTERN = re.compile(
    r"(?i:witness|deponent|testimony of)[:\s]+([A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+)+)"
)
DATE_PATTERN = re.compile(
    r"(?i:date|dated|on)[:\s]+(\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}|[A-Za-z]+\s+\d{1,2},?\s+\d{4})"
)


def categorize_document(filename: str, content: Optional[str]) -> DocumentCategory:
    """Guess the category of an uploaded document"""
    name = (filename or "").lower()
    text = (content or "").lower()

    if any(m in name for m in TRANSCRIPT_NAME_MARKERS) or any(m in text for m in TRANSCRIPT_TEXT_MARKERS):
        return DocumentCategory.TRANSCRIPT

    if any(m in name for m in TESTIMONY_NAME_MARKERS) or any(m in text for m in TESTIMONY_TEXT_MARKERS):
        return DocumentCategory.PRIOR_TESTIMONY

    if "exhibit" in name or EXHIBIT_NAME_PATTERN.search(name):
        return DocumentCategory.EXHIBIT

    if any(m in name for m in CASE_FILE_NAME_MARKERS):
        return DocumentCategory.CASE_FILE

    return DocumentCategory.OTHER


def resolve_category(requested: Optional[str], filename: str, content: Optional[str]) -> DocumentCategory:
    """Explicit category from the upload form when valid, otherwise a guess"""
    if requested:
        try:
            return DocumentCategory(requested.strip().lower())
        except ValueError:
            logger.info(f"Ignoring unknown document category '{requested}' for {filename}")
    return categorize_document(filename, content)


def extract_metadata(filename: str, content: Optional[str]) -> DocumentMetadata:
    text = content or ""

    witness = None
    match = WITNESS_PATTERN.search(text)
    if match:
        witness = match.group(1).strip()

    date = None
    match = DATE_PATTERN.search(text)
    if match:
        date = match.group(1).strip()

    return DocumentMetadata(
        witness=witness,
        date=date,
        page_count=estimate_page_count(text),
        source=filename,
    )
