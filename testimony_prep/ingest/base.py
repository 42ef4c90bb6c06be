"""
Ingest Base Types
=================

Unified output type for all parsers, plus the placeholder text kept for
uploads whose text cannot be extracted.
"""

import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


CHARS_PER_PAGE = 3000

PDF_PLACEHOLDER = "[PDF Document: {name}]"
WORD_PLACEHOLDER = "[Word Document: {name}]"

_PLACEHOLDER_PATTERN = re.compile(
    r"^\[(?:PDF Document|Word Document|Content not available)[^\]]*\]$"
)


class ParserError(Exception):
    """Base exception for parser errors"""
    pass


class UnsupportedFormatError(ParserError):
    """File format not supported"""
    pass


@dataclass
class ParseResult:
    """
    Unified result from any parser.
    """
    full_text: str
    page_count: int
    metadata: Dict[str, Any] = field(default_factory=dict)


class DocumentParser(ABC):
    """
    Abstract base class for document parsers.
    """

    @property
    @abstractmethod
    def supported_mimes(self) -> List[str]:
        """List of supported MIME types"""
        pass

    @abstractmethod
    def parse(self, data: bytes, filename: Optional[str] = None) -> ParseResult:
        """
        Parse document data.

        Args:
            data: Binary document data
            filename: Optional filename for type hints

        Returns:
            ParseResult with full text
        """
        pass

    def can_parse(self, mime_type: str) -> bool:
        """Check if this parser supports the MIME type"""
        return mime_type.lower() in [m.lower() for m in self.supported_mimes]


def normalize_text(text: str) -> str:
    """
    Normalize text for storage.

    - Collapse runs of spaces/tabs within a line
    - Keep at most one blank line between paragraphs
    - Drop zero-width characters and BOM
    """
    if not text:
        return ""

    text = text.replace('\u200b', '')  # Zero-width space
    text = text.replace('\ufeff', '')  # BOM
    text = text.replace('\r\n', '\n').replace('\r', '\n')

    lines = [' '.join(line.split()) for line in text.split('\n')]
    text = '\n'.join(lines)
    text = re.sub(r'\n{3,}', '\n\n', text)

    return text.strip()


def placeholder_for(filename: str, word: bool = False) -> str:
    """Stand-in content for a PDF / Word upload with no extractable text"""
    template = WORD_PLACEHOLDER if word else PDF_PLACEHOLDER
    return template.format(name=filename)


def is_placeholder(content: Optional[str]) -> bool:
    """True for missing content or a placeholder produced at upload time"""
    if not content or not content.strip():
        return True
    return bool(_PLACEHOLDER_PATTERN.match(content.strip()))


def estimate_page_count(content: str) -> int:
    """Rough page estimate: one page per 3000 characters, at least 1"""
    return max(1, math.ceil(len(content or "") / CHARS_PER_PAGE))
