"""
Ingest Pipeline
===============

Text extraction for uploaded case documents (TXT, PDF, DOCX).
"""

from .base import (
    ParseResult,
    ParserError,
    UnsupportedFormatError,
    estimate_page_count,
    is_placeholder,
    placeholder_for,
)
from .txt import TXTParser
from .docx import DOCXParser
from .pdf import PDFTextParser
from .factory import ExtractedText, detect_mime_type, extract_text, get_parser, is_supported

__all__ = [
    # Base types
    "ParseResult", "ParserError", "UnsupportedFormatError",
    "estimate_page_count", "is_placeholder", "placeholder_for",
    # Parsers
    "TXTParser", "DOCXParser", "PDFTextParser",
    # Factory
    "ExtractedText", "detect_mime_type", "extract_text", "get_parser", "is_supported",
]
