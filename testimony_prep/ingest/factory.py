"""
Parser Factory
==============

Picks a parser for an upload and turns it into document text. Formats with
no extractable text (legacy .doc, scanned or broken PDFs) keep a placeholder
instead of failing the upload.
"""

import logging
import mimetypes
import os
from dataclasses import dataclass
from typing import List, Optional

from .base import DocumentParser, ParserError, UnsupportedFormatError, placeholder_for
from .docx import DOCXParser
from .pdf import PDFTextParser
from .txt import TXTParser

logger = logging.getLogger(__name__)

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
DOC_MIME = "application/msword"
PDF_MIME = "application/pdf"
TXT_MIME = "text/plain"

ALLOWED_EXTENSIONS = {".txt", ".pdf", ".doc", ".docx"}
ALLOWED_MIMES = {TXT_MIME, PDF_MIME, DOC_MIME, DOCX_MIME}

# Checked in order; the first parser whose supported_mimes match wins
_parsers: List[DocumentParser] = [TXTParser(), DOCXParser(), PDFTextParser()]

_ext_mapping = {
    '.txt': TXT_MIME,
    '.docx': DOCX_MIME,
    '.doc': DOC_MIME,
    '.pdf': PDF_MIME,
}


@dataclass
class ExtractedText:
    """Text for a stored document"""
    content: str
    mime_type: str
    extracted: bool  # False when content is a placeholder


def file_extension(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lower()


def is_supported(filename: str, content_type: Optional[str] = None) -> bool:
    """Allowed when either the declared MIME type or the extension is known"""
    if content_type and content_type.split(";")[0].strip().lower() in ALLOWED_MIMES:
        return True
    return file_extension(filename) in ALLOWED_EXTENSIONS


def detect_mime_type(filename: str, data: Optional[bytes] = None) -> str:
    """
    Detect MIME type from filename and optionally file content.

    Args:
        filename: File name
        data: Optional file content for magic number detection

    Returns:
        MIME type string
    """
    ext = file_extension(filename)
    if ext in _ext_mapping:
        return _ext_mapping[ext]

    mime_type, _ = mimetypes.guess_type(filename or "")
    if mime_type:
        return mime_type

    # Try magic numbers if data provided
    if data:
        if data[:4] == b'%PDF':
            return PDF_MIME
        if data[:4] == b'PK\x03\x04' and b'word/' in data[:2000]:
            return DOCX_MIME

    return 'application/octet-stream'


def get_parser(mime_type: str) -> Optional[DocumentParser]:
    """
    Get parser for MIME type.

    Returns:
        DocumentParser or None if not supported
    """
    return next((parser for parser in _parsers if parser.can_parse(mime_type)), None)


def extract_text(data: bytes, filename: str, content_type: Optional[str] = None) -> ExtractedText:
    """
    Extract document text from an upload.

    Raises:
        UnsupportedFormatError: If the format is not an allowed upload type
    """
    if not is_supported(filename, content_type):
        raise UnsupportedFormatError(
            f"Unsupported file format: {filename}. Allowed types: TXT, PDF, DOC, DOCX"
        )

    mime_type = detect_mime_type(filename, data)
    if mime_type not in ALLOWED_MIMES and content_type:
        mime_type = content_type.split(";")[0].strip().lower()

    is_word = mime_type in (DOC_MIME, DOCX_MIME)
    parser = get_parser(mime_type)

    if parser is None:
        # Legacy .doc has no text extraction
        return ExtractedText(content=placeholder_for(filename, word=is_word), mime_type=mime_type, extracted=False)

    try:
        result = parser.parse(data, filename)
    except ParserError as e:
        if mime_type == TXT_MIME:
            raise
        logger.warning(f"Text extraction failed for {filename}: {e}")
        return ExtractedText(content=placeholder_for(filename, word=is_word), mime_type=mime_type, extracted=False)

    if not result.full_text.strip() and mime_type != TXT_MIME:
        logger.info(f"No embedded text in {filename}, keeping placeholder")
        return ExtractedText(content=placeholder_for(filename, word=is_word), mime_type=mime_type, extracted=False)

    return ExtractedText(content=result.full_text, mime_type=mime_type, extracted=True)
