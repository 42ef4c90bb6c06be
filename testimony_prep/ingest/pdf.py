"""
PDF Text Parser
===============

PDF parser for text-based PDFs (not scanned).
Uses pypdf for extraction.
"""

import io
import logging
from typing import List, Optional

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from .base import (
    DocumentParser,
    ParseResult,
    ParserError,
    normalize_text,
)

logger = logging.getLogger(__name__)


class PDFTextParser(DocumentParser):
    """
    PDF text parser.

    Extracts text from PDFs that have embedded text. Scanned PDFs come back
    with empty text and the caller keeps a placeholder.
    """

    @property
    def supported_mimes(self) -> List[str]:
        return [
            "application/pdf",
            "application/x-pdf"
        ]

    def parse(self, data: bytes, filename: Optional[str] = None) -> ParseResult:
        """Parse PDF file"""
        try:
            reader = PdfReader(io.BytesIO(data))
            page_texts = []

            for page_no, page in enumerate(reader.pages, start=1):
                try:
                    page_text = page.extract_text() or ""
                except (PyPdfError, ValueError, KeyError) as e:
                    logger.debug(f"PDF page {page_no} text extraction failed: {e}")
                    page_text = ""
                page_texts.append(normalize_text(page_text))

            full_text = "\n\n".join(text for text in page_texts if text)

            metadata = {"page_count": len(page_texts)}
            if reader.metadata:
                if reader.metadata.title:
                    metadata['title'] = reader.metadata.title
                if reader.metadata.author:
                    metadata['author'] = reader.metadata.author

            return ParseResult(
                full_text=full_text,
                page_count=len(page_texts),
                metadata=metadata
            )

        except Exception as e:
            raise ParserError(f"Failed to parse PDF file: {e}")
