"""
TXT Parser
==========

Simple text file parser.
"""

from typing import List, Optional

import chardet

from .base import (
    DocumentParser,
    ParseResult,
    ParserError,
    estimate_page_count,
    normalize_text,
)


class TXTParser(DocumentParser):
    """
    Plain text file parser.

    Handles encoding detection.
    """

    @property
    def supported_mimes(self) -> List[str]:
        return [
            "text/plain",
            "application/x-empty"
        ]

    def parse(self, data: bytes, filename: Optional[str] = None) -> ParseResult:
        """Parse plain text file"""
        try:
            # Try UTF-8 first, most uploads are UTF-8 and chardet misreads short files
            try:
                text = data.decode('utf-8')
                encoding, confidence = 'utf-8', 1.0
            except UnicodeDecodeError:
                detected = chardet.detect(data)
                encoding = detected.get('encoding') or 'utf-8'
                confidence = detected.get('confidence', 0)
                try:
                    text = data.decode(encoding)
                except (UnicodeDecodeError, LookupError):
                    text = data.decode('utf-8', errors='replace')

            text = normalize_text(text)

            return ParseResult(
                full_text=text,
                page_count=estimate_page_count(text),
                metadata={
                    "encoding": encoding,
                    "confidence": confidence,
                }
            )

        except Exception as e:
            raise ParserError(f"Failed to parse text file: {e}")
