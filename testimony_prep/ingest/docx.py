"""
DOCX Parser
===========

Microsoft Word document parser using python-docx.
"""

import io
from typing import List, Optional

from docx import Document as load_docx

from .base import (
    DocumentParser,
    ParseResult,
    ParserError,
    estimate_page_count,
    normalize_text,
)


class DOCXParser(DocumentParser):
    """
    Microsoft Word (.docx) parser.

    Paragraphs first, then table rows joined with " | ".
    """

    @property
    def supported_mimes(self) -> List[str]:
        return [
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        ]

    def parse(self, data: bytes, filename: Optional[str] = None) -> ParseResult:
        """Parse DOCX file"""
        try:
            doc = load_docx(io.BytesIO(data))

            parts: List[str] = []
            for para in doc.paragraphs:
                text = para.text.strip()
                if text:
                    parts.append(text)

            for table in doc.tables:
                for row in table.rows:
                    row_texts = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                    if row_texts:
                        parts.append(" | ".join(row_texts))

            full_text = normalize_text("\n".join(parts))

            metadata = {
                "paragraph_count": len(doc.paragraphs),
                "table_count": len(doc.tables),
            }
            core_props = doc.core_properties
            if core_props.author:
                metadata['author'] = core_props.author
            if core_props.title:
                metadata['title'] = core_props.title

            return ParseResult(
                full_text=full_text,
                page_count=estimate_page_count(full_text),
                metadata=metadata
            )

        except Exception as e:
            raise ParserError(f"Failed to parse DOCX file: {e}")
