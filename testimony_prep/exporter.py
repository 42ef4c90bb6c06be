"""
Outline Exporter
================

Renders a session's outline (or, without one, its questions grouped by
topic) as PDF, DOCX or plain text for use during the examination.
"""

from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
import re
import unicodedata
from typing import List, Optional, Tuple
from urllib.parse import quote

from .profiles import get_profile
from .schemas import ExportFormat, ExportOptions, Priority, Question, Session, SessionKind, utc_now

PRIORITY_MARKERS = {
    Priority.HIGH: "***",
    Priority.MEDIUM: "**",
    Priority.LOW: "*",
}

FOOTER_LABELS = {
    SessionKind.WITNESS: "Cross-Examination of",
    SessionKind.DEPOSITION: "Deposition of",
}

MEDIA_TYPES = {
    ExportFormat.PDF: "application/pdf",
    ExportFormat.DOCX: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ExportFormat.TXT: "text/plain; charset=utf-8",
}


@dataclass
class ExportSection:
    title: str
    questions: List[Question]


def export_sections(session: Session, options: Optional[ExportOptions] = None) -> List[ExportSection]:
    """Outline sections in order, or all questions grouped by topic"""
    options = options or ExportOptions()
    if session.outline is not None and session.outline.sections and not options.group_by_topic:
        ordered = sorted(session.outline.sections, key=lambda s: s.order)
        return [ExportSection(title=s.title, questions=list(s.questions)) for s in ordered if s.questions]

    sections: List[ExportSection] = []
    for question in session.questions:
        if not sections or sections[-1].title != question.topic:
            existing = next((s for s in sections if s.title == question.topic), None)
            if existing is not None:
                existing.questions.append(question)
                continue
            sections.append(ExportSection(title=question.topic, questions=[]))
        sections[-1].questions.append(question)
    return sections


def header_lines(session: Session, generated: Optional[datetime] = None) -> Tuple[str, List[str]]:
    profile = get_profile(session.kind)
    generated = generated or utc_now()
    lines = [
        f"Case: {session.case_name}",
        f"{profile.subject_label.capitalize()}: {session.subject_name}",
    ]
    if session.case_number:
        lines.append(f"Case No: {session.case_number}")
    lines.append(f"Generated: {generated.strftime('%Y-%m-%d')}")
    return profile.outline_title.upper(), lines


def metadata_line(question: Question, include_citations: bool = True) -> str:
    parts = [f"[{question.category.value.replace('_', ' ').upper()}]"]
    if include_citations:
        if question.document_reference:
            parts.append(f"Doc: {question.document_reference}")
        if question.page_reference:
            parts.append(f"Page: {question.page_reference}")
        if question.exhibit_to_show:
            parts.append(f"Show Exhibit: {question.exhibit_to_show}")
    return " | ".join(parts)


def footer_text(session: Session) -> str:
    return f"{session.case_name} - {FOOTER_LABELS[session.kind]} {session.subject_name}"


def _name_part(subject_name: str, ascii_only: bool) -> str:
    name = subject_name.strip()
    if ascii_only:
        name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    name = re.sub(r"\s+", "_", name.strip())
    return re.sub(r"[^\w.-]", "", name) or "subject"


def export_filename(
    session: Session,
    fmt: ExportFormat,
    generated: Optional[datetime] = None,
    ascii_only: bool = True,
) -> str:
    """
    e.g. Deposition_Outline_Jane_Doe_2024-05-01.pdf

    With ascii_only the subject is folded to ASCII ("José" -> "Jose"); names
    with nothing left after folding become "subject".
    """
    generated = generated or utc_now()
    prefix = "Deposition" if session.kind == SessionKind.DEPOSITION else "Witness"
    name = _name_part(session.subject_name, ascii_only)
    return f"{prefix}_Outline_{name}_{generated.strftime('%Y-%m-%d')}.{fmt.value}"


def content_disposition(session: Session, fmt: ExportFormat, generated: Optional[datetime] = None) -> str:
    """Attachment header with an ASCII filename and the UTF-8 name (RFC 6266)"""
    generated = generated or utc_now()
    fallback = export_filename(session, fmt, generated)
    full = export_filename(session, fmt, generated, ascii_only=False)
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(full)}"


# =============================================================================
# Builders
# =============================================================================

def build_outline_txt(session: Session, options: Optional[ExportOptions] = None) -> bytes:
    options = options or ExportOptions()
    title, lines = header_lines(session)
    out = [title, *lines, "=" * 60, ""]

    for section in export_sections(session, options):
        out.append(section.title.upper())
        out.append("-" * len(section.title))
        for number, question in enumerate(section.questions, start=1):
            out.append(f"Q{number}. {PRIORITY_MARKERS[question.priority]} {question.question}")
            out.append(f"    {metadata_line(question, options.include_citations)}")
            if options.include_rationale and question.rationale:
                out.append(f"    Rationale: {question.rationale}")
            if options.include_follow_ups and question.follow_up_questions:
                out.append("    Follow-ups:")
                out.extend(f"      -> {item}" for item in question.follow_up_questions)
            out.append("")

    out.append(footer_text(session))
    return "\n".join(out).encode("utf-8")


def build_outline_docx(session: Session, options: Optional[ExportOptions] = None) -> bytes:
    from docx import Document
    from docx.enum.text import WD_ALIGN_PARAGRAPH
    from docx.shared import Pt

    options = options or ExportOptions()
    doc = Document()

    title, lines = header_lines(session)
    heading = doc.add_heading(title, level=0)
    heading.alignment = WD_ALIGN_PARAGRAPH.CENTER
    for line in lines:
        doc.add_paragraph(line).alignment = WD_ALIGN_PARAGRAPH.CENTER

    def _small(text: str, indent: int = 1):
        para = doc.add_paragraph()
        para.paragraph_format.left_indent = Pt(18 * indent)
        run = para.add_run(text)
        run.font.size = Pt(9)
        return para

    for section in export_sections(session, options):
        doc.add_heading(section.title, level=1)
        for number, question in enumerate(section.questions, start=1):
            para = doc.add_paragraph()
            para.add_run(f"Q{number}. {PRIORITY_MARKERS[question.priority]} ").bold = True
            para.add_run(question.question)
            _small(metadata_line(question, options.include_citations))
            if options.include_rationale and question.rationale:
                _small(f"Rationale: {question.rationale}")
            if options.include_follow_ups and question.follow_up_questions:
                _small("Follow-ups:")
                for item in question.follow_up_questions:
                    _small(f"-> {item}", indent=2)

    footer = doc.sections[0].footer.paragraphs[0]
    footer.text = footer_text(session)
    footer.alignment = WD_ALIGN_PARAGRAPH.CENTER

    buf = BytesIO()
    doc.save(buf)
    buf.seek(0)
    return buf.read()


def build_outline_pdf(session: Session, options: Optional[ExportOptions] = None) -> bytes:
    from reportlab.lib.pagesizes import LETTER
    from reportlab.lib.utils import simpleSplit
    from reportlab.pdfgen import canvas

    options = options or ExportOptions()
    footer = footer_text(session)

    class NumberedCanvas(canvas.Canvas):
        """Defers page output so every footer can show the total page count"""

        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            self._saved_pages = []

        def showPage(self):
            self._saved_pages.append(dict(self.__dict__))
            self._startPage()

        def save(self):
            total = len(self._saved_pages)
            for number, state in enumerate(self._saved_pages, start=1):
                self.__dict__.update(state)
                self.setFont("Helvetica", 8)
                self.setFillGray(0.5)
                self.drawCentredString(width / 2, 30, f"Page {number} of {total} | {footer}")
                super().showPage()
            super().save()

    width, height = LETTER
    margin = 54
    content_width = width - 2 * margin

    buf = BytesIO()
    c = NumberedCanvas(buf, pagesize=LETTER)
    y = height - margin

    def draw_text(text: str, size: int = 10, font: str = "Helvetica", indent: int = 0, gray: float = 0.0):
        nonlocal y
        for line in simpleSplit(text, font, size, content_width - indent) or [""]:
            if y < margin + 20:
                c.showPage()
                y = height - margin
            c.setFont(font, size)
            c.setFillGray(gray)
            c.drawString(margin + indent, y, line)
            y -= size + 4

    title, lines = header_lines(session)
    c.setFont("Helvetica-Bold", 18)
    c.drawCentredString(width / 2, y, title)
    y -= 26
    for line in lines:
        c.setFont("Helvetica", 11)
        c.drawCentredString(width / 2, y, line)
        y -= 15
    y -= 6
    c.line(margin, y, width - margin, y)
    y -= 20

    for section in export_sections(session, options):
        y -= 6
        draw_text(section.title.upper(), size=13, font="Helvetica-Bold")
        y -= 4
        for number, question in enumerate(section.questions, start=1):
            draw_text(f"Q{number}. {PRIORITY_MARKERS[question.priority]} {question.question}", size=11)
            draw_text(metadata_line(question, options.include_citations), size=8, indent=18, gray=0.4)
            if options.include_rationale and question.rationale:
                draw_text(f"Rationale: {question.rationale}", size=9, indent=18, gray=0.3)
            if options.include_follow_ups and question.follow_up_questions:
                draw_text("Follow-ups:", size=9, indent=18, gray=0.3)
                for item in question.follow_up_questions:
                    draw_text(f"-> {item}", size=9, indent=28, gray=0.3)
            y -= 8

    c.showPage()
    c.save()
    buf.seek(0)
    return buf.read()


BUILDERS = {
    ExportFormat.PDF: build_outline_pdf,
    ExportFormat.DOCX: build_outline_docx,
    ExportFormat.TXT: build_outline_txt,
}


def export_outline(session: Session, options: Optional[ExportOptions] = None) -> Tuple[bytes, str, str]:
    """Returns (content, media type, filename)"""
    options = options or ExportOptions()
    content = BUILDERS[options.format](session, options)
    return content, MEDIA_TYPES[options.format], export_filename(session, options.format)
