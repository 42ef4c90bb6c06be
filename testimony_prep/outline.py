"""
Outline Editor
==============

Organizes a session's questions into an ordered, sectioned outline.

Every operation reads the session, builds a new Outline and writes it back
with a single store call. Section ``order`` values always match list
position (0..n-1) after an operation that touches ordering.
"""

import logging
import math
from typing import Dict, List, Optional

from .errors import InvalidInputError, OutlineError, SectionNotFoundError
from .profiles import get_profile
from .schemas import (
    Outline,
    OutlineAction,
    OutlineActionRequest,
    OutlineSection,
    Priority,
    Question,
    SectionInput,
    Session,
    SessionKind,
)
from .store import SessionStore
from .validator import DEFAULT_TOPIC, coerce_question, coerce_questions

logger = logging.getLogger(__name__)

MINUTES_PER_QUESTION = 3

# Topics auto_organize places first, in this order; others follow alphabetically
TOPIC_ORDER = [
    "Foundation",
    "Preparation",
    "Timeline of Events",
    "Document Authentication",
    "Communications",
    "Document Discovery",
    "Prior Statements",
    "Bias and Interest",
    "Credibility",
    "Closing",
]

PRIORITY_RANK = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


def estimate_minutes(question_count: int) -> int:
    return int(math.ceil(question_count * MINUTES_PER_QUESTION))


def topic_sort_key(topic: str):
    if topic in TOPIC_ORDER:
        return (0, TOPIC_ORDER.index(topic), "")
    return (1, 0, topic.lower())


def renumber(sections: List[OutlineSection]) -> List[OutlineSection]:
    return [section.model_copy(update={"order": i}) for i, section in enumerate(sections)]


def _section_index(outline: Outline, section_id: Optional[str]) -> int:
    for i, section in enumerate(outline.sections):
        if section.id == section_id:
            return i
    raise SectionNotFoundError(f"Section not found: {section_id}")


class OutlineEditor:
    """Outline operations for one tool's sessions"""

    def __init__(self, store: SessionStore, kind: SessionKind):
        self.store = store
        self.kind = kind

    def _require_outline(self, session_id: str) -> Session:
        session = self.store.require(session_id, self.kind)
        if session.outline is None:
            raise OutlineError("No outline exists. Create an outline first.")
        return session

    def _save(self, session: Session, sections: List[OutlineSection]) -> Session:
        outline = session.outline.model_copy(update={
            "sections": sections,
            "updated_at": self.store.now(),
        })
        return self.store.update_session(session.id, outline=outline)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def get_outline(self, session_id: str) -> Optional[Outline]:
        return self.store.require(session_id, self.kind).outline

    def create_outline(self, session_id: str, title: Optional[str]) -> Session:
        """Replace any existing outline with an empty one"""
        self.store.require(session_id, self.kind)
        if not title or not title.strip():
            raise InvalidInputError("Title is required to create an outline")
        now = self.store.now()
        outline = Outline(title=title.strip(), created_at=now, updated_at=now)
        return self.store.update_session(session_id, outline=outline)

    def add_section(self, session_id: str, section: Optional[SectionInput]) -> Session:
        session = self._require_outline(session_id)
        if section is None or not section.title:
            raise InvalidInputError("Section title is required")
        new_section = OutlineSection(
            title=section.title,
            order=len(session.outline.sections),
            questions=coerce_questions(section.questions or [], limit=len(section.questions or [])),
            notes=section.notes,
            estimated_minutes=section.estimated_minutes,
        )
        return self._save(session, list(session.outline.sections) + [new_section])

    def update_section(self, session_id: str, section_id: Optional[str], section: Optional[SectionInput]) -> Session:
        if not section_id:
            raise InvalidInputError("Section ID is required")
        session = self._require_outline(session_id)
        index = _section_index(session.outline, section_id)

        changes: Dict[str, object] = {}
        if section is not None:
            if section.title:
                changes["title"] = section.title
            if section.notes is not None:
                changes["notes"] = section.notes
            if section.estimated_minutes is not None:
                changes["estimated_minutes"] = section.estimated_minutes
            if section.questions is not None:
                changes["questions"] = coerce_questions(section.questions, limit=len(section.questions))

        sections = list(session.outline.sections)
        sections[index] = sections[index].model_copy(update=changes)
        return self._save(session, sections)

    def reorder_sections(self, session_id: str, section_ids: Optional[List[str]]) -> Session:
        """
        Reorder sections to follow ``section_ids``.

        Unknown ids are ignored and sections not listed are dropped, so
        applying the same ordering twice gives the same outline.
        """
        if section_ids is None:
            raise InvalidInputError("Section IDs array is required")
        session = self._require_outline(session_id)
        by_id = {section.id: section for section in session.outline.sections}
        ordered: List[OutlineSection] = []
        for section_id in section_ids:
            section = by_id.pop(section_id, None)
            if section is not None:
                ordered.append(section)
        return self._save(session, renumber(ordered))

    def add_question_to_section(self, session_id: str, section_id: Optional[str], question: Optional[dict]) -> Session:
        if not section_id or not question:
            raise InvalidInputError("Section ID and question are required")
        session = self._require_outline(session_id)
        index = _section_index(session.outline, section_id)

        item = coerce_question(question)
        if isinstance(question.get("id"), str) and question["id"]:
            item = item.model_copy(update={"id": question["id"]})

        sections = list(session.outline.sections)
        target = sections[index]
        sections[index] = target.model_copy(update={"questions": list(target.questions) + [item]})
        return self._save(session, sections)

    def remove_question_from_section(self, session_id: str, section_id: Optional[str], question_id: Optional[str]) -> Session:
        if not section_id or not question_id:
            raise InvalidInputError("Section ID and question ID are required")
        session = self._require_outline(session_id)
        index = _section_index(session.outline, section_id)

        sections = list(session.outline.sections)
        target = sections[index]
        sections[index] = target.model_copy(update={
            "questions": [q for q in target.questions if q.id != question_id],
        })
        return self._save(session, sections)

    def auto_organize(self, session_id: str) -> Session:
        """
        Group the session's questions into one section per topic.

        Known topics come first in TOPIC_ORDER, the rest alphabetically.
        Within a section questions run high -> medium -> low priority
        (stable for equal priorities). Existing sections are kept and the
        new ones appended after them.
        """
        session = self.store.require(session_id, self.kind)
        if not session.questions:
            raise InvalidInputError("No questions available to organize")

        if session.outline is None:
            title = f"{get_profile(self.kind).outline_title} - {session.subject_name}"
            session = self.create_outline(session_id, title)

        by_topic: Dict[str, List[Question]] = {}
        for question in session.questions:
            by_topic.setdefault(question.topic or DEFAULT_TOPIC, []).append(question)

        sections = list(session.outline.sections)
        for topic in sorted(by_topic, key=topic_sort_key):
            questions = sorted(by_topic[topic], key=lambda q: PRIORITY_RANK[q.priority])
            sections.append(OutlineSection(
                title=topic,
                order=len(sections),
                questions=[q.model_copy() for q in questions],
                estimated_minutes=estimate_minutes(len(questions)),
            ))

        logger.info(f"Organized {len(session.questions)} questions into {len(by_topic)} sections for session {session_id}")
        return self._save(session, sections)

    def delete_outline(self, session_id: str) -> Session:
        self.store.require(session_id, self.kind)
        return self.store.update_session(session_id, outline=None)

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def apply(self, session_id: str, request: OutlineActionRequest) -> Session:
        """Run one outline action from the HTTP API"""
        action = request.action
        if action == OutlineAction.CREATE:
            return self.create_outline(session_id, request.title)
        if action == OutlineAction.ADD_SECTION:
            return self.add_section(session_id, request.section)
        if action == OutlineAction.UPDATE_SECTION:
            return self.update_section(session_id, request.section_id, request.section)
        if action == OutlineAction.REORDER_SECTIONS:
            return self.reorder_sections(session_id, request.section_ids)
        if action == OutlineAction.ADD_QUESTION:
            return self.add_question_to_section(session_id, request.section_id, request.question)
        if action == OutlineAction.REMOVE_QUESTION:
            return self.remove_question_from_section(session_id, request.section_id, request.question_id)
        if action == OutlineAction.AUTO_ORGANIZE:
            return self.auto_organize(session_id)
        raise InvalidInputError(f"Invalid outline action: {action}")
