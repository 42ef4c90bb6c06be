"""
Pydantic Schemas for Testimony Prep Service
===========================================

Domain entities (sessions, documents, questions, gaps, contradictions,
outlines) and request/response models.

All models serialize with camelCase aliases (``followUpQuestions``,
``usedFallback``) and accept either the alias or the Python field name on
input.

Closed-set ranking fields (category, priority, severity, difficulty) are str
enums. Their defaults for missing or invalid input live in
``validator.ENUM_DEFAULTS``.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model: camelCase on the wire, snake_case in Python"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# ENUMS
# =============================================================================

class SessionKind(str, Enum):
    """Which prep tool owns a session"""
    WITNESS = "witness"        # Cross-examination practice
    DEPOSITION = "deposition"  # Deposition outline for opposing counsel


class SessionStatus(str, Enum):
    SETUP = "setup"
    UPLOADING = "uploading"
    ANALYZING = "analyzing"
    GENERATING = "generating"
    READY = "ready"
    PRACTICING = "practicing"
    COMPLETED = "completed"


class DocumentCategory(str, Enum):
    PRIOR_TESTIMONY = "prior_testimony"
    EXHIBIT = "exhibit"
    TRANSCRIPT = "transcript"
    CASE_FILE = "case_file"
    OTHER = "other"


class DocumentStatus(str, Enum):
    UPLOADING = "uploading"
    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"


class QuestionCategory(str, Enum):
    GAP = "gap"
    CONTRADICTION = "contradiction"
    TIMELINE = "timeline"
    FOUNDATION = "foundation"
    IMPEACHMENT = "impeachment"
    FOLLOW_UP = "follow_up"
    GENERAL = "general"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Severity(str, Enum):
    """
    Gap / contradiction severity.

    - SIGNIFICANT: Goes to a material fact or the subject's credibility
    - MODERATE: Worth exploring, may have an innocent explanation
    - MINOR: Detail-level discrepancy
    """
    MINOR = "minor"
    MODERATE = "moderate"
    SIGNIFICANT = "significant"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class ExportFormat(str, Enum):
    PDF = "pdf"
    DOCX = "docx"
    TXT = "txt"


class OutlineAction(str, Enum):
    CREATE = "create"
    ADD_SECTION = "add_section"
    UPDATE_SECTION = "update_section"
    REORDER_SECTIONS = "reorder_sections"
    ADD_QUESTION = "add_question"
    REMOVE_QUESTION = "remove_question"
    AUTO_ORGANIZE = "auto_organize"


# =============================================================================
# DOMAIN ENTITIES
# =============================================================================

class DocumentMetadata(CamelModel):
    witness: Optional[str] = None
    date: Optional[str] = None
    page_count: Optional[int] = None
    source: Optional[str] = None


class Document(CamelModel):
    """Uploaded case document with its extracted (or placeholder) text"""
    id: str = Field(default_factory=_new_id)
    name: str
    category: DocumentCategory = DocumentCategory.OTHER
    file_type: str = ""
    size: int = 0
    uploaded_at: datetime = Field(default_factory=utc_now)
    content: Optional[str] = None
    status: DocumentStatus = DocumentStatus.UPLOADING
    metadata: Optional[DocumentMetadata] = None


class Question(CamelModel):
    id: str = Field(default_factory=_new_id)
    question: str
    topic: str = "General"
    category: QuestionCategory = QuestionCategory.GENERAL
    priority: Priority = Priority.MEDIUM
    difficulty: Difficulty = Difficulty.MEDIUM
    document_reference: Optional[str] = None
    page_reference: Optional[str] = None
    rationale: Optional[str] = None
    follow_up_questions: Optional[List[str]] = None
    exhibit_to_show: Optional[str] = None
    # Witness tool only: coaching notes for the person being prepared
    suggested_approach: Optional[str] = None
    weak_point: Optional[str] = None


class Gap(CamelModel):
    """Missing, vague or incomplete testimony"""
    id: str = Field(default_factory=_new_id)
    description: str = ""
    document_references: List[str] = Field(default_factory=list)
    severity: Severity = Severity.MODERATE
    suggested_questions: List[str] = Field(default_factory=list)


class ContradictionSource(CamelModel):
    document: str = ""
    excerpt: str = ""
    page: Optional[str] = None


class Contradiction(CamelModel):
    id: str = Field(default_factory=_new_id)
    description: str = ""
    source1: ContradictionSource = Field(default_factory=ContradictionSource)
    source2: ContradictionSource = Field(default_factory=ContradictionSource)
    severity: Severity = Severity.MODERATE
    suggested_questions: List[str] = Field(default_factory=list)


class TimelineEvent(CamelModel):
    date: str = ""
    event: str = ""
    source: str = ""


class Analysis(CamelModel):
    key_themes: List[str] = Field(default_factory=list)
    timeline_events: List[TimelineEvent] = Field(default_factory=list)
    witnesses: List[str] = Field(default_factory=list)
    key_exhibits: List[str] = Field(default_factory=list)


class OutlineSection(CamelModel):
    id: str = Field(default_factory=_new_id)
    title: str
    order: int = 0
    questions: List[Question] = Field(default_factory=list)
    notes: Optional[str] = None
    estimated_minutes: Optional[int] = None


class Outline(CamelModel):
    id: str = Field(default_factory=_new_id)
    title: str
    sections: List[OutlineSection] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class PracticeExchange(CamelModel):
    id: str = Field(default_factory=_new_id)
    question_id: str
    question: str
    witness_response: str
    ai_follow_up: Optional[str] = None
    feedback: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)
    duration: float = 0


class Session(CamelModel):
    """
    Aggregate root for one prep session.

    Owns its documents, generated questions/gaps/contradictions, the optional
    outline and (witness tool) the practice history.
    """
    id: str = Field(default_factory=_new_id)
    kind: SessionKind = SessionKind.WITNESS
    subject_name: str
    case_name: str
    case_number: Optional[str] = None
    deposition_date: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    documents: List[Document] = Field(default_factory=list)
    gaps: List[Gap] = Field(default_factory=list)
    contradictions: List[Contradiction] = Field(default_factory=list)
    questions: List[Question] = Field(default_factory=list)
    outline: Optional[Outline] = None
    analysis: Optional[Analysis] = None
    status: SessionStatus = SessionStatus.SETUP
    practice_history: List[PracticeExchange] = Field(default_factory=list)
    total_duration: float = 0


class GenerationResult(CamelModel):
    """Output shape shared by the LLM path and the fallback path"""
    questions: List[Question] = Field(default_factory=list)
    gaps: List[Gap] = Field(default_factory=list)
    contradictions: List[Contradiction] = Field(default_factory=list)
    analysis: Analysis = Field(default_factory=Analysis)


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class CreateSessionRequest(CamelModel):
    subject_name: str = Field(
        ...,
        validation_alias=AliasChoices("subjectName", "subject_name", "witnessName", "deponentName"),
        description="Witness or deponent being prepared",
    )
    case_name: str = Field(..., validation_alias=AliasChoices("caseName", "case_name"))
    case_number: Optional[str] = Field(None, validation_alias=AliasChoices("caseNumber", "case_number"))
    deposition_date: Optional[datetime] = Field(
        None, validation_alias=AliasChoices("depositionDate", "deposition_date")
    )


class UpdateSessionRequest(CamelModel):
    subject_name: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("subjectName", "subject_name", "witnessName", "deponentName"),
    )
    case_name: Optional[str] = Field(None, validation_alias=AliasChoices("caseName", "case_name"))
    case_number: Optional[str] = Field(None, validation_alias=AliasChoices("caseNumber", "case_number"))
    deposition_date: Optional[datetime] = Field(
        None, validation_alias=AliasChoices("depositionDate", "deposition_date")
    )
    status: Optional[SessionStatus] = None


class SectionInput(CamelModel):
    title: Optional[str] = None
    questions: Optional[List[Dict[str, Any]]] = None
    notes: Optional[str] = None
    estimated_minutes: Optional[int] = None


class OutlineActionRequest(CamelModel):
    action: OutlineAction
    title: Optional[str] = None
    section: Optional[SectionInput] = None
    section_id: Optional[str] = None
    section_ids: Optional[List[str]] = None
    question: Optional[Dict[str, Any]] = None
    question_id: Optional[str] = None


class PracticeRequest(CamelModel):
    question_id: Optional[str] = None
    question: Optional[str] = None
    response: Optional[str] = None
    duration: float = 0


class ExportOptions(CamelModel):
    format: ExportFormat = ExportFormat.PDF
    include_citations: bool = True
    include_rationale: bool = True
    include_follow_ups: bool = True
    group_by_topic: bool = False


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class SessionResponse(CamelModel):
    session: Optional[Session] = None


class SessionListResponse(CamelModel):
    sessions: List[Session] = Field(default_factory=list)


class DocumentResponse(CamelModel):
    document: Document
    session: Optional[Session] = None


class DocumentListResponse(CamelModel):
    documents: List[Document] = Field(default_factory=list)


class GenerationResponse(CamelModel):
    questions: List[Question] = Field(default_factory=list)
    gaps: List[Gap] = Field(default_factory=list)
    contradictions: List[Contradiction] = Field(default_factory=list)
    analysis: Analysis = Field(default_factory=Analysis)
    session: Optional[Session] = None
    used_fallback: bool = Field(False, description="True when the deterministic fallback produced the result")


class OutlineResponse(CamelModel):
    outline: Optional[Outline] = None
    session: Optional[Session] = None


class ExaminerFeedback(CamelModel):
    follow_up: str = ""
    feedback: str = ""
    weakness_identified: str = ""
    suggested_improvement: str = ""


class PracticeResponse(CamelModel):
    exchange: PracticeExchange
    ai_response: ExaminerFeedback
    session: Optional[Session] = None


class PracticeHistoryResponse(CamelModel):
    practice_history: List[PracticeExchange] = Field(default_factory=list)
    total_duration: float = 0
    questions_answered: int = 0
    total_questions: int = 0


class DeleteResponse(CamelModel):
    success: bool = True
    session: Optional[Session] = None


class HealthResponse(CamelModel):
    """Health check response"""
    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Service version")
    llm_configured: bool = Field(..., description="Whether an LLM credential is set")
    timestamp: datetime = Field(..., description="Current timestamp")


class ErrorDetail(BaseModel):
    """Structured error detail"""
    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Any] = Field(None, description="Optional error details")


class ErrorResponse(BaseModel):
    """Structured error response"""
    error: ErrorDetail
