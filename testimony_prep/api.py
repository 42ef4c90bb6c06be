"""
Testimony Prep API
==================

FastAPI endpoints for witness cross-examination prep and deposition prep.

The two tools share one router factory:
- /api/sessions    - witness sessions (includes /practice)
- /api/depositions - deposition sessions

Per tool:
- GET    /api/{tool}                                   - List sessions
- POST   /api/{tool}                                   - Create session
- GET    /api/{tool}/{session_id}                      - Get session
- PATCH  /api/{tool}/{session_id}                      - Update session
- DELETE /api/{tool}/{session_id}                      - Delete session
- GET    /api/{tool}/{session_id}/documents            - List documents
- POST   /api/{tool}/{session_id}/documents            - Upload document
- POST   /api/{tool}/{session_id}/generate-questions   - Generate questions
- POST   /api/{tool}/{session_id}/generate-questions-stream - Generate (SSE)
- GET    /api/{tool}/{session_id}/outline              - Get outline
- POST   /api/{tool}/{session_id}/outline              - Outline action
- DELETE /api/{tool}/{session_id}/outline              - Delete outline
- GET    /api/{tool}/{session_id}/export               - Download outline

Run with:
    uvicorn testimony_prep.api:app --host 0.0.0.0 --port 8000
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse

from . import __version__
from .categorizer import extract_metadata, resolve_category
from .config import Settings, get_settings
from .errors import InvalidUploadError, PrepError, SessionNotFoundError
from .exporter import content_disposition, export_outline
from .generator import ClientFactory, QuestionGenerator
from .ingest import ParserError, extract_text, is_supported
from .middleware import SecurityHeadersMiddleware
from .outline import OutlineEditor
from .practice import PracticeExaminer
from .sanitize import MAX_NAME_LENGTH, sanitize_case_number, sanitize_name, sanitize_optional
from .schemas import (
    CreateSessionRequest,
    DeleteResponse,
    Document,
    DocumentListResponse,
    DocumentResponse,
    DocumentStatus,
    ErrorDetail,
    ErrorResponse,
    ExportFormat,
    ExportOptions,
    GenerationResponse,
    HealthResponse,
    OutlineActionRequest,
    OutlineResponse,
    PracticeHistoryResponse,
    PracticeRequest,
    PracticeResponse,
    SessionKind,
    SessionListResponse,
    SessionResponse,
    UpdateSessionRequest,
    utc_now,
)
from .store import SessionStore, get_store

settings = get_settings()

# Configure logging
logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

for warning in settings.validate_llm_config():
    logger.warning(warning)


# =============================================================================
# FastAPI App
# =============================================================================

app = FastAPI(
    title="Testimony Prep Service",
    description="Witness cross-examination and deposition preparation from case documents",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

CORS_ALLOW_ORIGINS = settings.cors_origins()
logger.info(f"CORS allow origins: {CORS_ALLOW_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)


# =============================================================================
# Dependencies (overridden in tests)
# =============================================================================

def get_app_settings() -> Settings:
    return get_settings()


def get_session_store() -> SessionStore:
    return get_store()


def get_client_factory() -> Optional[ClientFactory]:
    """None selects the real case.dev client"""
    return None


def get_generator(
    store: SessionStore = Depends(get_session_store),
    app_settings: Settings = Depends(get_app_settings),
    client_factory: Optional[ClientFactory] = Depends(get_client_factory),
) -> QuestionGenerator:
    return QuestionGenerator(store=store, settings=app_settings, client_factory=client_factory)


def get_examiner(
    store: SessionStore = Depends(get_session_store),
    app_settings: Settings = Depends(get_app_settings),
    client_factory: Optional[ClientFactory] = Depends(get_client_factory),
) -> PracticeExaminer:
    return PracticeExaminer(store=store, settings=app_settings, client_factory=client_factory)


# =============================================================================
# Health
# =============================================================================

@app.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(app_settings: Settings = Depends(get_app_settings)):
    """Health check endpoint"""
    return HealthResponse(
        status="healthy",
        version=__version__,
        llm_configured=app_settings.llm_configured,
        timestamp=utc_now(),
    )


# =============================================================================
# Session routers
# =============================================================================

def _sse(event: Dict[str, Any]) -> str:
    return f"data: {json.dumps(event)}\n\n"


async def _event_stream(events: AsyncIterator[Dict[str, Any]]) -> AsyncIterator[str]:
    async for event in events:
        yield _sse(event)


def build_session_router(kind: SessionKind, prefix: str) -> APIRouter:
    """CRUD, documents, generation, outline and export routes for one tool"""
    router = APIRouter(prefix=prefix, tags=[kind.value])

    # ---- Sessions ---------------------------------------------------------

    @router.get("", response_model=SessionListResponse)
    async def list_sessions(store: SessionStore = Depends(get_session_store)):
        return SessionListResponse(sessions=store.list_sessions(kind))

    @router.post("", response_model=SessionResponse)
    async def create_session(
        request: CreateSessionRequest,
        store: SessionStore = Depends(get_session_store),
    ):
        session = store.create_session(
            kind=kind,
            subject_name=sanitize_name(request.subject_name, "subjectName"),
            case_name=sanitize_name(request.case_name, "caseName"),
            case_number=sanitize_case_number(request.case_number),
            deposition_date=request.deposition_date,
        )
        logger.info(f"Created {kind.value} session {session.id}")
        return SessionResponse(session=session)

    @router.get("/{session_id}", response_model=SessionResponse)
    async def get_session(session_id: str, store: SessionStore = Depends(get_session_store)):
        return SessionResponse(session=store.require(session_id, kind))

    @router.patch("/{session_id}", response_model=SessionResponse)
    async def update_session(
        session_id: str,
        request: UpdateSessionRequest,
        store: SessionStore = Depends(get_session_store),
    ):
        store.require(session_id, kind)
        changes: Dict[str, Any] = {}
        if request.subject_name is not None:
            changes["subject_name"] = sanitize_name(request.subject_name, "subjectName")
        if request.case_name is not None:
            changes["case_name"] = sanitize_name(request.case_name, "caseName")
        if request.case_number is not None:
            changes["case_number"] = sanitize_case_number(request.case_number)
        if request.deposition_date is not None:
            changes["deposition_date"] = request.deposition_date
        if request.status is not None:
            changes["status"] = request.status
        return SessionResponse(session=store.update_session(session_id, **changes))

    @router.delete("/{session_id}", response_model=DeleteResponse)
    async def delete_session(session_id: str, store: SessionStore = Depends(get_session_store)):
        store.require(session_id, kind)
        if not store.delete(session_id):
            raise SessionNotFoundError(f"Session not found: {session_id}")
        logger.info(f"Deleted {kind.value} session {session_id}")
        return DeleteResponse(success=True)

    # ---- Documents --------------------------------------------------------

    @router.get("/{session_id}/documents", response_model=DocumentListResponse)
    async def list_documents(session_id: str, store: SessionStore = Depends(get_session_store)):
        return DocumentListResponse(documents=store.require(session_id, kind).documents)

    @router.post("/{session_id}/documents", response_model=DocumentResponse)
    async def upload_document(
        session_id: str,
        file: Optional[UploadFile] = File(None),
        type: Optional[str] = Form(None),
        store: SessionStore = Depends(get_session_store),
        app_settings: Settings = Depends(get_app_settings),
    ):
        """
        Upload a case document.

        Text is extracted immediately; formats without extractable text keep
        a placeholder such as "[PDF Document: name.pdf]".
        """
        store.require(session_id, kind)
        if file is None or not file.filename:
            raise InvalidUploadError("No file provided")

        filename = sanitize_optional(file.filename, "filename", MAX_NAME_LENGTH) or "document"
        if not is_supported(filename, file.content_type):
            raise InvalidUploadError(
                f"Unsupported file type: {filename}. Allowed types: TXT, PDF, DOC, DOCX"
            )

        data = await file.read()
        if len(data) > app_settings.max_upload_bytes:
            raise InvalidUploadError(
                f"File too large. Maximum size is {app_settings.max_upload_bytes // (1024 * 1024)}MB",
                details={"size": len(data), "limit": app_settings.max_upload_bytes},
            )

        document = Document(
            name=filename,
            file_type=file.content_type or "",
            size=len(data),
            uploaded_at=store.now(),
            status=DocumentStatus.PROCESSING,
        )
        store.add_document(session_id, document)

        try:
            extracted = await asyncio.to_thread(extract_text, data, filename, file.content_type)
        except ParserError as e:
            logger.warning(f"Upload {filename} for session {session_id} could not be read: {e}")
            session = store.update_document(session_id, document.id, status=DocumentStatus.ERROR)
            failed = next(d for d in session.documents if d.id == document.id)
            return DocumentResponse(document=failed, session=session)

        session = store.update_document(
            session_id,
            document.id,
            content=extracted.content,
            file_type=document.file_type or extracted.mime_type,
            category=resolve_category(type, filename, extracted.content),
            metadata=extract_metadata(filename, extracted.content if extracted.extracted else ""),
            status=DocumentStatus.READY,
        )
        stored = next(d for d in session.documents if d.id == document.id)
        logger.info(
            f"Stored document {stored.id} ({stored.category.value}, "
            f"{'text' if extracted.extracted else 'placeholder'}) for session {session_id}"
        )
        return DocumentResponse(document=stored, session=session)

    # ---- Generation -------------------------------------------------------

    @router.post("/{session_id}/generate-questions", response_model=GenerationResponse)
    async def generate_questions(session_id: str, generator: QuestionGenerator = Depends(get_generator)):
        outcome = await generator.generate(session_id, kind)
        return outcome.to_response()

    @router.post("/{session_id}/generate-questions-stream")
    async def generate_questions_stream(session_id: str, generator: QuestionGenerator = Depends(get_generator)):
        """
        Server-sent events: ``{"chunk", "progress"}`` per delta, then one
        ``{"done": true, ...}`` event with the full result.
        """
        events = generator.open_stream(session_id, kind)
        return StreamingResponse(
            _event_stream(events),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    # ---- Outline ----------------------------------------------------------

    @router.get("/{session_id}/outline", response_model=OutlineResponse)
    async def get_outline(session_id: str, store: SessionStore = Depends(get_session_store)):
        return OutlineResponse(outline=OutlineEditor(store, kind).get_outline(session_id))

    @router.post("/{session_id}/outline", response_model=OutlineResponse)
    async def update_outline(
        session_id: str,
        request: OutlineActionRequest,
        store: SessionStore = Depends(get_session_store),
    ):
        session = OutlineEditor(store, kind).apply(session_id, request)
        return OutlineResponse(outline=session.outline, session=session)

    @router.delete("/{session_id}/outline", response_model=DeleteResponse)
    async def delete_outline(session_id: str, store: SessionStore = Depends(get_session_store)):
        session = OutlineEditor(store, kind).delete_outline(session_id)
        return DeleteResponse(success=True, session=session)

    # ---- Export -----------------------------------------------------------

    @router.get("/{session_id}/export")
    async def export_session_outline(
        session_id: str,
        format: ExportFormat = Query(ExportFormat.PDF),
        include_citations: bool = Query(True, alias="includeCitations"),
        include_rationale: bool = Query(True, alias="includeRationale"),
        include_follow_ups: bool = Query(True, alias="includeFollowUps"),
        group_by_topic: bool = Query(False, alias="groupByTopic"),
        store: SessionStore = Depends(get_session_store),
    ):
        session = store.require(session_id, kind)
        options = ExportOptions(
            format=format,
            include_citations=include_citations,
            include_rationale=include_rationale,
            include_follow_ups=include_follow_ups,
            group_by_topic=group_by_topic,
        )
        content, media_type, _ = await asyncio.to_thread(export_outline, session, options)
        return Response(
            content=content,
            media_type=media_type,
            headers={"Content-Disposition": content_disposition(session, options.format)},
        )

    # ---- Practice (witness only) -----------------------------------------

    if kind == SessionKind.WITNESS:

        @router.get("/{session_id}/practice", response_model=PracticeHistoryResponse)
        async def practice_history(session_id: str, examiner: PracticeExaminer = Depends(get_examiner)):
            return examiner.history(session_id)

        @router.post("/{session_id}/practice", response_model=PracticeResponse)
        async def submit_practice(
            session_id: str,
            request: PracticeRequest,
            examiner: PracticeExaminer = Depends(get_examiner),
        ):
            return await examiner.submit(
                session_id,
                question_id=request.question_id,
                question=request.question,
                response=request.response,
                duration=request.duration,
            )

    return router


app.include_router(build_session_router(SessionKind.WITNESS, "/api/sessions"))
app.include_router(build_session_router(SessionKind.DEPOSITION, "/api/depositions"))


# =============================================================================
# Error Handlers
# =============================================================================

def _sanitize_error_message(message: Any) -> str:
    compact = " ".join(str(message or "").split())
    return compact[:300]


def _error_response(status_code: int, code: str, message: str, details: Any = None) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=_sanitize_error_message(message), details=details))
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@app.exception_handler(PrepError)
async def prep_error_handler(request: Request, exc: PrepError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    return _error_response(exc.status_code, exc.code, exc.message, exc.details)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Return structured validation errors without echoing inputs"""
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return _error_response(422, "validation_error", "Request validation failed", {"errors": errors})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler - always return valid JSON"""
    logger.error("Unhandled exception on %s: %s", request.url.path, exc.__class__.__name__)
    return _error_response(500, "internal_error", "Internal server error", {"exception": exc.__class__.__name__})


# =============================================================================
# Main (for direct execution)
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "testimony_prep.api:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
