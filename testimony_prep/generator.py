"""
Generation Orchestrator
=======================

Runs one question-generation request for a session:

    preconditions -> working status -> LLM call -> parse -> validate -> save
                                            \\-> fallback synthesizer -> save

Only precondition failures (unknown session, no documents, no credential)
reach the caller, and they are raised before any LLM call or mutation.
Transport errors, empty completions and unparsable output are logged and
recovered through the fallback synthesizer; the caller learns about it from
``used_fallback``.
"""

import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Tuple

from .config import Settings, get_settings
from .errors import MissingCredentialError, NoDocumentsError
from .fallback import synthesize_fallback
from .llm import CaseDevLLMClient, LLMClientError
from .parser import parse_llm_json_detailed, safe_log_content
from .profiles import PrepProfile, get_profile
from .schemas import (
    GenerationResponse,
    GenerationResult,
    Question,
    QuestionCategory,
    Session,
    SessionKind,
    SessionStatus,
)
from .store import SessionStore, get_store
from .validator import MAX_QUESTIONS, coerce_generation

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], CaseDevLLMClient]


@dataclass
class GenerationOutcome:
    """Result of one generation request"""
    result: GenerationResult
    used_fallback: bool
    session: Session
    strategy: Optional[str] = None   # parser strategy on the LLM path
    reason: Optional[str] = None     # why the fallback path was taken

    def to_response(self) -> GenerationResponse:
        return GenerationResponse(
            questions=self.result.questions,
            gaps=self.result.gaps,
            contradictions=self.result.contradictions,
            analysis=self.result.analysis,
            session=self.session,
            used_fallback=self.used_fallback,
        )


def enforce_general_quota(questions: List[Question], profile: PrepProfile) -> List[Question]:
    """
    Top up "general" questions to the profile's quota.

    Missing general questions come from the profile's standard set (skipping
    ones already asked); surplus non-general questions are trimmed from the
    end so the list stays within MAX_QUESTIONS.
    """
    quota = profile.general_quota
    if not quota:
        return questions

    general_count = sum(1 for q in questions if q.category == QuestionCategory.GENERAL)
    if general_count >= quota:
        return questions

    asked = {q.question.strip().lower() for q in questions}
    extras = [
        q for q in profile.standard_questions()
        if q.category == QuestionCategory.GENERAL and q.question.strip().lower() not in asked
    ][:quota - general_count]
    if not extras:
        return questions

    result = list(questions)
    overflow = len(result) + len(extras) - MAX_QUESTIONS
    index = len(result) - 1
    while overflow > 0 and index >= 0:
        if result[index].category != QuestionCategory.GENERAL:
            del result[index]
            overflow -= 1
        index -= 1

    logger.info(f"Added {len(extras)} standard general questions to meet quota of {quota}")
    return result + extras


class QuestionGenerator:
    """
    Question generation for witness and deposition sessions.

    Args:
        store: Session store (defaults to the process-wide store)
        settings: Service settings (defaults to get_settings())
        client_factory: Builds an LLM client for a model name
    """

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        settings: Optional[Settings] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        self.store = store if store is not None else get_store()
        self.settings = settings or get_settings()
        self.client_factory = client_factory or self._default_client

    def _default_client(self, model: str) -> CaseDevLLMClient:
        return CaseDevLLMClient(
            api_key=self.settings.casedev_api_key,
            model=model,
            base_url=self.settings.casedev_llm_base_url,
            timeout=self.settings.llm_timeout,
        )

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def check_preconditions(self, session_id: str, kind: SessionKind) -> Session:
        """
        Raises:
            SessionNotFoundError: Unknown session (or a session of the other tool)
            NoDocumentsError: Nothing uploaded yet
            MissingCredentialError: CASEDEV_API_KEY not set
        """
        session = self.store.require(session_id, kind)
        if not session.documents:
            raise NoDocumentsError("No documents uploaded. Please upload case materials first.")
        if not self.settings.llm_configured:
            raise MissingCredentialError("Case.dev API key not configured. Set CASEDEV_API_KEY.")
        return session

    def _messages(self, session: Session, profile: PrepProfile) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": profile.system_prompt(session.subject_name)},
            {"role": "user", "content": profile.user_prompt(session)},
        ]

    def interpret(self, content: str, profile: PrepProfile) -> Tuple[Optional[GenerationResult], Optional[str]]:
        """Parse and validate completion text; (None, _) means parse failure"""
        parsed, strategy = parse_llm_json_detailed(content, profile.parse_mode)
        if parsed is None:
            return None, None
        result = coerce_generation(parsed, profile.parse_mode)
        if result is None:
            return None, strategy
        result.questions = enforce_general_quota(result.questions, profile)
        return result, strategy

    def _resolve(
        self,
        session: Session,
        profile: PrepProfile,
        content: Optional[str],
        failure: Optional[str],
    ) -> GenerationOutcome:
        """Pick the LLM result or the fallback, then persist it"""
        result: Optional[GenerationResult] = None
        strategy: Optional[str] = None
        reason = failure

        if reason is None:
            if not content or not content.strip():
                reason = "empty content"
            else:
                result, strategy = self.interpret(content, profile)
                if result is None:
                    reason = "unparsable content"
                    logger.warning(f"LLM output for session {session.id} unusable: {safe_log_content(content)}")

        used_fallback = result is None
        if used_fallback:
            logger.warning(f"Using fallback questions for session {session.id}: {reason}")
            result = synthesize_fallback(session.documents, session.subject_name, session.case_name, profile)
        else:
            logger.info(
                f"Generated {len(result.questions)} questions for session {session.id} "
                f"(strategy={strategy})"
            )

        saved = self.store.save_generation(
            session.id,
            questions=result.questions,
            gaps=result.gaps,
            contradictions=result.contradictions,
            analysis=result.analysis,
        )
        return GenerationOutcome(
            result=result,
            used_fallback=used_fallback,
            session=saved,
            strategy=strategy,
            reason=reason,
        )

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    async def generate(self, session_id: str, kind: SessionKind) -> GenerationOutcome:
        """Blocking generation: one LLM call, then parse or fall back"""
        profile = get_profile(kind)
        session = self.check_preconditions(session_id, kind)
        session = self.store.set_status(session_id, profile.working_status)

        client = self.client_factory(profile.model(self.settings))
        try:
            call = await client.call(
                self._messages(session, profile),
                temperature=self.settings.llm_temperature,
                max_tokens=self.settings.llm_max_tokens,
            )
        finally:
            await client.close()

        failure = None if call.success else (call.error or "LLM call failed")
        return self._resolve(session, profile, call.content, failure)

    def open_stream(self, session_id: str, kind: SessionKind) -> AsyncIterator[Dict[str, Any]]:
        """
        Streaming generation.

        Preconditions are checked here, synchronously, so the caller can
        still answer with an error status. The returned iterator yields
        ``{"chunk", "progress"}`` events while deltas arrive, then a single
        ``{"done": True, ...}`` event carrying the full result. Closing the
        iterator before that event restores the session's previous status.
        """
        profile = get_profile(kind)
        previous_status = self.check_preconditions(session_id, kind).status
        session = self.store.set_status(session_id, profile.working_status)
        return self._stream_events(session, profile, previous_status)

    def _abandon_stream(self, session_id: str, previous_status: SessionStatus) -> None:
        if self.store.get(session_id) is None:
            return
        logger.warning(f"Stream for session {session_id} ended before a result was saved")
        self.store.set_status(session_id, previous_status)

    async def _stream_events(
        self,
        session: Session,
        profile: PrepProfile,
        previous_status: SessionStatus,
    ) -> AsyncIterator[Dict[str, Any]]:
        client = self.client_factory(profile.model(self.settings))
        parts: List[str] = []
        progress = 0
        failure: Optional[str] = None
        saved = False

        try:
            try:
                async for delta in client.stream_deltas(
                    self._messages(session, profile),
                    temperature=self.settings.llm_temperature,
                    max_tokens=self.settings.llm_max_tokens,
                ):
                    parts.append(delta)
                    progress += len(delta)
                    yield {"chunk": delta, "progress": progress}
            except LLMClientError as e:
                failure = str(e)
            finally:
                await client.close()

            outcome = self._resolve(session, profile, "".join(parts), failure)
            saved = True
            payload = outcome.to_response().model_dump(mode="json", by_alias=True)
            yield {"done": True, **payload}
        finally:
            # Client went away (or resolving failed) while still working
            if not saved:
                self._abandon_stream(session.id, previous_status)
