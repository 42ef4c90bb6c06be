"""
Practice Examiner
=================

Witness sessions only. The witness answers a question, the LLM plays
opposing counsel and returns a follow-up question plus coaching feedback.

Unlike question generation there is no deterministic substitute for the
examiner, so transport failures are reported to the caller
(LLMUnavailableError). Unparsable output is still usable: the raw text
becomes the feedback and a generic follow-up is asked.
"""

import logging
from typing import Any, Optional

from .config import Settings, get_settings
from .errors import InvalidInputError, LLMUnavailableError, MissingCredentialError
from .generator import ClientFactory
from .llm import CaseDevLLMClient
from .parser import ParseMode, parse_llm_json, safe_log_content
from .prompts import EXAMINER_SYSTEM_PROMPT, examiner_user_prompt
from .schemas import (
    ExaminerFeedback,
    PracticeExchange,
    PracticeHistoryResponse,
    PracticeResponse,
    SessionKind,
    SessionStatus,
)
from .store import SessionStore, get_store

logger = logging.getLogger(__name__)

DEFAULT_FOLLOW_UP = "Can you elaborate on that answer?"


def _field(parsed: dict, *keys: str) -> str:
    for key in keys:
        value = parsed.get(key)
        if isinstance(value, str):
            return value
        if value is not None:
            return str(value)
    return ""


def interpret_feedback(content: str) -> ExaminerFeedback:
    """Examiner reply -> feedback; never fails"""
    parsed: Any = parse_llm_json(content, ParseMode.OBJECT)
    if not isinstance(parsed, dict):
        logger.warning(f"Examiner output not JSON, using raw text: {safe_log_content(content)}")
        return ExaminerFeedback(follow_up=DEFAULT_FOLLOW_UP, feedback=content)

    return ExaminerFeedback(
        follow_up=_field(parsed, "followUp", "follow_up"),
        feedback=_field(parsed, "feedback"),
        weakness_identified=_field(parsed, "weaknessIdentified", "weakness_identified"),
        suggested_improvement=_field(parsed, "suggestedImprovement", "suggested_improvement"),
    )


class PracticeExaminer:
    """
    Args:
        store: Session store (defaults to the process-wide store)
        settings: Service settings
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

    async def submit(
        self,
        session_id: str,
        question_id: Optional[str],
        question: Optional[str],
        response: Optional[str],
        duration: float = 0,
    ) -> PracticeResponse:
        """
        Record one practice exchange.

        Raises:
            SessionNotFoundError: Unknown (or deposition) session
            InvalidInputError: questionId, question or response missing
            MissingCredentialError: CASEDEV_API_KEY not set
            LLMUnavailableError: Gateway error or empty completion
        """
        session = self.store.require(session_id, SessionKind.WITNESS)
        if not question_id or not question or not response:
            raise InvalidInputError("questionId, question, and response are required")
        if not self.settings.llm_configured:
            raise MissingCredentialError("Case.dev API key not configured. Set CASEDEV_API_KEY.")

        if session.status != SessionStatus.PRACTICING:
            session = self.store.set_status(session_id, SessionStatus.PRACTICING)

        details = next((q for q in session.questions if q.id == question_id), None)
        messages = [
            {"role": "system", "content": EXAMINER_SYSTEM_PROMPT},
            {"role": "user", "content": examiner_user_prompt(session, question, response, details)},
        ]

        client = self.client_factory(self.settings.practice_model)
        try:
            call = await client.call(
                messages,
                temperature=self.settings.llm_temperature,
                max_tokens=self.settings.practice_max_tokens,
            )
        finally:
            await client.close()

        if not call.success:
            logger.error(f"Examiner call failed for session {session_id}: {call.error}")
            raise LLMUnavailableError("Failed to analyze response", details={"status": call.status_code})
        if not call.content or not call.content.strip():
            raise LLMUnavailableError("No response from LLM")

        feedback = interpret_feedback(call.content)
        exchange = PracticeExchange(
            question_id=question_id,
            question=question,
            witness_response=response,
            ai_follow_up=feedback.follow_up,
            feedback=feedback.feedback,
            timestamp=self.store.now(),
            duration=max(duration or 0, 0),
        )
        saved = self.store.add_practice_exchange(session_id, exchange)
        return PracticeResponse(exchange=exchange, ai_response=feedback, session=saved)

    def history(self, session_id: str) -> PracticeHistoryResponse:
        session = self.store.require(session_id, SessionKind.WITNESS)
        return PracticeHistoryResponse(
            practice_history=session.practice_history,
            total_duration=session.total_duration,
            questions_answered=len(session.practice_history),
            total_questions=len(session.questions),
        )
