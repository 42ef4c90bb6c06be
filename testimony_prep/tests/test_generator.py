"""
Tests for the Generation Orchestrator
=====================================

The LLM gateway is replaced with httpx.MockTransport so every scenario
runs offline and counts outbound calls.
"""

import json

import httpx
import pytest

from conftest import MockGateway, completion, sse_body
from testimony_prep.errors import MissingCredentialError, NoDocumentsError, SessionNotFoundError
from testimony_prep.fallback import MIN_FALLBACK_QUESTIONS
from testimony_prep.generator import QuestionGenerator, enforce_general_quota
from testimony_prep.profiles import DEPOSITION_PROFILE, WITNESS_PROFILE
from testimony_prep.schemas import Question, QuestionCategory, SessionKind, SessionStatus

DEPOSITION_JSON = {
    "questions": [
        {
            "question": "When did you first review the March 15 invoice?",
            "topic": "Timeline of Events",
            "category": "timeline",
            "priority": "high",
            "documentReference": "transcript.txt",
            "followUpQuestions": ["Who sent it to you?"],
        },
        {"question": "Who is Sarah Johnson to you?", "topic": "Relationships", "category": "foundation"},
    ],
    "gaps": [{"description": "Wire timing unclear", "severity": "significant"}],
    "contradictions": [],
    "analysis": {"keyThemes": ["Payment"], "witnesses": ["Sarah Johnson"]},
}


def _witness_questions(count, category="timeline"):
    return [
        {"question": f"Question {i} for you?", "topic": "Timeline of Events", "category": category}
        for i in range(count)
    ]


def _generator(store, settings, gateway):
    return QuestionGenerator(store=store, settings=settings, client_factory=gateway.factory)


# =============================================================================
# Blocking generation
# =============================================================================

class TestScenarios:

    @pytest.mark.asyncio
    async def test_gateway_error_falls_back(self, store, settings, deposition_session):
        """Scenario A: HTTP 500 -> deterministic fallback"""
        gateway = MockGateway(lambda request: httpx.Response(500, text="upstream down"))
        outcome = await _generator(store, settings, gateway).generate(deposition_session.id, SessionKind.DEPOSITION)

        assert gateway.calls == 1
        assert outcome.used_fallback is True
        assert len(outcome.result.questions) >= MIN_FALLBACK_QUESTIONS
        saved = store.get(deposition_session.id)
        assert saved.status == SessionStatus.READY
        assert [q.id for q in saved.questions] == [q.id for q in outcome.result.questions]
        assert outcome.to_response().used_fallback is True

    @pytest.mark.asyncio
    async def test_valid_json(self, store, settings, deposition_session):
        """Scenario B: well-formed object is used as returned"""
        gateway = MockGateway(lambda request: completion(json.dumps(DEPOSITION_JSON)))
        outcome = await _generator(store, settings, gateway).generate(deposition_session.id, SessionKind.DEPOSITION)

        assert outcome.used_fallback is False
        assert outcome.strategy == "as_is"
        questions = outcome.result.questions
        assert [q.question for q in questions] == [
            "When did you first review the March 15 invoice?",
            "Who is Sarah Johnson to you?",
        ]
        assert questions[0].follow_up_questions == ["Who sent it to you?"]
        assert outcome.result.gaps[0].severity.value == "significant"
        assert store.get(deposition_session.id).analysis.key_themes == ["Payment"]

    @pytest.mark.asyncio
    async def test_fenced_json_with_prose(self, store, settings, deposition_session):
        """Scenario C: fenced JSON surrounded by commentary"""
        content = "Here is the analysis you asked for:\n```json\n" + json.dumps(DEPOSITION_JSON) + "\n```\nGood luck!"
        gateway = MockGateway(lambda request: completion(content))
        outcome = await _generator(store, settings, gateway).generate(deposition_session.id, SessionKind.DEPOSITION)

        assert outcome.used_fallback is False
        assert outcome.strategy not in (None, "as_is")
        assert len(outcome.result.questions) == 2

    @pytest.mark.asyncio
    async def test_no_documents_makes_no_call(self, store, settings):
        """Scenario D: precondition failure before any LLM call or mutation"""
        session = store.create_session(SessionKind.DEPOSITION, "John Smith", "Smith v. Acme")
        gateway = MockGateway(lambda request: completion("[]"))

        with pytest.raises(NoDocumentsError):
            await _generator(store, settings, gateway).generate(session.id, SessionKind.DEPOSITION)

        assert gateway.calls == 0
        assert store.get(session.id).status == SessionStatus.SETUP


class TestPreconditions:

    @pytest.mark.asyncio
    async def test_missing_credential(self, store, settings_no_key, witness_session):
        gateway = MockGateway(lambda request: completion("[]"))
        with pytest.raises(MissingCredentialError):
            await _generator(store, settings_no_key, gateway).generate(witness_session.id, SessionKind.WITNESS)
        assert gateway.calls == 0
        assert store.get(witness_session.id).status == witness_session.status

    @pytest.mark.asyncio
    async def test_unknown_session(self, store, settings):
        gateway = MockGateway(lambda request: completion("[]"))
        with pytest.raises(SessionNotFoundError):
            await _generator(store, settings, gateway).generate("missing", SessionKind.WITNESS)
        assert gateway.calls == 0

    @pytest.mark.asyncio
    async def test_other_tool_session_not_found(self, store, settings, deposition_session):
        gateway = MockGateway(lambda request: completion("[]"))
        with pytest.raises(SessionNotFoundError):
            await _generator(store, settings, gateway).generate(deposition_session.id, SessionKind.WITNESS)
        assert gateway.calls == 0


class TestRecovery:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["", "   ", "I'm sorry, I can't produce JSON today."])
    async def test_unusable_content_falls_back(self, store, settings, witness_session, content):
        gateway = MockGateway(lambda request: completion(content))
        outcome = await _generator(store, settings, gateway).generate(witness_session.id, SessionKind.WITNESS)
        assert outcome.used_fallback is True
        assert outcome.reason in ("empty content", "unparsable content")
        assert len(outcome.result.questions) >= MIN_FALLBACK_QUESTIONS

    @pytest.mark.asyncio
    async def test_zero_questions_falls_back(self, store, settings, deposition_session):
        gateway = MockGateway(lambda request: completion(json.dumps({"questions": [], "gaps": []})))
        outcome = await _generator(store, settings, gateway).generate(deposition_session.id, SessionKind.DEPOSITION)
        assert outcome.used_fallback is True

    @pytest.mark.asyncio
    async def test_transport_error_falls_back(self, store, settings, witness_session):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        gateway = MockGateway(handler)
        outcome = await _generator(store, settings, gateway).generate(witness_session.id, SessionKind.WITNESS)
        assert outcome.used_fallback is True
        assert "connection refused" in outcome.reason


class TestWitnessProfile:

    @pytest.mark.asyncio
    async def test_request_shape(self, store, settings, witness_session):
        gateway = MockGateway(lambda request: completion(json.dumps(_witness_questions(20, "general"))))
        await _generator(store, settings, gateway).generate(witness_session.id, SessionKind.WITNESS)

        body = gateway.requests[0]
        assert body["model"] == settings.witness_model
        assert body["max_tokens"] == settings.llm_max_tokens
        assert body["messages"][0]["role"] == "system"
        assert "John Smith" in body["messages"][0]["content"]
        assert "transcript.txt" in body["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_general_quota_topped_up(self, store, settings, witness_session):
        gateway = MockGateway(lambda request: completion(json.dumps(_witness_questions(20))))
        outcome = await _generator(store, settings, gateway).generate(witness_session.id, SessionKind.WITNESS)

        questions = outcome.result.questions
        assert len(questions) == 20
        assert sum(q.category == QuestionCategory.GENERAL for q in questions) == 5
        assert store.get(witness_session.id).status == SessionStatus.READY

    def test_quota_not_applied_to_deposition(self):
        questions = [Question(question="Q?", category=QuestionCategory.TIMELINE)]
        assert enforce_general_quota(questions, DEPOSITION_PROFILE) == questions

    def test_quota_skips_questions_already_asked(self):
        standard = WITNESS_PROFILE.standard_questions()
        questions = [standard[0], Question(question="Where were you?", category=QuestionCategory.TIMELINE)]
        result = enforce_general_quota(questions, WITNESS_PROFILE)
        texts = [q.question for q in result]
        assert len(texts) == len(set(texts)) == 6

    def test_quota_met_is_unchanged(self):
        questions = [Question(question=f"General {i}?", category=QuestionCategory.GENERAL) for i in range(6)]
        assert enforce_general_quota(questions, WITNESS_PROFILE) == questions


# =============================================================================
# Streaming
# =============================================================================

async def _collect(events):
    return [event async for event in events]


def _stream_response(*deltas, status_code=200):
    return lambda request: httpx.Response(
        status_code,
        content=sse_body(*deltas),
        headers={"content-type": "text/event-stream"},
    )


class _DroppedStream(httpx.AsyncByteStream):
    """SSE body that loses the connection after its deltas"""

    def __init__(self, *deltas):
        self.deltas = deltas

    async def __aiter__(self):
        for delta in self.deltas:
            event = {"choices": [{"delta": {"content": delta}}]}
            yield ("data: " + json.dumps(event) + "\n\n").encode("utf-8")
        raise httpx.ReadError("connection reset by peer")


class TestStreaming:

    @pytest.mark.asyncio
    async def test_chunks_then_done(self, store, settings, deposition_session):
        text = json.dumps(DEPOSITION_JSON)
        parts = [text[:40], text[40:120], text[120:]]
        gateway = MockGateway(_stream_response(*parts))
        generator = _generator(store, settings, gateway)

        events = await _collect(generator.open_stream(deposition_session.id, SessionKind.DEPOSITION))

        chunks = [e for e in events if "chunk" in e]
        assert "".join(e["chunk"] for e in chunks) == text
        assert chunks[-1]["progress"] == len(text)
        done = events[-1]
        assert done["done"] is True
        assert done["usedFallback"] is False
        assert len(done["questions"]) == 2
        assert done["session"]["status"] == "ready"
        assert gateway.requests[0]["stream"] is True

    @pytest.mark.asyncio
    async def test_status_set_before_streaming(self, store, settings, witness_session):
        gateway = MockGateway(_stream_response("[]"))
        generator = _generator(store, settings, gateway)
        events = generator.open_stream(witness_session.id, SessionKind.WITNESS)
        assert store.get(witness_session.id).status == SessionStatus.GENERATING
        await _collect(events)

    @pytest.mark.asyncio
    async def test_stream_http_error_falls_back(self, store, settings, witness_session):
        gateway = MockGateway(lambda request: httpx.Response(503, text="busy"))
        events = await _collect(_generator(store, settings, gateway).open_stream(witness_session.id, SessionKind.WITNESS))

        assert [e for e in events if "chunk" in e] == []
        assert events[-1]["usedFallback"] is True
        assert len(events[-1]["questions"]) >= MIN_FALLBACK_QUESTIONS

    def test_stream_preconditions_raise_immediately(self, store, settings):
        session = store.create_session(SessionKind.WITNESS, "John Smith", "Smith v. Acme")
        gateway = MockGateway(_stream_response("[]"))
        with pytest.raises(NoDocumentsError):
            _generator(store, settings, gateway).open_stream(session.id, SessionKind.WITNESS)
        assert gateway.calls == 0

    @pytest.mark.asyncio
    async def test_connection_lost_mid_stream_falls_back(self, store, settings, deposition_session):
        deltas = ['{"questions": [', '{"question": "Who drafted']
        gateway = MockGateway(lambda request: httpx.Response(
            200,
            headers={"content-type": "text/event-stream"},
            stream=_DroppedStream(*deltas),
        ))
        events = await _collect(
            _generator(store, settings, gateway).open_stream(deposition_session.id, SessionKind.DEPOSITION)
        )

        assert [e["chunk"] for e in events if "chunk" in e] == deltas
        done = events[-1]
        assert done["done"] is True
        assert done["usedFallback"] is True
        assert len(done["questions"]) >= MIN_FALLBACK_QUESTIONS
        assert store.get(deposition_session.id).status == SessionStatus.READY

    @pytest.mark.asyncio
    async def test_closed_stream_restores_status(self, store, settings, deposition_session):
        before = store.get(deposition_session.id).status
        gateway = MockGateway(_stream_response('{"questions": ', '[]}'))
        events = _generator(store, settings, gateway).open_stream(deposition_session.id, SessionKind.DEPOSITION)

        first = await events.__anext__()
        assert first["chunk"] == '{"questions": '
        assert store.get(deposition_session.id).status == SessionStatus.ANALYZING

        await events.aclose()
        session = store.get(deposition_session.id)
        assert session.status == before
        assert session.questions == []
