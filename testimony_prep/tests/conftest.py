"""
Shared fixtures: in-memory store with a controllable clock, settings with
and without an LLM credential, and an httpx.MockTransport-backed client
factory that counts gateway calls.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Callable, List

import httpx
import pytest

from testimony_prep.config import Settings
from testimony_prep.llm import CaseDevLLMClient
from testimony_prep.schemas import Document, DocumentCategory, DocumentStatus, SessionKind
from testimony_prep.store import InMemorySessionStore


class FakeClock:
    def __init__(self, start: datetime = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class MockGateway:
    """Stands in for the case.dev chat-completions endpoint"""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.handler = handler
        self.requests: List[dict] = []

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        return self.handler(request)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def factory(self, model: str) -> CaseDevLLMClient:
        return CaseDevLLMClient(
            api_key="test-key",
            model=model,
            base_url="https://llm.test/v1",
            transport=httpx.MockTransport(self._handle),
        )


def completion(content: str, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json={"choices": [{"message": {"content": content}}]})


def sse_body(*deltas: str) -> bytes:
    lines = [
        "data: " + json.dumps({"choices": [{"delta": {"content": delta}}]})
        for delta in deltas
    ]
    lines.append("data: [DONE]")
    return ("\n\n".join(lines) + "\n\n").encode("utf-8")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemorySessionStore(ttl=timedelta(hours=24), clock=clock)


@pytest.fixture
def settings():
    return Settings(casedev_api_key="test-key", casedev_llm_base_url="https://llm.test/v1")


@pytest.fixture
def settings_no_key():
    return Settings(casedev_api_key=None, casedev_llm_base_url="https://llm.test/v1")


@pytest.fixture
def deposition_text():
    return (
        "DEPOSITION TRANSCRIPT of John Smith taken on March 15, 2023 in Chicago.\n\n"
        "Q: Did you meet with Sarah Johnson before the closing?\n"
        "A: I met Sarah Johnson at the office in Springfield. She said \"the wire went out on Friday\".\n\n"
        "The contract price was $250,000 and the deposit of 25,000 was paid on 04/02/2023. "
        "Mr. Smith testified that he never reviewed the final invoice."
    )


@pytest.fixture
def make_document():
    def _make(name="transcript.txt", content="", category=DocumentCategory.TRANSCRIPT):
        return Document(
            name=name,
            category=category,
            file_type="text/plain",
            size=len(content),
            content=content,
            status=DocumentStatus.READY,
        )
    return _make


@pytest.fixture
def witness_session(store, make_document, deposition_text):
    session = store.create_session(SessionKind.WITNESS, "John Smith", "Smith v. Acme Corp")
    store.add_document(session.id, make_document(content=deposition_text))
    return store.get(session.id)


@pytest.fixture
def deposition_session(store, make_document, deposition_text):
    session = store.create_session(SessionKind.DEPOSITION, "John Smith", "Smith v. Acme Corp", case_number="23-cv-0042")
    store.add_document(session.id, make_document(content=deposition_text))
    return store.get(session.id)
