"""
API contract tests: routes, response shapes and error bodies.

The store, settings and LLM client factory are swapped through FastAPI
dependency overrides; the gateway never leaves the process.
"""

import json
from urllib.parse import quote

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import MockGateway, completion, sse_body
from testimony_prep import __version__
from testimony_prep.api import app, get_app_settings, get_client_factory, get_session_store


def _failing(request):
    return httpx.Response(500, text="upstream down")


@pytest.fixture
def gateway():
    return MockGateway(_failing)


@pytest.fixture
def client(store, settings, gateway):
    app.dependency_overrides[get_session_store] = lambda: store
    app.dependency_overrides[get_app_settings] = lambda: settings
    app.dependency_overrides[get_client_factory] = lambda: gateway.factory
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _create(client, tool="depositions", **overrides):
    body = {"deponentName": "John Smith", "caseName": "Smith v. Acme Corp", "caseNumber": "23-cv-0042"}
    if tool == "sessions":
        body = {"witnessName": "John Smith", "caseName": "Smith v. Acme Corp"}
    body.update(overrides)
    resp = client.post(f"/api/{tool}", json=body)
    assert resp.status_code == 200, resp.text
    return resp.json()["session"]


def _upload(client, tool, session_id, text, name="transcript.txt", category="transcript"):
    return client.post(
        f"/api/{tool}/{session_id}/documents",
        files={"file": (name, text.encode("utf-8"), "text/plain")},
        data={"type": category},
    )


def _assert_error(resp, status_code, code):
    assert resp.status_code == status_code, resp.text
    body = resp.json()
    assert set(body) == {"error"}
    assert body["error"]["code"] == code
    assert isinstance(body["error"]["message"], str)
    assert "details" in body["error"]


# =============================================================================
# Health and middleware
# =============================================================================

class TestHealth:

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["llmConfigured"] is True
        assert data["version"] == __version__

    def test_security_headers(self, client):
        resp = client.get("/health")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert "Content-Security-Policy" in resp.headers
        assert "Strict-Transport-Security" not in resp.headers


# =============================================================================
# Sessions
# =============================================================================

class TestSessions:

    def test_create_and_get(self, client):
        session = _create(client)
        assert session["subjectName"] == "John Smith"
        assert session["kind"] == "deposition"
        assert session["status"] == "setup"
        assert session["documents"] == []

        resp = client.get(f"/api/depositions/{session['id']}")
        assert resp.status_code == 200
        assert resp.json()["session"]["caseNumber"] == "23-cv-0042"

    def test_list_is_per_tool(self, client):
        _create(client)
        _create(client, tool="sessions")
        assert len(client.get("/api/depositions").json()["sessions"]) == 1
        assert len(client.get("/api/sessions").json()["sessions"]) == 1

    def test_other_tool_session_is_not_found(self, client):
        session = _create(client, tool="sessions")
        _assert_error(client.get(f"/api/depositions/{session['id']}"), 404, "session_not_found")

    def test_unknown_session(self, client):
        _assert_error(client.get("/api/depositions/nope"), 404, "session_not_found")

    def test_markup_stripped_from_names(self, client):
        session = _create(client, deponentName="<script>Jane</script> Roe")
        assert "<" not in session["subjectName"]

    def test_blank_name_rejected(self, client):
        resp = client.post("/api/depositions", json={"deponentName": "  ", "caseName": "Case"})
        _assert_error(resp, 400, "invalid_input")

    def test_missing_field_is_validation_error(self, client):
        resp = client.post("/api/depositions", json={"caseName": "Case"})
        _assert_error(resp, 422, "validation_error")
        assert resp.json()["error"]["details"]["errors"]

    def test_patch(self, client):
        session = _create(client)
        resp = client.patch(f"/api/depositions/{session['id']}", json={"caseName": "Smith v. Acme Holdings"})
        assert resp.status_code == 200
        assert resp.json()["session"]["caseName"] == "Smith v. Acme Holdings"
        assert resp.json()["session"]["subjectName"] == "John Smith"

    def test_delete(self, client):
        session = _create(client)
        resp = client.delete(f"/api/depositions/{session['id']}")
        assert resp.status_code == 200
        assert resp.json()["success"] is True
        assert client.get(f"/api/depositions/{session['id']}").status_code == 404


# =============================================================================
# Documents
# =============================================================================

class TestDocuments:

    def test_upload_text(self, client, deposition_text):
        session = _create(client)
        resp = _upload(client, "depositions", session["id"], deposition_text)
        assert resp.status_code == 200, resp.text
        document = resp.json()["document"]
        assert document["status"] == "ready"
        assert document["category"] == "transcript"
        assert document["content"].startswith("DEPOSITION TRANSCRIPT")
        assert document["metadata"]["source"] == "transcript.txt"

        listed = client.get(f"/api/depositions/{session['id']}/documents").json()["documents"]
        assert [d["id"] for d in listed] == [document["id"]]

    def test_category_guessed_without_type(self, client):
        session = _create(client)
        resp = client.post(
            f"/api/depositions/{session['id']}/documents",
            files={"file": ("Exhibit_7.txt", b"Purchase order", "text/plain")},
        )
        assert resp.json()["document"]["category"] == "exhibit"

    def test_unsupported_type(self, client):
        session = _create(client)
        resp = client.post(
            f"/api/depositions/{session['id']}/documents",
            files={"file": ("photo.png", b"\x89PNG", "image/png")},
        )
        _assert_error(resp, 400, "invalid_upload")

    def test_too_large(self, client, settings):
        settings.max_upload_bytes = 10
        session = _create(client)
        resp = _upload(client, "depositions", session["id"], "x" * 11)
        _assert_error(resp, 400, "invalid_upload")
        assert resp.json()["error"]["details"]["limit"] == 10


# =============================================================================
# Generation
# =============================================================================

class TestGeneration:

    def test_no_documents(self, client, gateway):
        session = _create(client)
        resp = client.post(f"/api/depositions/{session['id']}/generate-questions")
        _assert_error(resp, 400, "no_documents")
        assert gateway.calls == 0

    def test_fallback_on_gateway_error(self, client, gateway, deposition_text):
        session = _create(client)
        _upload(client, "depositions", session["id"], deposition_text)
        resp = client.post(f"/api/depositions/{session['id']}/generate-questions")
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["usedFallback"] is True
        assert len(data["questions"]) >= 1
        assert data["session"]["status"] == "ready"
        assert gateway.calls == 1

    def test_witness_llm_path(self, client, gateway, deposition_text):
        questions = [
            {"question": f"You reviewed invoice {i}, correct?", "topic": "Document Discovery", "category": "general"}
            for i in range(6)
        ]
        gateway.handler = lambda request: completion(json.dumps(questions))
        session = _create(client, tool="sessions")
        _upload(client, "sessions", session["id"], deposition_text)

        data = client.post(f"/api/sessions/{session['id']}/generate-questions").json()
        assert data["usedFallback"] is False
        assert len(data["questions"]) == 6
        assert data["session"]["questions"][0]["question"] == "You reviewed invoice 0, correct?"

    def test_missing_credential(self, client, settings, deposition_text):
        session = _create(client)
        _upload(client, "depositions", session["id"], deposition_text)
        settings.casedev_api_key = None
        resp = client.post(f"/api/depositions/{session['id']}/generate-questions")
        _assert_error(resp, 500, "llm_not_configured")

    def test_stream(self, client, gateway, deposition_text):
        payload = json.dumps({"questions": [{"question": "Who drafted the contract?", "topic": "Foundation"}]})
        gateway.handler = lambda request: httpx.Response(
            200,
            content=sse_body(payload[:20], payload[20:]),
            headers={"content-type": "text/event-stream"},
        )
        session = _create(client)
        _upload(client, "depositions", session["id"], deposition_text)

        resp = client.post(f"/api/depositions/{session['id']}/generate-questions-stream")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")

        events = [
            json.loads(line[len("data: "):])
            for line in resp.text.splitlines()
            if line.startswith("data: ")
        ]
        chunks = [e["chunk"] for e in events if "chunk" in e]
        assert "".join(chunks) == payload
        assert events[-1]["done"] is True
        assert events[-1]["questions"][0]["question"] == "Who drafted the contract?"

    def test_stream_no_documents(self, client):
        session = _create(client)
        resp = client.post(f"/api/depositions/{session['id']}/generate-questions-stream")
        _assert_error(resp, 400, "no_documents")


# =============================================================================
# Outline and export
# =============================================================================

@pytest.fixture
def generated(client, deposition_text):
    session = _create(client)
    _upload(client, "depositions", session["id"], deposition_text)
    client.post(f"/api/depositions/{session['id']}/generate-questions")
    return session["id"]


class TestOutline:

    def test_outline_lifecycle(self, client, generated):
        url = f"/api/depositions/{generated}/outline"
        assert client.get(url).json()["outline"] is None

        created = client.post(url, json={"action": "create", "title": "Smith Outline"}).json()
        assert created["outline"]["title"] == "Smith Outline"

        added = client.post(url, json={"action": "add_section", "section": {"title": "Opening"}}).json()
        section_id = added["outline"]["sections"][0]["id"]

        updated = client.post(url, json={
            "action": "update_section",
            "sectionId": section_id,
            "section": {"notes": "Keep it short"},
        }).json()
        assert updated["outline"]["sections"][0]["notes"] == "Keep it short"

        resp = client.delete(url)
        assert resp.json()["success"] is True
        assert client.get(url).json()["outline"] is None

    def test_auto_organize(self, client, generated):
        resp = client.post(f"/api/depositions/{generated}/outline", json={"action": "auto_organize"})
        assert resp.status_code == 200
        sections = resp.json()["outline"]["sections"]
        assert sections
        assert [s["order"] for s in sections] == list(range(len(sections)))
        assert resp.json()["outline"]["title"] == "Deposition Outline - John Smith"

    def test_action_without_outline(self, client, generated):
        resp = client.post(f"/api/depositions/{generated}/outline", json={"action": "add_section", "section": {"title": "X"}})
        _assert_error(resp, 400, "outline_error")

    def test_unknown_section(self, client, generated):
        url = f"/api/depositions/{generated}/outline"
        client.post(url, json={"action": "create", "title": "Outline"})
        resp = client.post(url, json={"action": "remove_question", "sectionId": "missing", "questionId": "q"})
        _assert_error(resp, 404, "section_not_found")

    def test_invalid_action(self, client, generated):
        resp = client.post(f"/api/depositions/{generated}/outline", json={"action": "explode"})
        _assert_error(resp, 422, "validation_error")


class TestExport:

    def test_export_txt(self, client, generated):
        resp = client.get(f"/api/depositions/{generated}/export", params={"format": "txt", "includeRationale": "false"})
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/plain")
        assert 'filename="Deposition_Outline_John_Smith_' in resp.headers["content-disposition"]
        assert resp.text.startswith("DEPOSITION OUTLINE")
        assert "Rationale:" not in resp.text

    def test_export_pdf(self, client, generated):
        resp = client.get(f"/api/depositions/{generated}/export")
        assert resp.headers["content-type"] == "application/pdf"
        assert resp.content[:4] == b"%PDF"

    def test_export_docx(self, client, generated):
        resp = client.get(f"/api/depositions/{generated}/export", params={"format": "docx"})
        assert resp.content[:2] == b"PK"
        assert '.docx"' in resp.headers["content-disposition"]

    @pytest.mark.parametrize("name", ["José Núñez", "李明", "משה כהן"])
    @pytest.mark.parametrize("fmt", ["txt", "pdf"])
    def test_export_non_ascii_subject(self, client, deposition_text, name, fmt):
        session = _create(client, deponentName=name)
        _upload(client, "depositions", session["id"], deposition_text)
        client.post(f"/api/depositions/{session['id']}/generate-questions")

        resp = client.get(f"/api/depositions/{session['id']}/export", params={"format": fmt})
        assert resp.status_code == 200, resp.text
        disposition = resp.headers["content-disposition"]
        assert disposition.startswith('attachment; filename="Deposition_Outline_')
        assert f"filename*=UTF-8''{quote('Deposition_Outline_' + name.replace(' ', '_'))}" in disposition
        if fmt == "txt":
            assert name in resp.text
        else:
            assert resp.content[:4] == b"%PDF"

    def test_bad_format(self, client, generated):
        _assert_error(client.get(f"/api/depositions/{generated}/export", params={"format": "rtf"}), 422, "validation_error")


# =============================================================================
# Practice
# =============================================================================

class TestPractice:

    def test_not_routed_for_depositions(self, client, generated):
        assert client.get(f"/api/depositions/{generated}/practice").status_code in (404, 405)

    def test_round_trip(self, client, gateway, deposition_text):
        session = _create(client, tool="sessions")
        _upload(client, "sessions", session["id"], deposition_text)
        gateway.handler = lambda request: completion(json.dumps({
            "followUp": "So you never opened the invoice?",
            "feedback": "Answer was evasive.",
            "weaknessIdentified": "Hedging",
            "suggestedImprovement": "Answer yes or no.",
        }))

        resp = client.post(f"/api/sessions/{session['id']}/practice", json={
            "questionId": "q-1",
            "question": "Did you review the invoice?",
            "response": "I may have glanced at it.",
            "duration": 12,
        })
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["aiResponse"]["followUp"] == "So you never opened the invoice?"
        assert data["exchange"]["witnessResponse"] == "I may have glanced at it."
        assert data["session"]["status"] == "practicing"

        history = client.get(f"/api/sessions/{session['id']}/practice").json()
        assert history["questionsAnswered"] == 1
        assert history["totalDuration"] == 12

    def test_missing_fields(self, client):
        session = _create(client, tool="sessions")
        resp = client.post(f"/api/sessions/{session['id']}/practice", json={"question": "Q?"})
        _assert_error(resp, 400, "invalid_input")

    def test_gateway_failure(self, client, gateway):
        session = _create(client, tool="sessions")
        resp = client.post(f"/api/sessions/{session['id']}/practice", json={
            "questionId": "q-1",
            "question": "Did you review the invoice?",
            "response": "No.",
        })
        _assert_error(resp, 502, "llm_unavailable")
        assert gateway.calls == 1
