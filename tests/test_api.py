"""Tests for the FastAPI presentation layer (routes, schemas, error bodies)."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from phase_assistant.application.exceptions import CredentialError
from phase_assistant.main import create_app
from phase_assistant.presentation.schemas import ChatRequest, ChatResponse

from conftest import FakeAgent, KeywordEmbeddingService, make_settings

BRIEF = b"# Login\nUsers need a password login.\n# Payments\nUsers pay each invoice.\n# Reports\nExport a report."


@pytest.fixture()
def fake_agent() -> FakeAgent:
    return FakeAgent(outputs=["Here are the requirements."])


@pytest.fixture()
def client(tmp_path, fake_agent):
    app = create_app(
        make_settings(tmp_path),
        embedding_service=KeywordEmbeddingService(),
        agent_factory=lambda profile: fake_agent,
    )
    with TestClient(app) as c:
        yield c


def _upload(client: TestClient, name: str, content: bytes, scope: str = "discovery", mime: str = "text/markdown"):
    return client.post("/upload", files={"file": (name, content, mime)}, data={"scopeId": scope})


class TestHealthEndpoint:
    def test_health_returns_ok(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestUploadEndpoint:
    def test_markdown_upload(self, client: TestClient):
        response = _upload(client, "brief.md", BRIEF)

        assert response.status_code == 200
        body = response.json()
        assert body["chunksCreated"] == 3
        assert body["ragProcessed"] is True
        assert body["error"] is None
        assert body["documentId"]

    def test_empty_text_file(self, client: TestClient):
        response = _upload(client, "empty.txt", b"", mime="text/plain")

        assert response.status_code == 200
        body = response.json()
        assert body["chunksCreated"] == 0
        assert body["ragProcessed"] is False

    def test_unsupported_type_still_records_document(self, client: TestClient):
        response = _upload(client, "diagram.png", b"\x89PNG", mime="image/png")

        assert response.status_code == 200
        body = response.json()
        assert body["ragProcessed"] is False
        assert "Unsupported" in body["error"]
        listed = client.get("/documents", params={"scopeId": "discovery"}).json()
        assert [d["id"] for d in listed] == [body["documentId"]]

    def test_missing_scope_is_structured_422(self, client: TestClient):
        response = client.post("/upload", files={"file": ("brief.md", BRIEF, "text/markdown")})

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["kind"] == "validation_error"
        assert "scopeId" in error["message"]

    def test_undecodable_chunker_output_keeps_document(self, tmp_path):
        app = create_app(
            make_settings(tmp_path, chunking_strategy="agent"),
            embedding_service=KeywordEmbeddingService(),
            agent_factory=lambda profile: FakeAgent(outputs=["Sure! here you go: not a list"]),
        )
        with TestClient(app) as c:
            response = _upload(c, "brief.md", BRIEF)
            listed = c.get("/documents", params={"scopeId": "discovery"}).json()

        assert response.status_code == 200
        body = response.json()
        assert body["chunksCreated"] == 0
        assert body["ragProcessed"] is False
        assert body["error"].startswith("Could not decode chunk list")
        assert [d["id"] for d in listed] == [body["documentId"]]
        assert listed[0]["chunkCount"] == 0

    def test_too_large(self, tmp_path):
        app = create_app(
            make_settings(tmp_path, max_upload_bytes=10),
            embedding_service=KeywordEmbeddingService(),
            agent_factory=lambda profile: FakeAgent(),
        )
        with TestClient(app) as c:
            response = _upload(c, "brief.md", BRIEF)
        assert response.status_code == 422
        assert response.json()["error"]["kind"] == "validation_error"


class TestDocumentsEndpoints:
    def test_list_includes_chunk_count(self, client: TestClient):
        uploaded = _upload(client, "brief.md", BRIEF).json()
        _upload(client, "other.md", b"# Only\ntext", scope="analysis")

        listed = client.get("/documents", params={"scopeId": "discovery"}).json()

        assert len(listed) == 1
        assert listed[0]["id"] == uploaded["documentId"]
        assert listed[0]["fileName"] == "brief.md"
        assert listed[0]["chunkCount"] == 3
        assert len(client.get("/documents").json()) == 2

    def test_delete_cascades(self, client: TestClient):
        document_id = _upload(client, "brief.md", BRIEF).json()["documentId"]

        response = client.delete("/document", params={"documentId": document_id})

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert client.get("/documents").json() == []
        results = client.post("/retrieve", json={"query": "login", "scopeId": "discovery"}).json()
        assert results["results"] == []

    def test_delete_unknown_document(self, client: TestClient):
        response = client.delete("/document", params={"documentId": "missing"})
        assert response.status_code == 404
        assert response.json()["error"]["kind"] == "not_found"

    def test_chunk_preview(self, client: TestClient):
        response = client.post("/chunk", json={"content": "# A\ntext1\n## A1\nsub\n# B\ntext2"})

        assert response.status_code == 200
        assert response.json() == {
            "data": [
                {"section": "A", "content": "text1\n## A1\nsub"},
                {"section": "B", "content": "text2"},
            ]
        }
        assert client.get("/documents").json() == []


class TestRetrievalEndpoints:
    def test_retrieve_ranks_within_scope(self, client: TestClient):
        _upload(client, "brief.md", BRIEF)

        response = client.post("/retrieve", json={"query": "invoice payment", "scopeId": "discovery", "limit": 2})

        assert response.status_code == 200
        body = response.json()
        assert body["degraded"] is False
        assert len(body["results"]) == 2
        top = body["results"][0]
        assert top["section"] == "Payments"
        assert top["fileName"] == "brief.md"
        assert top["totalChunks"] == 3
        assert body["results"][0]["score"] >= body["results"][1]["score"]

    def test_retrieve_validates_limit(self, client: TestClient):
        response = client.post("/retrieve", json={"query": "x", "scopeId": "discovery", "limit": 0})
        assert response.status_code == 422
        assert response.json()["error"]["kind"] == "validation_error"

    def test_context_block(self, client: TestClient):
        _upload(client, "brief.md", BRIEF)

        body = client.get("/context", params={"query": "report export", "scopeId": "discovery", "maxChunks": 1}).json()

        assert body["hasContext"] is True
        assert body["context"].startswith("<retrieved_context>\n[1] Source: brief.md (chunk 3/3) | Section: Reports")

    def test_context_empty_scope(self, client: TestClient):
        body = client.get("/context", params={"query": "report", "scopeId": "nothing-here"}).json()
        assert body == {"context": "", "hasContext": False}


class TestChatEndpoint:
    def test_chat_returns_answer_and_thread(self, client: TestClient, fake_agent: FakeAgent):
        _upload(client, "brief.md", BRIEF)

        response = client.post(
            "/chat",
            json={"message": "List the login requirements", "agentKey": "discovery", "threadId": "t1"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["response"] == "Here are the requirements."
        assert body["threadId"] == "t1"
        assert body["agentKey"] == "discovery"
        assert body["contextChunks"] == 3
        assert body["retrievalDegraded"] is False
        assert "<retrieved_context>" in fake_agent.calls[0]["prompt"]

    def test_empty_message_is_422(self, client: TestClient):
        response = client.post("/chat", json={"message": "", "agentKey": "discovery"})
        assert response.status_code == 422
        assert response.json()["error"]["kind"] == "validation_error"

    def test_thread_inspection(self, client: TestClient):
        client.post("/chat", json={"message": "Hello", "agentKey": "analysis", "threadId": "t9"})

        response = client.get("/threads/t9", params={"agentKey": "analysis"})

        assert response.status_code == 200
        body = response.json()
        assert body["resourceId"] == "default-user"
        assert [(m["role"], m["content"]) for m in body["messages"]] == [
            ("user", "Hello"),
            ("assistant", "Here are the requirements."),
        ]
        assert client.get("/threads/t9", params={"agentKey": "discovery"}).status_code == 404

    def test_missing_credentials_is_503(self, tmp_path):
        def factory(profile):
            raise CredentialError("AZURE_OPENAI_API_KEY is not set")

        app = create_app(make_settings(tmp_path), embedding_service=KeywordEmbeddingService(), agent_factory=factory)
        with TestClient(app) as c:
            response = c.post("/chat", json={"message": "Hi", "agentKey": "discovery"})

        assert response.status_code == 503
        error = response.json()["error"]
        assert error["kind"] == "credential_error"
        assert "AZURE_OPENAI_API_KEY" in error["message"]


class TestAgentsEndpoints:
    def test_list_agents(self, client: TestClient):
        keys = [a["key"] for a in client.get("/agents").json()]
        assert {"discovery", "analysis", "documentation", "communication", "quick", "chunker"} <= set(keys)

    def test_update_instructions_reloads_agent(self, client: TestClient):
        client.post("/chat", json={"message": "Hi", "agentKey": "discovery"})
        assert client.get("/agents/discovery").json()["loaded"] is True

        response = client.put("/agents/discovery", json={"instructions": "Answer in haiku."})

        assert response.status_code == 200
        body = response.json()
        assert body["instructions"] == "Answer in haiku."
        assert body["loaded"] is False

    def test_blank_instructions_rejected(self, client: TestClient):
        response = client.put("/agents/discovery", json={"instructions": "  "})
        assert response.status_code == 422

    def test_unknown_agent(self, client: TestClient):
        assert client.get("/agents/marketing").status_code == 404


class TestModels:
    """Schema-level checks."""

    def test_chat_request_accepts_camel_case(self):
        request = ChatRequest.model_validate({"message": "Hi", "agentKey": "quick", "threadId": "t1"})
        assert request.agent_key == "quick"
        assert request.thread_id == "t1"
        assert request.scope_id is None

    def test_chat_response_serialises_camel_case(self):
        response = ChatResponse(response="ok", thread_id="t1", agent_key="quick")
        assert response.model_dump(by_alias=True) == {
            "response": "ok",
            "threadId": "t1",
            "agentKey": "quick",
            "contextChunks": 0,
            "retrievalDegraded": False,
        }
