"""Tests for the document and agent-config tables."""

from __future__ import annotations

from phase_assistant.domain.infrastructure.document_store import AgentConfigStore, DocumentStore


class TestDocumentStore:
    def test_create_and_get(self, document_store: DocumentStore):
        created = document_store.create("discovery", "brief.md", "text/markdown", 12, "# A\ntext")

        fetched = document_store.get(created.id)

        assert fetched == created
        assert fetched.scope_id == "discovery"
        assert fetched.raw_text == "# A\ntext"

    def test_list_filters_by_scope(self, document_store: DocumentStore):
        document_store.create("discovery", "a.md", "text/markdown", 1, "a")
        document_store.create("analysis", "b.md", "text/markdown", 1, "b")

        assert [d.file_name for d in document_store.list("analysis")] == ["b.md"]
        assert len(document_store.list()) == 2

    def test_delete(self, document_store: DocumentStore):
        created = document_store.create("discovery", "a.md", "text/markdown", 1, "a")
        assert document_store.delete(created.id) is True
        assert document_store.get(created.id) is None
        assert document_store.delete(created.id) is False


class TestAgentConfigStore:
    def test_upsert_keeps_unset_fields(self, agent_config_store: AgentConfigStore):
        agent_config_store.upsert("discovery", instructions="v1", name="Discovery")
        updated = agent_config_store.upsert("discovery", instructions="v2")

        assert updated.instructions == "v2"
        assert updated.name == "Discovery"
        assert agent_config_store.get("discovery").instructions == "v2"

    def test_list_and_missing(self, agent_config_store: AgentConfigStore):
        agent_config_store.upsert("quick", instructions="short answers")
        agent_config_store.upsert("analysis", instructions="MoSCoW")

        assert [c.agent_key for c in agent_config_store.list()] == ["analysis", "quick"]
        assert agent_config_store.get("communication") is None
