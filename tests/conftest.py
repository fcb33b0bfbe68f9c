"""Shared fixtures for the phase assistant tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import SimpleNamespace

import pytest

from phase_assistant.application.chunker import HeadingSplitter, SemanticChunker
from phase_assistant.application.infrastructure.agent_registry import AgentRegistry
from phase_assistant.config import Settings
from phase_assistant.domain.infrastructure.chunk_store import ChunkStore
from phase_assistant.domain.infrastructure.document_store import AgentConfigStore, DocumentStore
from phase_assistant.domain.infrastructure.memory_store import MemoryStore
from phase_assistant.domain.infrastructure.retrieval_service import RetrievalService


def pytest_configure(config):
    """Set pytest-asyncio mode to auto so async test functions work without markers."""
    config.option.asyncio_mode = "auto"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

VOCABULARY = (
    "login",
    "password",
    "payment",
    "invoice",
    "report",
    "export",
    "security",
    "performance",
)


class KeywordEmbeddingService:
    """Deterministic embeddings: one dimension per vocabulary word plus a bias dimension."""

    def __init__(self, fail_on: str | None = None) -> None:
        self.fail_on = fail_on
        self.calls: list[str] = []

    def embed_text(self, text: str) -> list[float]:
        from phase_assistant.application.exceptions import EmbeddingError

        self.calls.append(text)
        if self.fail_on and self.fail_on in text:
            raise EmbeddingError(f"provider rejected text containing '{self.fail_on}'")
        words = text.lower().split()
        return [float(sum(1 for w in words if w.strip(".,:;!?") == v)) for v in VOCABULARY] + [0.1]

    @property
    def dimension(self) -> int:
        return len(VOCABULARY) + 1


@dataclass
class FakeAgent:
    """Stands in for a PydanticAI agent: records calls and returns scripted output."""

    outputs: list[str] = field(default_factory=lambda: ["Fake answer"])
    error: BaseException | None = None
    memory_update: tuple[str, str] | None = None
    calls: list[dict] = field(default_factory=list)

    async def run(self, prompt, deps=None, message_history=None):
        self.calls.append({"prompt": prompt, "deps": deps, "message_history": message_history})
        if self.error is not None:
            raise self.error
        if self.memory_update and deps is not None:
            from phase_assistant.application.infrastructure.agent import apply_working_memory_update

            apply_working_memory_update(deps, *self.memory_update)
        output = self.outputs[min(len(self.calls), len(self.outputs)) - 1]
        return SimpleNamespace(output=output)


# ---------------------------------------------------------------------------
# Settings and stores
# ---------------------------------------------------------------------------


def make_settings(tmp_path: Path, **overrides) -> Settings:
    """Create a Settings instance suitable for tests.

    Uses ``_env_file=None`` so a local .env is never loaded.
    """
    values = dict(
        azure_openai_api_key="test-key",
        azure_openai_endpoint="https://test.openai.azure.com/",
        azure_openai_api_version="2024-02-01",
        azure_openai_chat_deployment="gpt-4o-mini",
        embedding_dimensions=len(VOCABULARY) + 1,
        db_path=tmp_path / "phase_assistant.sqlite",
        memory_db_path=tmp_path / "memory.sqlite",
        chunking_strategy="heading",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture()
def embedding_service() -> KeywordEmbeddingService:
    return KeywordEmbeddingService()


@pytest.fixture()
def chunk_store(tmp_path: Path) -> ChunkStore:
    store = ChunkStore(db_path=tmp_path / "chunks.sqlite")
    store.connect()
    yield store
    store.close()


@pytest.fixture()
def document_store(tmp_path: Path) -> DocumentStore:
    store = DocumentStore(db_path=tmp_path / "documents.sqlite")
    store.connect()
    yield store
    store.close()


@pytest.fixture()
def agent_config_store(tmp_path: Path) -> AgentConfigStore:
    store = AgentConfigStore(db_path=tmp_path / "documents.sqlite")
    store.connect()
    yield store
    store.close()


@pytest.fixture()
def memory_store(tmp_path: Path) -> MemoryStore:
    store = MemoryStore(db_path=tmp_path / "memory.sqlite")
    store.connect()
    yield store
    store.close()


@pytest.fixture()
def retrieval_service(chunk_store: ChunkStore, embedding_service: KeywordEmbeddingService) -> RetrievalService:
    return RetrievalService(chunk_store=chunk_store, embedding_service=embedding_service)


@pytest.fixture()
def heading_chunker() -> SemanticChunker:
    return SemanticChunker(HeadingSplitter())


@pytest.fixture()
def fake_agent() -> FakeAgent:
    return FakeAgent()


@pytest.fixture()
def registry(fake_agent: FakeAgent) -> AgentRegistry:
    return AgentRegistry(factory=lambda profile: fake_agent)
