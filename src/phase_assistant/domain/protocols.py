"""Domain service interfaces (ports).

These protocols define the contracts that infrastructure implementations
must satisfy.  The application layer depends on these abstractions,
not on concrete classes.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from phase_assistant.domain.models import (
    AgentConfig,
    Chunk,
    ConversationThread,
    Document,
    MemoryRecall,
    Message,
    RetrievalResult,
)

# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------


@runtime_checkable
class IEmbeddingService(Protocol):
    """Turns chunk or query text into a fixed-dimension vector.

    Implementations: OpenAIEmbeddingService, MockEmbeddingService.
    """

    def embed_text(self, text: str) -> list[float]: ...

    @property
    def dimension(self) -> int: ...


# ---------------------------------------------------------------------------
# Documents and chunks
# ---------------------------------------------------------------------------


@runtime_checkable
class IDocumentStore(Protocol):
    """Interface for uploaded document records.

    Implementations: DocumentStore (SQLModel on SQLite).
    """

    def create(
        self,
        scope_id: str,
        file_name: str,
        mime_type: str,
        size_bytes: int,
        raw_text: str,
    ) -> Document: ...

    def get(self, document_id: str) -> Document | None: ...

    def list(self, scope_id: str | None = None) -> list[Document]: ...

    def delete(self, document_id: str) -> bool: ...


@runtime_checkable
class IChunkStore(Protocol):
    """Interface for chunk persistence and vector search.

    Implementations: ChunkStore (sqlite3 + sqlite-vec).
    """

    def replace_document_chunks(self, document_id: str, chunks: list[Chunk]) -> int: ...

    def delete_by_document(self, document_id: str) -> int: ...

    def count_by_document(self, document_id: str) -> int: ...

    def search(
        self, query_vector: list[float], scope_id: str, limit: int
    ) -> list[RetrievalResult]: ...


# ---------------------------------------------------------------------------
# Conversation memory
# ---------------------------------------------------------------------------


@runtime_checkable
class IMemoryStore(Protocol):
    """Interface for per-(thread, resource) message history and working memory.

    Implementations: MemoryStore (SQLite-backed).
    """

    def append_and_recall(
        self,
        thread_id: str,
        resource_id: str,
        agent_key: str,
        user_message: str,
        last_messages: int | None = None,
    ) -> MemoryRecall: ...

    def commit(
        self,
        thread_id: str,
        resource_id: str,
        assistant_message: str,
        working_memory: dict[str, str] | None = None,
    ) -> None: ...

    def get_thread(self, thread_id: str, resource_id: str) -> ConversationThread | None: ...

    def get_messages(self, thread_id: str, resource_id: str) -> list[Message]: ...


# ---------------------------------------------------------------------------
# Agents
# ---------------------------------------------------------------------------


@runtime_checkable
class IAgentConfigStore(Protocol):
    """Interface for stored agent instruction overrides."""

    def get(self, agent_key: str) -> AgentConfig | None: ...

    def upsert(
        self,
        agent_key: str,
        instructions: str | None = None,
        name: str | None = None,
        model: str | None = None,
    ) -> AgentConfig: ...


@runtime_checkable
class ISplitter(Protocol):
    """Produces raw list-shaped output for the chunk decoder."""

    async def split(self, text: str, level: int) -> str: ...
