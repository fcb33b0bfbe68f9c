"""Domain entities and value objects.

These are the core data structures of the phase assistant domain,
independent of any infrastructure or framework concerns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Documents and chunks
# ---------------------------------------------------------------------------


@dataclass
class Document:
    id: str
    scope_id: str
    file_name: str
    mime_type: str
    size_bytes: int
    raw_text: str
    uploaded_at: str


@dataclass
class ChunkDraft:
    """A header-addressed slice produced by the chunker, not yet embedded."""

    section: str
    content: str


@dataclass
class Chunk:
    id: str
    document_id: str
    scope_id: str
    file_name: str
    sequence_index: int
    total_chunks: int
    section: str
    text: str
    vector: list[float] = field(default_factory=list, repr=False)
    created_at: str = ""


@dataclass
class ChunkFailure:
    """An individual chunk whose embedding request failed."""

    sequence_index: int
    section: str
    message: str


@dataclass
class IngestResult:
    document_id: str
    chunk_count: int = 0
    chunks_created: int = 0
    failed_chunks: list[ChunkFailure] = field(default_factory=list)
    error: str | None = None

    @property
    def rag_processed(self) -> bool:
        return self.chunks_created > 0


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------


@dataclass
class RetrievalResult:
    """A single ranked chunk with source metadata. Never persisted."""

    chunk_id: str
    file_name: str
    chunk_index: int
    total_chunks: int
    section: str
    content: str
    score: float


# ---------------------------------------------------------------------------
# Conversation memory
# ---------------------------------------------------------------------------

WORKING_MEMORY_SLOTS = (
    "currentDocument",
    "keyRequirements",
    "userPreferences",
    "previousTopics",
)


def normalize_working_memory(values: dict[str, Any] | None) -> dict[str, str]:
    """Keep only the known slot names; slot content is free text."""
    if not values:
        return {}
    return {
        slot: str(values[slot])
        for slot in WORKING_MEMORY_SLOTS
        if slot in values and values[slot] is not None
    }


@dataclass
class Message:
    role: str
    content: str
    created_at: str = ""


@dataclass
class ConversationThread:
    thread_id: str
    resource_id: str
    agent_key: str
    working_memory: dict[str, str] = field(default_factory=dict)
    created_at: str = ""
    updated_at: str = ""


@dataclass
class MemoryRecall:
    """What a turn sees of its thread before the new message is appended."""

    recalled_messages: list[Message]
    working_memory: dict[str, str]


# ---------------------------------------------------------------------------
# Agents
# ---------------------------------------------------------------------------


@dataclass
class AgentConfig:
    """Stored override of a built-in agent's name, instructions or model."""

    agent_key: str
    name: str | None = None
    instructions: str | None = None
    model: str | None = None
    updated_at: str = ""
