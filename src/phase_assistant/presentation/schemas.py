"""HTTP request/response schemas (Pydantic models) for the REST API.

Fields are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ErrorBody(ApiModel):
    kind: str
    message: str
    hint: str | None = None


class ErrorResponse(ApiModel):
    error: ErrorBody


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class ChunkFailureResponse(ApiModel):
    sequence_index: int
    section: str
    message: str


class UploadResponse(ApiModel):
    """Response from POST /upload."""

    document_id: str
    chunks_created: int
    rag_processed: bool
    error: str | None = None
    failed_chunks: list[ChunkFailureResponse] = Field(default_factory=list)


class DocumentResponse(ApiModel):
    id: str
    scope_id: str
    file_name: str
    mime_type: str
    size_bytes: int
    uploaded_at: str
    chunk_count: int = 0


class DeleteResponse(ApiModel):
    success: bool


class ChunkTextRequest(ApiModel):
    """Request body for POST /chunk (chunk without storing)."""

    content: str
    file_name: str | None = None


class ChunkSection(ApiModel):
    section: str
    content: str


class ChunkTextResponse(ApiModel):
    data: list[ChunkSection]


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------


class RetrieveRequest(ApiModel):
    """Request body for POST /retrieve."""

    query: str = Field(min_length=1)
    scope_id: str = Field(min_length=1)
    limit: int = Field(default=5, ge=1, le=50)


class RetrievalResultResponse(ApiModel):
    chunk_id: str
    file_name: str
    chunk_index: int
    total_chunks: int
    section: str
    content: str
    score: float


class RetrieveResponse(ApiModel):
    results: list[RetrievalResultResponse]
    degraded: bool = False


class ContextResponse(ApiModel):
    """Response from GET /context: the formatted block as injected into prompts."""

    context: str
    has_context: bool


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class ChatRequest(ApiModel):
    """Request body for POST /chat."""

    message: str = Field(min_length=1, description="The new user message")
    agent_key: str = Field(description="Phase assistant: discovery, analysis, documentation, communication or quick")
    attached_document: str | None = Field(default=None, description="Document text to analyse in this turn")
    thread_id: str | None = Field(default=None, description="Existing thread to continue; minted when absent")
    resource_id: str | None = Field(default=None, description="User/session owning the thread")
    scope_id: str | None = Field(default=None, description="Retrieval scope; defaults to the agent key")


class ChatResponse(ApiModel):
    response: str
    thread_id: str
    agent_key: str
    context_chunks: int = 0
    retrieval_degraded: bool = False


class MessageResponse(ApiModel):
    role: str
    content: str
    created_at: str


class ThreadResponse(ApiModel):
    thread_id: str
    agent_key: str
    resource_id: str
    working_memory: dict[str, str]
    messages: list[MessageResponse]


# ---------------------------------------------------------------------------
# Agents
# ---------------------------------------------------------------------------


class AgentResponse(ApiModel):
    key: str
    name: str
    instructions: str
    model: str | None = None
    loaded: bool = False


class AgentUpdateRequest(ApiModel):
    """Request body for PUT /agents/{key}. Omitted fields keep their current value."""

    instructions: str | None = None
    name: str | None = None
    model: str | None = None
