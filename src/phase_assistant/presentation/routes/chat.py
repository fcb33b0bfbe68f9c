"""Chat routes: health, chat turns and thread inspection."""

from __future__ import annotations

from fastapi import APIRouter, Query, Request
from loguru import logger

from phase_assistant.application.exceptions import NotFoundError
from phase_assistant.application.infrastructure.prompts import resolve_agent_key
from phase_assistant.application.use_cases.chat import (
    DEFAULT_RESOURCE_ID,
    ChatResult,
    ChatUseCase,
    memory_thread_key,
)
from phase_assistant.domain.infrastructure.memory_store import MemoryStore
from phase_assistant.presentation.schemas import (
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    MessageResponse,
    ThreadResponse,
)

router = APIRouter(tags=["chat"])


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health")
async def health():
    """Simple liveness / readiness check."""
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={code: {"model": ErrorResponse} for code in (422, 500, 502, 503)},
)
async def chat(request: ChatRequest, raw_request: Request):
    """Send a message to a phase assistant and receive its answer."""
    uc: ChatUseCase = raw_request.app.state.chat_uc

    logger.info(
        "POST /chat | agent={} thread={} resource={} msg={}",
        request.agent_key,
        request.thread_id,
        request.resource_id,
        request.message[:60],
    )

    result: ChatResult = await uc.route(
        agent_key=request.agent_key,
        user_message=request.message,
        attached_document=request.attached_document,
        scope_id=request.scope_id,
        thread_id=request.thread_id,
        resource_id=request.resource_id,
    )

    return ChatResponse(
        response=result.response,
        thread_id=result.thread_id,
        agent_key=result.agent_key,
        context_chunks=result.context_chunks,
        retrieval_degraded=result.retrieval_degraded,
    )


# ---------------------------------------------------------------------------
# Thread inspection
# ---------------------------------------------------------------------------


@router.get("/threads/{thread_id}", response_model=ThreadResponse)
async def get_thread(
    thread_id: str,
    raw_request: Request,
    agent_key: str = Query(..., alias="agentKey"),
    resource_id: str = Query(default=DEFAULT_RESOURCE_ID, alias="resourceId"),
):
    """Return the stored messages and working memory of one assistant's thread."""
    memory: MemoryStore = raw_request.app.state.memory_store
    key = resolve_agent_key(agent_key)
    memory_key = memory_thread_key(key, thread_id)

    thread = memory.get_thread(memory_key, resource_id)
    if thread is None:
        raise NotFoundError(f"Thread {thread_id} not found for agent '{key}'")

    return ThreadResponse(
        thread_id=thread_id,
        agent_key=key,
        resource_id=resource_id,
        working_memory=thread.working_memory,
        messages=[
            MessageResponse(role=m.role, content=m.content, created_at=m.created_at)
            for m in memory.get_messages(memory_key, resource_id)
        ],
    )
