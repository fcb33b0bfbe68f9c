"""Retrieval routes: ranked chunk search and formatted prompt context."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Query, Request
from loguru import logger

from phase_assistant.domain.infrastructure.retrieval_service import RetrievalService, format_context
from phase_assistant.presentation.schemas import (
    ContextResponse,
    RetrievalResultResponse,
    RetrieveRequest,
    RetrieveResponse,
)

router = APIRouter(tags=["retrieval"])


@router.post("/retrieve", response_model=RetrieveResponse)
async def retrieve(request: RetrieveRequest, raw_request: Request):
    """Return at most ``limit`` chunks of the scope, best match first."""
    retrieval: RetrievalService = raw_request.app.state.retrieval_service
    logger.info("POST /retrieve | scope={} limit={} query={}", request.scope_id, request.limit, request.query[:60])

    outcome = await asyncio.to_thread(
        retrieval.retrieve_with_status, request.query, request.scope_id, request.limit
    )
    return RetrieveResponse(
        results=[
            RetrievalResultResponse(
                chunk_id=r.chunk_id,
                file_name=r.file_name,
                chunk_index=r.chunk_index,
                total_chunks=r.total_chunks,
                section=r.section,
                content=r.content,
                score=r.score,
            )
            for r in outcome.results
        ],
        degraded=outcome.degraded is not None,
    )


@router.get("/context", response_model=ContextResponse)
async def context(
    raw_request: Request,
    query: str = Query(..., min_length=1),
    scope_id: str = Query(..., alias="scopeId", min_length=1),
    max_chunks: int = Query(default=5, alias="maxChunks", ge=1, le=50),
):
    """Return the retrieval context block exactly as it is injected into prompts."""
    retrieval: RetrievalService = raw_request.app.state.retrieval_service
    results = await asyncio.to_thread(retrieval.retrieve, query, scope_id, max_chunks)
    text = format_context(results)
    return ContextResponse(context=text, has_context=bool(text))
