"""Retrieval engine: query embedding, scoped similarity ranking and context formatting."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field

from loguru import logger

from phase_assistant.application.exceptions import (
    CredentialError,
    EmbeddingError,
    RetrievalDegraded,
    StorageError,
)
from phase_assistant.domain.models import RetrievalResult
from phase_assistant.domain.protocols import IChunkStore, IEmbeddingService

CONTEXT_OPEN = "<retrieved_context>"
CONTEXT_CLOSE = "</retrieved_context>"
BLOCK_DELIMITER = "\n---\n"


@dataclass
class RetrievalOutcome:
    results: list[RetrievalResult] = field(default_factory=list)
    degraded: RetrievalDegraded | None = None


class RetrievalService:
    """Ranks stored chunks against a query within one scope."""

    def __init__(self, chunk_store: IChunkStore, embedding_service: IEmbeddingService) -> None:
        self.chunk_store = chunk_store
        self.embedding_service = embedding_service

    def search(self, query: str, scope_id: str, limit: int) -> list[RetrievalResult]:
        """Embed *query* and return at most *limit* ranked results.

        Raises:
            EmbeddingError, CredentialError, StorageError: On provider or store failure.
        """
        if limit <= 0 or not query.strip():
            return []
        query_vector = self.embedding_service.embed_text(query)
        results = self.chunk_store.search(query_vector, scope_id, limit)
        return results[:limit]

    def retrieve_with_status(self, query: str, scope_id: str, limit: int) -> RetrievalOutcome:
        """Like ``search`` but never raises; failures produce an empty, degraded outcome."""
        try:
            results = self.search(query, scope_id, limit)
        except (EmbeddingError, CredentialError, StorageError, sqlite3.Error) as exc:
            degraded = RetrievalDegraded(f"Retrieval unavailable for scope '{scope_id}': {exc}")
            logger.warning("{}", degraded.message)
            return RetrievalOutcome(degraded=degraded)

        logger.info(
            "Retrieved {} chunks for scope '{}' (limit {})", len(results), scope_id, limit
        )
        return RetrievalOutcome(results=results)

    def retrieve(self, query: str, scope_id: str, limit: int) -> list[RetrievalResult]:
        return self.retrieve_with_status(query, scope_id, limit).results


def format_context(results: list[RetrievalResult]) -> str:
    """Render results as one labeled block each, wrapped in a single outer tag pair.

    Returns an empty string when there are no results.
    """
    if not results:
        return ""
    blocks: list[str] = []
    for ordinal, r in enumerate(results, 1):
        header = f"[{ordinal}] Source: {r.file_name} (chunk {r.chunk_index + 1}/{r.total_chunks})"
        if r.section:
            header += f" | Section: {r.section}"
        header += f" | Relevance: {r.score * 100:.1f}%"
        blocks.append(f"{header}\n{r.content}")
    return f"{CONTEXT_OPEN}\n{BLOCK_DELIMITER.join(blocks)}\n{CONTEXT_CLOSE}"
