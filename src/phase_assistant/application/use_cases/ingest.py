"""Ingestion use case: upload, chunk, embed, store; plus cascade delete.

Extraction and chunking failures abort ingestion of that one file but never
the upload itself: the document record persists with zero chunks and the
error is reported back. Embedding failures are reported per chunk.
"""

from __future__ import annotations

import asyncio
import uuid

from loguru import logger

from phase_assistant.application.chunker import SemanticChunker
from phase_assistant.application.exceptions import (
    ChunkingError,
    CredentialError,
    EmbeddingError,
    ExtractionError,
    ModelError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from phase_assistant.domain.infrastructure.text_extractor import extract_text, guess_mime_type
from phase_assistant.domain.models import (
    Chunk,
    ChunkDraft,
    ChunkFailure,
    Document,
    IngestResult,
)
from phase_assistant.domain.protocols import IChunkStore, IDocumentStore, IEmbeddingService


class IngestUseCase:
    """Turns uploaded files into stored, embedded chunks."""

    def __init__(
        self,
        document_store: IDocumentStore,
        chunk_store: IChunkStore,
        chunker: SemanticChunker,
        embedding_service: IEmbeddingService,
    ) -> None:
        self.document_store = document_store
        self.chunk_store = chunk_store
        self.chunker = chunker
        self.embedding_service = embedding_service

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def register_upload(
        self,
        scope_id: str,
        file_name: str,
        content: bytes,
        mime_type: str | None = None,
    ) -> tuple[Document, str | None]:
        """Extract text and create the document record.

        Returns the document and the extraction error message, if any. The
        record is created even when extraction fails.
        """
        if not scope_id or not scope_id.strip():
            raise ValidationError("scopeId is required")
        if not file_name:
            raise ValidationError("file name is required")

        mime = guess_mime_type(file_name, mime_type)
        error: str | None = None
        try:
            text = extract_text(file_name, content, mime)
        except ExtractionError as exc:
            logger.warning("Extraction failed for {}: {}", file_name, exc)
            text, error = "", str(exc)

        document = self.document_store.create(
            scope_id=scope_id,
            file_name=file_name,
            mime_type=mime,
            size_bytes=len(content),
            raw_text=text,
        )
        return document, error

    async def upload(
        self,
        scope_id: str,
        file_name: str,
        content: bytes,
        mime_type: str | None = None,
    ) -> IngestResult:
        """Register the upload and ingest it in the foreground."""
        document, error = self.register_upload(scope_id, file_name, content, mime_type)
        if error:
            return IngestResult(document_id=document.id, error=error)
        return await self.ingest_document(document)

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def ingest_document(self, document: Document) -> IngestResult:
        """Chunk, embed and store *document*, replacing any earlier chunk set."""
        result = IngestResult(document_id=document.id)

        try:
            drafts = await self.chunker.chunk(document.raw_text, document.file_name)
        except (ChunkingError, ModelError, CredentialError) as exc:
            logger.warning("Chunking failed for {}: {}", document.file_name, exc)
            result.error = str(exc)
            return result

        result.chunk_count = len(drafts)
        if not drafts:
            await asyncio.to_thread(self.chunk_store.replace_document_chunks, document.id, [])
            logger.info("Document {} has no text; nothing to embed", document.id)
            return result

        chunks, failures = await asyncio.to_thread(self._embed_drafts, document, drafts)
        await asyncio.to_thread(self.chunk_store.replace_document_chunks, document.id, chunks)

        result.chunks_created = len(chunks)
        result.failed_chunks = failures
        if failures:
            result.error = (
                f"Embedding failed for {len(failures)} of {len(drafts)} chunks: {failures[0].message}"
            )
        logger.info(
            "Ingested {} ({}): {}/{} chunks stored",
            document.file_name,
            document.id,
            result.chunks_created,
            result.chunk_count,
        )
        return result

    def _embed_drafts(
        self, document: Document, drafts: list[ChunkDraft]
    ) -> tuple[list[Chunk], list[ChunkFailure]]:
        """Embed each draft individually; stored chunks are numbered contiguously."""
        embedded: list[tuple[ChunkDraft, list[float]]] = []
        failures: list[ChunkFailure] = []
        for index, draft in enumerate(drafts):
            text = f"{draft.section}\n{draft.content}" if draft.section else draft.content
            try:
                embedded.append((draft, self.embedding_service.embed_text(text)))
            except (EmbeddingError, CredentialError) as exc:
                failures.append(ChunkFailure(sequence_index=index, section=draft.section, message=str(exc)))

        total = len(embedded)
        chunks = [
            Chunk(
                id=str(uuid.uuid4()),
                document_id=document.id,
                scope_id=document.scope_id,
                file_name=document.file_name,
                sequence_index=i,
                total_chunks=total,
                section=draft.section,
                text=draft.content,
                vector=vector,
            )
            for i, (draft, vector) in enumerate(embedded)
        ]
        return chunks, failures

    async def reingest(self, document_id: str) -> IngestResult:
        """Ingest an existing document again from its stored text."""
        document = self.document_store.get(document_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")
        return await self.ingest_document(document)

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete_document(self, document_id: str) -> bool:
        """Cascade-delete the chunks, then the document record.

        Returns False when the chunk cascade could not be confirmed; the
        document is then left in place so the caller can retry.
        """
        document = self.document_store.get(document_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")

        try:
            self.chunk_store.delete_by_document(document_id)
        except StorageError as exc:
            logger.error("Chunk cascade failed for document {}: {}", document_id, exc)
            return False

        if self.chunk_store.count_by_document(document_id) != 0:
            logger.error("Chunks still present for document {}; keeping the record", document_id)
            return False

        return self.document_store.delete(document_id)
