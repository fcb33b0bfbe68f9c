"""Document routes: upload, listing, cascade delete, and chunk preview."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, File, Form, Query, Request, UploadFile
from loguru import logger

from phase_assistant.application.chunker import SemanticChunker
from phase_assistant.application.exceptions import ValidationError
from phase_assistant.application.use_cases.ingest import IngestUseCase
from phase_assistant.domain.infrastructure.chunk_store import ChunkStore
from phase_assistant.domain.infrastructure.document_store import DocumentStore
from phase_assistant.presentation.schemas import (
    ChunkFailureResponse,
    ChunkSection,
    ChunkTextRequest,
    ChunkTextResponse,
    DeleteResponse,
    DocumentResponse,
    ErrorResponse,
    UploadResponse,
)

router = APIRouter(tags=["documents"])


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------


@router.post("/upload", response_model=UploadResponse, responses={422: {"model": ErrorResponse}})
async def upload(
    raw_request: Request,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    scope_id: str = Form(..., alias="scopeId"),
    file_name: str | None = Form(default=None, alias="fileName"),
):
    """Upload a .txt/.md/.docx file into a scope and ingest it for retrieval."""
    settings = raw_request.app.state.settings
    uc: IngestUseCase = raw_request.app.state.ingest_uc

    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        raise ValidationError(
            f"File too large: {len(content)} bytes (maximum {settings.max_upload_bytes})"
        )
    name = file_name or file.filename or "upload.txt"

    logger.info("POST /upload | scope={} file={} bytes={}", scope_id, name, len(content))

    document, error = uc.register_upload(scope_id, name, content, file.content_type)
    if error:
        return UploadResponse(document_id=document.id, chunks_created=0, rag_processed=False, error=error)

    if settings.ingest_in_background:
        background_tasks.add_task(uc.ingest_document, document)
        return UploadResponse(document_id=document.id, chunks_created=0, rag_processed=False)

    result = await uc.ingest_document(document)
    return UploadResponse(
        document_id=result.document_id,
        chunks_created=result.chunks_created,
        rag_processed=result.rag_processed,
        error=result.error,
        failed_chunks=[
            ChunkFailureResponse(sequence_index=f.sequence_index, section=f.section, message=f.message)
            for f in result.failed_chunks
        ],
    )


# ---------------------------------------------------------------------------
# Listing / deletion
# ---------------------------------------------------------------------------


@router.get("/documents", response_model=list[DocumentResponse])
async def list_documents(raw_request: Request, scope_id: str | None = Query(default=None, alias="scopeId")):
    """List uploaded documents, newest first."""
    documents: DocumentStore = raw_request.app.state.document_store
    chunks: ChunkStore = raw_request.app.state.chunk_store
    return [
        DocumentResponse(
            id=d.id,
            scope_id=d.scope_id,
            file_name=d.file_name,
            mime_type=d.mime_type,
            size_bytes=d.size_bytes,
            uploaded_at=d.uploaded_at,
            chunk_count=chunks.count_by_document(d.id),
        )
        for d in documents.list(scope_id)
    ]


@router.delete("/document", response_model=DeleteResponse)
async def delete_document(raw_request: Request, document_id: str = Query(..., alias="documentId")):
    """Delete a document; its chunks are removed first and the call blocks until confirmed."""
    uc: IngestUseCase = raw_request.app.state.ingest_uc
    success = uc.delete_document(document_id)
    logger.info("DELETE /document | id={} success={}", document_id, success)
    return DeleteResponse(success=success)


# ---------------------------------------------------------------------------
# Chunk preview
# ---------------------------------------------------------------------------


@router.post("/chunk", response_model=ChunkTextResponse)
async def chunk_text(request: ChunkTextRequest, raw_request: Request):
    """Chunk raw text and return the sections without storing anything."""
    chunker: SemanticChunker = raw_request.app.state.chunker
    drafts = await chunker.chunk(request.content, request.file_name)
    return ChunkTextResponse(data=[ChunkSection(section=d.section, content=d.content) for d in drafts])
