"""Command-line interface for ingestion, search and serving."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click

from phase_assistant.application.exceptions import PhaseAssistantError
from phase_assistant.bootstrap import Services, build_services
from phase_assistant.config import get_settings
from phase_assistant.domain.infrastructure.embedding_service import MockEmbeddingService
from phase_assistant.domain.infrastructure.retrieval_service import format_context
from phase_assistant.logging_config import setup_logging


def _open_services(mock_embeddings: bool, chunking: str | None = None) -> Services:
    settings = get_settings()
    if chunking:
        settings = settings.model_copy(update={"chunking_strategy": chunking})
    setup_logging(settings)
    embedding_service = MockEmbeddingService(settings.embedding_dimensions) if mock_embeddings else None
    return build_services(settings, embedding_service=embedding_service)


@click.group()
def cli():
    """Phase assistant: document ingestion, retrieval and the chat API."""
    pass


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--scope", "scope_id", required=True, help="Scope (phase) to ingest into, e.g. discovery.")
@click.option(
    "--chunking",
    type=click.Choice(["agent", "heading"]),
    default=None,
    help="Override CHUNKING_STRATEGY for this run.",
)
@click.option(
    "--mock-embeddings",
    is_flag=True,
    help="Use mock embeddings (no Azure API). Use for local runs without API keys.",
)
def ingest(path: Path, scope_id: str, chunking: str | None, mock_embeddings: bool):
    """Upload and ingest a .txt, .md or .docx file."""
    services = _open_services(mock_embeddings, chunking)
    try:
        result = asyncio.run(services.ingest_uc.upload(scope_id, path.name, path.read_bytes()))
        click.echo(f"Document: {result.document_id}")
        click.echo(f"Chunks created: {result.chunks_created}/{result.chunk_count}")
        if result.error:
            click.echo(f"Warning: {result.error}", err=True)
    except PhaseAssistantError as e:
        click.echo(f"✗ {e.kind}: {e.message}", err=True)
        sys.exit(1)
    finally:
        services.close()


@cli.command()
@click.argument("document_id")
def delete(document_id: str):
    """Delete a document and all of its chunks."""
    services = _open_services(mock_embeddings=True)
    try:
        if services.ingest_uc.delete_document(document_id):
            click.echo(f"✓ Deleted {document_id}")
        else:
            click.echo(f"✗ Chunks for {document_id} could not be removed; retry", err=True)
            sys.exit(1)
    except PhaseAssistantError as e:
        click.echo(f"✗ {e.kind}: {e.message}", err=True)
        sys.exit(1)
    finally:
        services.close()


@cli.command()
@click.argument("query")
@click.option("--scope", "scope_id", required=True, help="Scope (phase) to search.")
@click.option("--limit", default=5, show_default=True, type=click.IntRange(min=1))
@click.option("--context", "as_context", is_flag=True, help="Print the formatted prompt context block.")
@click.option("--mock-embeddings", is_flag=True, help="Use mock embeddings (no Azure API).")
def search(query: str, scope_id: str, limit: int, as_context: bool, mock_embeddings: bool):
    """Rank stored chunks of a scope against QUERY."""
    services = _open_services(mock_embeddings)
    try:
        outcome = services.retrieval_service.retrieve_with_status(query, scope_id, limit)
        if outcome.degraded:
            click.echo(f"⚠ {outcome.degraded.message}", err=True)
        if as_context:
            click.echo(format_context(outcome.results))
            return
        for i, r in enumerate(outcome.results, 1):
            click.echo(
                f"{i}. [{r.score:.3f}] {r.file_name} ({r.chunk_index + 1}/{r.total_chunks}) {r.section}"
            )
    finally:
        services.close()


@cli.command()
def stats():
    """Show chunk counts per scope."""
    services = _open_services(mock_embeddings=True)
    try:
        s = services.chunk_store.get_stats()
        click.echo(f"Total chunks: {s['total_chunks']}")
        click.echo(f"Total documents: {s['total_documents']}")
        for scope, count in s["by_scope"].items():
            click.echo(f"  - {scope}: {count}")
    finally:
        services.close()


@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
@click.option("--reload", is_flag=True)
def serve(host: str, port: int, reload: bool):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run("phase_assistant.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    cli()
