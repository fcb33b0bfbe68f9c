"""Wiring of stores, services and use cases, shared by the API and the CLI."""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from phase_assistant.application.chunker import AgentSplitter, HeadingSplitter, SemanticChunker
from phase_assistant.application.infrastructure.agent import AgentFactory, create_agent_factory
from phase_assistant.application.infrastructure.agent_registry import AgentRegistry
from phase_assistant.application.use_cases.chat import ChatUseCase
from phase_assistant.application.use_cases.ingest import IngestUseCase
from phase_assistant.config import Settings
from phase_assistant.domain.infrastructure.chunk_store import ChunkStore
from phase_assistant.domain.infrastructure.document_store import AgentConfigStore, DocumentStore
from phase_assistant.domain.infrastructure.embedding_service import OpenAIEmbeddingService
from phase_assistant.domain.infrastructure.memory_store import MemoryStore
from phase_assistant.domain.infrastructure.retrieval_service import RetrievalService
from phase_assistant.domain.protocols import IEmbeddingService


@dataclass
class Services:
    settings: Settings
    document_store: DocumentStore
    chunk_store: ChunkStore
    memory_store: MemoryStore
    agent_config_store: AgentConfigStore
    embedding_service: IEmbeddingService
    retrieval_service: RetrievalService
    registry: AgentRegistry
    chunker: SemanticChunker
    ingest_uc: IngestUseCase
    chat_uc: ChatUseCase

    def close(self) -> None:
        self.memory_store.close()
        self.chunk_store.close()
        self.agent_config_store.close()
        self.document_store.close()


def build_services(
    settings: Settings,
    *,
    embedding_service: IEmbeddingService | None = None,
    agent_factory: AgentFactory | None = None,
) -> Services:
    """Connect every store and assemble the use cases."""
    settings.validate_runtime()

    document_store = DocumentStore(db_path=settings.db_path)
    document_store.connect()
    agent_config_store = AgentConfigStore(db_path=settings.db_path)
    agent_config_store.connect()
    chunk_store = ChunkStore(db_path=settings.db_path)
    chunk_store.connect()
    memory_store = MemoryStore(db_path=settings.memory_db_path, last_messages=settings.memory_last_messages)
    memory_store.connect()

    embeddings = embedding_service or OpenAIEmbeddingService(settings)
    retrieval = RetrievalService(chunk_store=chunk_store, embedding_service=embeddings)

    registry = AgentRegistry(
        factory=agent_factory or create_agent_factory(settings),
        config_store=agent_config_store,
    )

    if settings.chunking_strategy == "heading":
        splitter = HeadingSplitter()
    else:
        splitter = AgentSplitter(registry, timeout_seconds=settings.ingest_timeout_seconds)
    chunker = SemanticChunker(splitter)
    logger.info("Chunking strategy: {}", settings.chunking_strategy)

    return Services(
        settings=settings,
        document_store=document_store,
        chunk_store=chunk_store,
        memory_store=memory_store,
        agent_config_store=agent_config_store,
        embedding_service=embeddings,
        retrieval_service=retrieval,
        registry=registry,
        chunker=chunker,
        ingest_uc=IngestUseCase(
            document_store=document_store,
            chunk_store=chunk_store,
            chunker=chunker,
            embedding_service=embeddings,
        ),
        chat_uc=ChatUseCase(
            registry=registry,
            memory_store=memory_store,
            retrieval_service=retrieval,
            retrieval_limit=settings.retrieval_default_limit,
            last_messages=settings.memory_last_messages,
            timeout_seconds=settings.chat_timeout_seconds,
        ),
    )
