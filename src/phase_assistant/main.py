"""FastAPI service for the phase assistants.

This module is a thin **presentation layer**.  All business logic lives in
the ``application`` package so it can be tested and reused independently of
any HTTP framework.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from phase_assistant.application.infrastructure.agent import AgentFactory
from phase_assistant.bootstrap import build_services
from phase_assistant.config import Settings, get_settings
from phase_assistant.domain.protocols import IEmbeddingService
from phase_assistant.logging_config import setup_logging
from phase_assistant.presentation.errors import register_exception_handlers
from phase_assistant.presentation.routes.agents import router as agents_router
from phase_assistant.presentation.routes.chat import router as chat_router
from phase_assistant.presentation.routes.documents import router as documents_router
from phase_assistant.presentation.routes.retrieval import router as retrieval_router


def create_app(
    settings: Settings | None = None,
    *,
    embedding_service: IEmbeddingService | None = None,
    agent_factory: AgentFactory | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Optional Settings override (defaults to get_settings()).
        embedding_service: Optional embedding provider override.
        agent_factory: Optional agent factory override used by the registry.
    """

    # ---------------------------------------------------------------------------
    # Lifespan: initialise shared resources once at startup
    # ---------------------------------------------------------------------------

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Set up and tear down services around the application lifetime."""
        s = settings or get_settings()
        setup_logging(s)

        services = build_services(s, embedding_service=embedding_service, agent_factory=agent_factory)

        app.state.settings = s
        app.state.services = services
        app.state.document_store = services.document_store
        app.state.chunk_store = services.chunk_store
        app.state.memory_store = services.memory_store
        app.state.agent_config_store = services.agent_config_store
        app.state.retrieval_service = services.retrieval_service
        app.state.registry = services.registry
        app.state.chunker = services.chunker
        app.state.ingest_uc = services.ingest_uc
        app.state.chat_uc = services.chat_uc

        logger.info("Application startup complete")
        yield

        services.close()
        logger.info("Application shutdown complete")

    # ---------------------------------------------------------------------------
    # Application
    # ---------------------------------------------------------------------------

    app = FastAPI(
        title="Phase Assistant",
        description="Phase-specific business analysis assistants grounded in uploaded documents.",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(chat_router)
    app.include_router(documents_router)
    app.include_router(retrieval_router)
    app.include_router(agents_router)
    return app


app = create_app()


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("phase_assistant.main:app", host="0.0.0.0", port=8000, reload=True)
