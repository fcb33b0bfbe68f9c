"""Configuration for the phase assistant using pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from phase_assistant.application.exceptions import CredentialError

_PROJECT_ROOT = Path.cwd()


class Settings(BaseSettings):
    """All service settings, loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Azure OpenAI: Chat model (phase assistants and the chunker)
    # ------------------------------------------------------------------
    azure_openai_api_key: str = ""
    azure_openai_endpoint: str = ""
    azure_openai_api_version: str = "2025-01-01-preview"
    azure_openai_chat_deployment: str = "gpt-4o-mini"
    azure_openai_chunker_deployment: str | None = None

    # ------------------------------------------------------------------
    # Azure OpenAI: Embedding model
    # Falls back to the chat-model values when not set explicitly.
    # ------------------------------------------------------------------
    azure_openai_embedding_endpoint: str | None = None
    azure_openai_embedding_api_version: str | None = None
    azure_openai_embedding_deployment: str = "text-embedding-3-small"
    azure_openai_embedding_api_key: str | None = None
    embedding_dimensions: int = 1536

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------
    db_path: Path = _PROJECT_ROOT / "data" / "phase_assistant.sqlite"
    memory_db_path: Path = _PROJECT_ROOT / "data" / "memory.sqlite"

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------
    chunking_strategy: Literal["agent", "heading"] = "agent"
    ingest_in_background: bool = False
    ingest_timeout_seconds: float = 600.0
    max_upload_bytes: int = 50 * 1024 * 1024

    # ------------------------------------------------------------------
    # Retrieval / memory / chat
    # ------------------------------------------------------------------
    retrieval_default_limit: int = 5
    memory_last_messages: int = 30
    default_resource_id: str = "default-user"
    chat_timeout_seconds: float = 120.0

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = "INFO"
    log_json: bool = False
    log_file: Path | None = None
    log_rotation: str = "10 MB"
    log_retention: int = 5

    # ------------------------------------------------------------------
    # Computed defaults (embedding and chunker fall back to chat values)
    # ------------------------------------------------------------------
    @model_validator(mode="after")
    def _apply_fallbacks(self) -> "Settings":
        if not self.azure_openai_embedding_endpoint:
            self.azure_openai_embedding_endpoint = self.azure_openai_endpoint
        if not self.azure_openai_embedding_api_version:
            self.azure_openai_embedding_api_version = self.azure_openai_api_version
        if not self.azure_openai_embedding_api_key:
            self.azure_openai_embedding_api_key = self.azure_openai_api_key
        if not self.azure_openai_chunker_deployment:
            self.azure_openai_chunker_deployment = self.azure_openai_chat_deployment
        return self

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------
    def validate_runtime(self) -> None:
        """Prepare data directories and check value ranges.

        Credentials are not required here: the service starts without an
        API key and reports a ``CredentialError`` on the first call that
        needs one.
        """
        if self.memory_last_messages < 1:
            raise ValueError("MEMORY_LAST_MESSAGES must be at least 1")
        if self.retrieval_default_limit < 1:
            raise ValueError("RETRIEVAL_DEFAULT_LIMIT must be at least 1")
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.memory_db_path.parent.mkdir(parents=True, exist_ok=True)

    def require_chat_credentials(self) -> None:
        """Raise ``CredentialError`` unless the chat model is configured."""
        if not self.azure_openai_api_key:
            raise CredentialError("AZURE_OPENAI_API_KEY is not set")
        if not self.azure_openai_endpoint:
            raise CredentialError("AZURE_OPENAI_ENDPOINT is not set")

    def require_embedding_credentials(self) -> None:
        """Raise ``CredentialError`` unless the embedding model is configured."""
        if not self.azure_openai_embedding_api_key:
            raise CredentialError("AZURE_OPENAI_EMBEDDING_API_KEY is not set")
        if not self.azure_openai_embedding_endpoint:
            raise CredentialError("AZURE_OPENAI_EMBEDDING_ENDPOINT is not set")


@lru_cache
def get_settings() -> Settings:
    """Return the cached Settings singleton."""
    return Settings()
