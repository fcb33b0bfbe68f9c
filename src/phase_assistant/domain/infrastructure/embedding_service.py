"""Embedding services: Azure OpenAI implementation and an offline mock."""

from __future__ import annotations

import hashlib
import math

import openai
from loguru import logger
from openai import AzureOpenAI

from phase_assistant.application.exceptions import CredentialError, EmbeddingError
from phase_assistant.config import Settings


class OpenAIEmbeddingService:
    """Azure OpenAI implementation of the embedding service.

    The client is created on first use so the service can start without
    credentials; a missing key surfaces as ``CredentialError`` at call time.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.deployment_name = settings.azure_openai_embedding_deployment
        self._dimensions = settings.embedding_dimensions
        self._client: AzureOpenAI | None = None

    @property
    def client(self) -> AzureOpenAI:
        if self._client is None:
            self.settings.require_embedding_credentials()
            self._client = AzureOpenAI(
                api_key=self.settings.azure_openai_embedding_api_key,
                azure_endpoint=self.settings.azure_openai_embedding_endpoint,
                api_version=self.settings.azure_openai_embedding_api_version,
            )
        return self._client

    def _to_float_list(self, embedding: list[float]) -> list[float]:
        """Ensure embedding is a plain list of Python floats (for sqlite-vec serialize_float32)."""
        return [float(x) for x in embedding]

    def embed_text(self, text: str) -> list[float]:
        """Generate the embedding for a single text."""
        try:
            response = self.client.embeddings.create(
                input=text,
                model=self.deployment_name,
                dimensions=self._dimensions,
            )
        except (openai.AuthenticationError, openai.PermissionDeniedError) as exc:
            raise CredentialError(f"Embedding provider rejected the credentials: {exc}") from exc
        except openai.OpenAIError as exc:
            logger.warning("Embedding request failed: {}", exc)
            raise EmbeddingError(f"Embedding request failed: {exc}") from exc

        vector = self._to_float_list(response.data[0].embedding)
        if len(vector) != self._dimensions:
            raise EmbeddingError(
                f"Embedding has {len(vector)} dimensions, expected {self._dimensions}"
            )
        return vector

    @property
    def dimension(self) -> int:
        return self._dimensions


class MockEmbeddingService:
    """Deterministic offline embeddings (no API calls).

    Each text maps to a unit vector derived from the SHA-256 of its words,
    so identical texts get identical vectors and texts sharing words score
    higher than unrelated ones.
    """

    def __init__(self, dimension: int = 1536) -> None:
        self._dimension = dimension

    def embed_text(self, text: str) -> list[float]:
        vector = [0.0] * self._dimension
        for word in text.lower().split():
            digest = hashlib.sha256(word.encode("utf-8")).digest()
            index = int.from_bytes(digest[:4], "big") % self._dimension
            vector[index] += 1.0 if digest[4] % 2 == 0 else -1.0
        norm = math.sqrt(sum(x * x for x in vector))
        if norm == 0:
            vector[0] = 1.0
            return vector
        return [x / norm for x in vector]

    @property
    def dimension(self) -> int:
        return self._dimension
