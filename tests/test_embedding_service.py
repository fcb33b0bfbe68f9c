"""Tests for the embedding services."""

from __future__ import annotations

import math
from types import SimpleNamespace

import pytest

from phase_assistant.application.exceptions import CredentialError, EmbeddingError
from phase_assistant.domain.infrastructure.embedding_service import (
    MockEmbeddingService,
    OpenAIEmbeddingService,
)

from conftest import make_settings


def _fake_client(vector: list[float]):
    calls = []

    def create(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(data=[SimpleNamespace(embedding=vector)])

    return SimpleNamespace(embeddings=SimpleNamespace(create=create)), calls


class TestOpenAIEmbeddingService:
    def test_missing_credentials(self, tmp_path):
        service = OpenAIEmbeddingService(make_settings(tmp_path, azure_openai_api_key=""))
        with pytest.raises(CredentialError):
            service.embed_text("hello")

    def test_returns_float_list(self, tmp_path):
        settings = make_settings(tmp_path, embedding_dimensions=3)
        service = OpenAIEmbeddingService(settings)
        service._client, calls = _fake_client([1, 0, 0])

        assert service.embed_text("hello") == [1.0, 0.0, 0.0]
        assert calls[0]["model"] == "text-embedding-3-small"
        assert calls[0]["dimensions"] == 3

    def test_dimension_mismatch(self, tmp_path):
        service = OpenAIEmbeddingService(make_settings(tmp_path, embedding_dimensions=4))
        service._client, _ = _fake_client([0.5, 0.5])
        with pytest.raises(EmbeddingError):
            service.embed_text("hello")


class TestMockEmbeddingService:
    def test_deterministic_unit_vectors(self):
        service = MockEmbeddingService(dimension=64)
        first = service.embed_text("payment invoice export")
        assert first == service.embed_text("payment invoice export")
        assert len(first) == 64
        assert math.isclose(sum(x * x for x in first), 1.0)

    def test_empty_text_is_not_a_zero_vector(self):
        vector = MockEmbeddingService(dimension=8).embed_text("")
        assert any(vector)
