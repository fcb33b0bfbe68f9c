"""Tests for settings loading and fallbacks."""

from __future__ import annotations

import pytest

from phase_assistant.application.exceptions import CredentialError
from phase_assistant.config import Settings

from conftest import make_settings


class TestFallbacks:
    def test_embedding_values_fall_back_to_chat(self, tmp_path):
        settings = make_settings(tmp_path)
        assert settings.azure_openai_embedding_api_key == "test-key"
        assert settings.azure_openai_embedding_endpoint == "https://test.openai.azure.com/"
        assert settings.azure_openai_embedding_api_version == "2024-02-01"
        assert settings.azure_openai_chunker_deployment == "gpt-4o-mini"

    def test_explicit_values_win(self, tmp_path):
        settings = make_settings(
            tmp_path,
            azure_openai_embedding_api_key="embed-key",
            azure_openai_chunker_deployment="gpt-4o",
        )
        assert settings.azure_openai_embedding_api_key == "embed-key"
        assert settings.azure_openai_chunker_deployment == "gpt-4o"

    def test_environment_variables(self, monkeypatch):
        monkeypatch.setenv("AZURE_OPENAI_API_KEY", "env-key")
        monkeypatch.setenv("RETRIEVAL_DEFAULT_LIMIT", "7")
        monkeypatch.setenv("CHUNKING_STRATEGY", "heading")
        settings = Settings(_env_file=None)
        assert settings.azure_openai_api_key == "env-key"
        assert settings.retrieval_default_limit == 7
        assert settings.chunking_strategy == "heading"


class TestValidation:
    def test_validate_runtime_creates_directories(self, tmp_path):
        settings = make_settings(
            tmp_path,
            db_path=tmp_path / "a" / "db.sqlite",
            memory_db_path=tmp_path / "b" / "memory.sqlite",
        )
        settings.validate_runtime()
        assert (tmp_path / "a").is_dir()
        assert (tmp_path / "b").is_dir()

    def test_validate_runtime_rejects_bad_ranges(self, tmp_path):
        with pytest.raises(ValueError):
            make_settings(tmp_path, memory_last_messages=0).validate_runtime()

    def test_missing_credentials(self, tmp_path):
        settings = make_settings(tmp_path, azure_openai_api_key="", azure_openai_endpoint="")
        with pytest.raises(CredentialError):
            settings.require_chat_credentials()
        with pytest.raises(CredentialError):
            settings.require_embedding_credentials()
