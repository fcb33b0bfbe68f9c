"""Tests for agent construction, working memory and failure classification."""

from __future__ import annotations

import asyncio

import httpx
import openai
import pytest
from pydantic_ai.exceptions import ModelHTTPError, UnexpectedModelBehavior
from pydantic_ai.models.test import TestModel

from phase_assistant.application.exceptions import (
    ChunkingError,
    CredentialError,
    ModelError,
    ModelUnavailableError,
)
from phase_assistant.application.infrastructure.agent import (
    TurnDeps,
    apply_working_memory_update,
    build_agent,
    classify_model_failure,
    create_model,
    render_working_memory,
)
from phase_assistant.application.infrastructure.prompts import (
    DEFAULT_PROFILES,
    PHASE_AGENT_KEYS,
    PHASE_PREAMBLES,
    QUICK_AGENT_KEY,
    resolve_agent_key,
)

from conftest import make_settings

_REQUEST = httpx.Request("POST", "https://test.openai.azure.com/openai/deployments/x/chat/completions")


def _response(status: int) -> httpx.Response:
    return httpx.Response(status, request=_REQUEST)


class TestProfiles:
    def test_every_phase_agent_has_profile_and_preamble(self):
        for key in PHASE_AGENT_KEYS:
            assert DEFAULT_PROFILES[key].instructions
            assert key in PHASE_PREAMBLES

    def test_chunker_does_not_use_memory(self):
        assert DEFAULT_PROFILES["chunker"].uses_memory is False

    @pytest.mark.parametrize(
        ("requested", "expected"),
        [("discovery", "discovery"), (" Analysis ", "analysis"), ("unknown", QUICK_AGENT_KEY), (None, QUICK_AGENT_KEY)],
    )
    def test_resolve_agent_key(self, requested, expected):
        assert resolve_agent_key(requested) == expected


class TestWorkingMemory:
    def test_render_lists_every_slot(self):
        text = render_working_memory({"currentDocument": "brief.md"})
        assert "currentDocument): brief.md" in text
        assert "keyRequirements): (empty)" in text

    def test_update_known_slot(self):
        deps = TurnDeps()
        message = apply_working_memory_update(deps, "keyRequirements", "SSO, audit log")
        assert deps.working_memory == {"keyRequirements": "SSO, audit log"}
        assert deps.working_memory_changed is True
        assert "updated" in message

    def test_update_unknown_slot_is_rejected(self):
        deps = TurnDeps()
        message = apply_working_memory_update(deps, "mood", "happy")
        assert deps.working_memory == {}
        assert deps.working_memory_changed is False
        assert "Unknown slot" in message


class TestBuildAgent:
    async def test_phase_agent_runs_with_working_memory_instructions(self):
        agent = build_agent(DEFAULT_PROFILES["discovery"], TestModel(call_tools=[], custom_output_text="FR/NFR"))

        result = await agent.run("Describe the portal", deps=TurnDeps(working_memory={"currentDocument": "brief.md"}))

        assert result.output == "FR/NFR"
        instructions = result.all_messages()[0].instructions
        assert "Business Analyst" in instructions
        assert "brief.md" in instructions

    async def test_chunker_agent_is_plain(self):
        agent = build_agent(DEFAULT_PROFILES["chunker"], TestModel(custom_output_text="[]"))
        result = await agent.run("# A\nx")
        assert result.output == "[]"

    def test_create_model_requires_credentials(self, tmp_path):
        settings = make_settings(tmp_path, azure_openai_api_key="")
        with pytest.raises(CredentialError):
            create_model(settings)


class TestClassifyModelFailure:
    def test_passes_through_known_errors(self):
        error = ChunkingError("bad")
        assert classify_model_failure(error) is error

    def test_timeout(self):
        assert isinstance(classify_model_failure(asyncio.TimeoutError()), ModelUnavailableError)

    def test_openai_authentication_error(self):
        exc = openai.AuthenticationError("bad key", response=_response(401), body=None)
        assert isinstance(classify_model_failure(exc), CredentialError)

    @pytest.mark.parametrize(("status", "expected"), [(401, CredentialError), (403, CredentialError)])
    def test_http_credential_statuses(self, status, expected):
        assert type(classify_model_failure(ModelHTTPError(status, "gpt-4o-mini"))) is expected

    @pytest.mark.parametrize("status", [408, 429, 500, 503])
    def test_http_transient_statuses(self, status):
        assert isinstance(classify_model_failure(ModelHTTPError(status, "gpt-4o-mini")), ModelUnavailableError)

    def test_http_client_error_is_model_error(self):
        error = classify_model_failure(ModelHTTPError(400, "gpt-4o-mini", body="content filter"))
        assert type(error) is ModelError

    def test_connection_error(self):
        exc = openai.APIConnectionError(request=_REQUEST)
        assert isinstance(classify_model_failure(exc), ModelUnavailableError)

    def test_transport_error(self):
        assert isinstance(classify_model_failure(httpx.ConnectError("refused")), ModelUnavailableError)

    def test_unexpected_behavior(self):
        error = classify_model_failure(UnexpectedModelBehavior("empty response"))
        assert type(error) is ModelError

    def test_anything_else(self):
        error = classify_model_failure(RuntimeError("boom"))
        assert type(error) is ModelError
        assert "boom" in error.message
