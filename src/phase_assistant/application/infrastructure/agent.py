"""PydanticAI agents for the phase assistants and the chunker."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial

import httpx
import openai
from loguru import logger
from openai import AsyncAzureOpenAI
from pydantic_ai import Agent, RunContext
from pydantic_ai.exceptions import ModelHTTPError, UnexpectedModelBehavior
from pydantic_ai.models import Model
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider

from phase_assistant.application.exceptions import (
    CredentialError,
    ModelError,
    ModelUnavailableError,
    PhaseAssistantError,
)
from phase_assistant.application.infrastructure.prompts import CHUNKER_AGENT_KEY, AgentProfile
from phase_assistant.config import Settings
from phase_assistant.domain.models import WORKING_MEMORY_SLOTS

AgentFactory = Callable[[AgentProfile], Agent]


@dataclass
class TurnDeps:
    """Dependencies injected into every phase-agent run."""

    working_memory: dict[str, str] = field(default_factory=dict)
    working_memory_changed: bool = False


# ---------------------------------------------------------------------------
# Working memory
# ---------------------------------------------------------------------------


def render_working_memory(working_memory: dict[str, str]) -> str:
    """Render the working-memory slots as a short Markdown block."""
    labels = {
        "currentDocument": "Current document being analyzed",
        "keyRequirements": "Key requirements identified",
        "userPreferences": "User preferences",
        "previousTopics": "Previous conversation topics",
    }
    lines = ["# Working Memory"]
    for slot in WORKING_MEMORY_SLOTS:
        lines.append(f"- {labels[slot]} ({slot}): {working_memory.get(slot) or '(empty)'}")
    lines.append(
        "Call `update_working_memory` when one of these facts changes, so the "
        "next turn can rely on it."
    )
    return "\n".join(lines)


def apply_working_memory_update(deps: TurnDeps, slot: str, content: str) -> str:
    """Store *content* in *slot*; unknown slot names are rejected."""
    if slot not in WORKING_MEMORY_SLOTS:
        return f"Unknown slot '{slot}'. Valid slots: {', '.join(WORKING_MEMORY_SLOTS)}."
    deps.working_memory[slot] = content
    deps.working_memory_changed = True
    return f"Working memory slot '{slot}' updated."


# ---------------------------------------------------------------------------
# Agent factory
# ---------------------------------------------------------------------------


def create_model(settings: Settings, deployment: str | None = None) -> OpenAIChatModel:
    """Build the Azure OpenAI chat model, or raise ``CredentialError``."""
    settings.require_chat_credentials()
    client = AsyncAzureOpenAI(
        api_key=settings.azure_openai_api_key,
        azure_endpoint=settings.azure_openai_endpoint,
        api_version=settings.azure_openai_api_version,
    )
    return OpenAIChatModel(
        deployment or settings.azure_openai_chat_deployment,
        provider=OpenAIProvider(openai_client=client),
    )


def build_agent(profile: AgentProfile, model: Model | str) -> Agent:
    """Create a PydanticAI agent for *profile* on top of *model*.

    Phase agents get the working memory as dynamic instructions plus a tool
    to update it. The chunker is a plain text-in/text-out agent.
    """
    if not profile.uses_memory:
        return Agent(model=model, name=profile.name, instructions=profile.instructions, output_type=str)

    agent = Agent(
        model=model,
        name=profile.name,
        instructions=profile.instructions,
        deps_type=TurnDeps,
        output_type=str,
    )

    @agent.instructions
    def working_memory_instructions(ctx: RunContext[TurnDeps]) -> str:
        return render_working_memory(ctx.deps.working_memory)

    @agent.tool
    def update_working_memory(ctx: RunContext[TurnDeps], slot: str, content: str) -> str:
        """Update one slot of the conversation's working memory.

        Args:
            slot: One of currentDocument, keyRequirements, userPreferences,
                  previousTopics.
            content: The new free-text content of the slot (replaces the old one).
        """
        return apply_working_memory_update(ctx.deps, slot, content)

    return agent


def _settings_agent(settings: Settings, profile: AgentProfile) -> Agent:
    deployment = profile.model
    if deployment is None and profile.key == CHUNKER_AGENT_KEY:
        deployment = settings.azure_openai_chunker_deployment
    model = create_model(settings, deployment)
    logger.info("Building agent '{}' on deployment {}", profile.name, model.model_name)
    return build_agent(profile, model)


def create_agent_factory(settings: Settings) -> AgentFactory:
    """Return the factory the ``AgentRegistry`` uses to build agents."""
    return partial(_settings_agent, settings)


# ---------------------------------------------------------------------------
# Failure classification
# ---------------------------------------------------------------------------

_TRANSIENT_STATUS = {408, 409, 429}


def classify_model_failure(exc: BaseException) -> PhaseAssistantError:
    """Map a generation failure onto CredentialError, ModelUnavailableError or ModelError."""
    if isinstance(exc, PhaseAssistantError):
        return exc
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return ModelUnavailableError("The model did not answer before the timeout")
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return CredentialError(f"The model provider rejected the credentials: {exc}")
    if isinstance(exc, ModelHTTPError):
        if exc.status_code in (401, 403):
            return CredentialError(f"The model provider rejected the credentials ({exc.status_code})")
        if exc.status_code in _TRANSIENT_STATUS or exc.status_code >= 500:
            return ModelUnavailableError(f"The model provider is unavailable ({exc.status_code})")
        return ModelError(f"The model request failed ({exc.status_code}): {exc.message}")
    if isinstance(exc, (openai.APIConnectionError, openai.RateLimitError, openai.InternalServerError)):
        return ModelUnavailableError(f"The model provider is unreachable: {exc}")
    if isinstance(exc, httpx.TransportError):
        return ModelUnavailableError(f"The model provider is unreachable: {exc}")
    if isinstance(exc, UnexpectedModelBehavior):
        return ModelError(f"The model returned an unexpected response: {exc.message}")
    if isinstance(exc, openai.OpenAIError) and "api_key" in str(exc):
        return CredentialError(str(exc))
    return ModelError(f"Generation failed: {exc}")
