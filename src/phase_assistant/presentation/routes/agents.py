"""Agent routes: inspect profiles and update stored instructions."""

from __future__ import annotations

from fastapi import APIRouter, Request

from phase_assistant.application.exceptions import ValidationError
from phase_assistant.application.infrastructure.agent_registry import AgentRegistry
from phase_assistant.domain.infrastructure.document_store import AgentConfigStore
from phase_assistant.presentation.schemas import AgentResponse, AgentUpdateRequest

router = APIRouter(prefix="/agents", tags=["agents"])


def _to_response(registry: AgentRegistry, key: str) -> AgentResponse:
    profile = registry.profile(key)
    return AgentResponse(
        key=key,
        name=profile.name,
        instructions=profile.instructions,
        model=profile.model,
        loaded=registry.is_loaded(key),
    )


@router.get("", response_model=list[AgentResponse])
async def list_agents(raw_request: Request):
    registry: AgentRegistry = raw_request.app.state.registry
    return [_to_response(registry, key) for key in registry.keys]


@router.get("/{agent_key}", response_model=AgentResponse)
async def get_agent(agent_key: str, raw_request: Request):
    registry: AgentRegistry = raw_request.app.state.registry
    return _to_response(registry, agent_key)


@router.put("/{agent_key}", response_model=AgentResponse)
async def update_agent(agent_key: str, request: AgentUpdateRequest, raw_request: Request):
    """Store new instructions for an agent and reload its singleton."""
    registry: AgentRegistry = raw_request.app.state.registry
    configs: AgentConfigStore = raw_request.app.state.agent_config_store

    registry.profile(agent_key)  # 404 for unknown keys
    if request.instructions is not None and not request.instructions.strip():
        raise ValidationError("instructions must not be blank")

    configs.upsert(
        agent_key,
        instructions=request.instructions,
        name=request.name,
        model=request.model,
    )
    registry.reload(agent_key)
    return _to_response(registry, agent_key)
