"""Process-wide registry of agent singletons keyed by agent key.

Agents are built lazily on first use. Construction is single-flight per key:
concurrent first calls for the same key wait for one build instead of
racing to create duplicates. ``reload`` evicts an entry so the next access
rebuilds it from the current stored instructions.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, replace

from loguru import logger
from pydantic_ai import Agent

from phase_assistant.application.exceptions import NotFoundError
from phase_assistant.application.infrastructure.agent import AgentFactory
from phase_assistant.application.infrastructure.prompts import DEFAULT_PROFILES, AgentProfile
from phase_assistant.domain.protocols import IAgentConfigStore


@dataclass
class AgentInstance:
    key: str
    name: str
    instructions: str
    model: str | None
    agent: Agent


class AgentRegistry:
    """Lazily builds and caches one ``AgentInstance`` per agent key."""

    def __init__(
        self,
        factory: AgentFactory,
        config_store: IAgentConfigStore | None = None,
        profiles: dict[str, AgentProfile] | None = None,
    ) -> None:
        self._factory = factory
        self._config_store = config_store
        self._profiles = dict(profiles or DEFAULT_PROFILES)
        self._instances: dict[str, AgentInstance] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    @property
    def keys(self) -> list[str]:
        return list(self._profiles)

    def profile(self, agent_key: str) -> AgentProfile:
        """Return the built-in profile for *agent_key* merged with any stored override."""
        base = self._profiles.get(agent_key)
        if base is None:
            raise NotFoundError(f"Unknown agent '{agent_key}'")
        if self._config_store is None:
            return base
        override = self._config_store.get(agent_key)
        if override is None:
            return base
        return replace(
            base,
            name=override.name or base.name,
            instructions=override.instructions or base.instructions,
            model=override.model or base.model,
        )

    def is_loaded(self, agent_key: str) -> bool:
        return agent_key in self._instances

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    async def get(self, agent_key: str) -> AgentInstance:
        """Return the singleton for *agent_key*, building it on first use."""
        instance = self._instances.get(agent_key)
        if instance is not None:
            return instance

        lock = self._locks.setdefault(agent_key, asyncio.Lock())
        async with lock:
            instance = self._instances.get(agent_key)
            if instance is not None:
                return instance

            profile = self.profile(agent_key)
            agent = self._factory(profile)
            if inspect.isawaitable(agent):
                agent = await agent

            instance = AgentInstance(
                key=agent_key,
                name=profile.name,
                instructions=profile.instructions,
                model=profile.model,
                agent=agent,
            )
            self._instances[agent_key] = instance
            logger.info("Agent '{}' loaded ({})", agent_key, profile.name)
            return instance

    def reload(self, agent_key: str) -> None:
        """Drop the cached instance; the next ``get`` rebuilds it."""
        if self._instances.pop(agent_key, None) is not None:
            logger.info("Agent '{}' evicted for reload", agent_key)

    def reload_all(self) -> None:
        for key in list(self._instances):
            self.reload(key)
