"""Chat use case: routes a turn to a phase agent with memory and retrieval.

A turn moves through a fixed sequence of states:

    Received -> RecallingMemory -> RetrievingContext -> ComposingPrompt
             -> Generating -> CommittingMemory -> Done

``Failed`` is reachable from any step. A retrieval failure does not fail
the turn: it continues to ComposingPrompt without context. Turns for the
same thread are processed and committed in submission order.

This module has **no dependency on FastAPI** and can be invoked from any
transport layer (HTTP, CLI, ...).
"""

from __future__ import annotations

import asyncio
import secrets
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger
from pydantic_ai.messages import ModelRequest, ModelResponse, TextPart, UserPromptPart

from phase_assistant.application.exceptions import PhaseAssistantError, ValidationError
from phase_assistant.application.infrastructure.agent import TurnDeps, classify_model_failure
from phase_assistant.application.infrastructure.agent_registry import AgentRegistry
from phase_assistant.application.infrastructure.prompts import PHASE_PREAMBLES, resolve_agent_key
from phase_assistant.application.prompt_builder import compose_turn_prompt
from phase_assistant.domain.infrastructure.retrieval_service import RetrievalService, format_context
from phase_assistant.domain.models import Message
from phase_assistant.domain.protocols import IMemoryStore

DEFAULT_RESOURCE_ID = "default-user"


class TurnState(str, Enum):
    RECEIVED = "received"
    RECALLING_MEMORY = "recalling_memory"
    RETRIEVING_CONTEXT = "retrieving_context"
    COMPOSING_PROMPT = "composing_prompt"
    GENERATING = "generating"
    COMMITTING_MEMORY = "committing_memory"
    DONE = "done"
    FAILED = "failed"


class TurnFailed(Exception):
    """Wraps the classified error of a failed turn together with its state trace."""

    def __init__(self, error: PhaseAssistantError, states: list[TurnState]) -> None:
        super().__init__(error.message)
        self.error = error
        self.states = states


# ---------------------------------------------------------------------------
# Result container
# ---------------------------------------------------------------------------


@dataclass
class ChatResult:
    """Result of a single chat turn."""

    response: str
    thread_id: str
    agent_key: str
    resource_id: str
    context_chunks: int = 0
    retrieval_degraded: bool = False
    latency_ms: int = 0
    states: list[TurnState] = field(default_factory=list)


def mint_thread_id(agent_key: str) -> str:
    """Caller-side thread id derived from the agent key and the session start time."""
    return f"{agent_key}-{int(time.time() * 1000)}-{secrets.token_hex(3)}"


def memory_thread_key(agent_key: str, thread_id: str) -> str:
    """Each agent gets its own namespace, so switching assistants never shares memory."""
    return f"{agent_key}:{thread_id}"


# ---------------------------------------------------------------------------
# Use case
# ---------------------------------------------------------------------------


class ChatUseCase:
    """Agent Router: resolves the phase agent and runs one turn.

    Parameters
    ----------
    registry:
        Lazily-built agent singletons keyed by agent key.
    memory_store:
        Message history and working memory per (thread, resource).
    retrieval_service:
        Scoped similarity search over ingested chunks.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        memory_store: IMemoryStore,
        retrieval_service: RetrievalService,
        *,
        retrieval_limit: int = 5,
        last_messages: int = 30,
        timeout_seconds: float = 120.0,
    ) -> None:
        self.registry = registry
        self.memory_store = memory_store
        self.retrieval_service = retrieval_service
        self.retrieval_limit = retrieval_limit
        self.last_messages = last_messages
        self.timeout_seconds = timeout_seconds
        self._thread_locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._thread_waiters: dict[tuple[str, str], int] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def route(
        self,
        agent_key: str,
        user_message: str,
        attached_document: str | None = None,
        scope_id: str | None = None,
        thread_id: str | None = None,
        resource_id: str | None = None,
    ) -> ChatResult:
        """Run one chat turn and return the raw response text with metadata.

        Raises:
            ValidationError: If *user_message* is empty.
            TurnFailed: If any step after validation fails; ``error`` holds the
                classified CredentialError, ModelUnavailableError, ModelError
                or StorageError.
        """
        if not user_message or not user_message.strip():
            raise ValidationError("message is required")

        key = resolve_agent_key(agent_key)
        if key != (agent_key or "").strip().lower():
            logger.info("Unknown agent '{}'; routing to '{}'", agent_key, key)
        thread_id = thread_id or mint_thread_id(key)
        resource_id = resource_id or DEFAULT_RESOURCE_ID
        scope_id = scope_id or key
        memory_key = memory_thread_key(key, thread_id)

        async with self._thread_lock(memory_key, resource_id):
            return await self._run_turn(
                key, user_message, attached_document, scope_id, thread_id, resource_id, memory_key
            )

    # ------------------------------------------------------------------
    # Turn pipeline
    # ------------------------------------------------------------------

    async def _run_turn(
        self,
        key: str,
        user_message: str,
        attached_document: str | None,
        scope_id: str,
        thread_id: str,
        resource_id: str,
        memory_key: str,
    ) -> ChatResult:
        states = [TurnState.RECEIVED]
        t0 = time.perf_counter()

        try:
            instance = await self.registry.get(key)

            states.append(TurnState.RECALLING_MEMORY)
            recall = self.memory_store.append_and_recall(
                memory_key, resource_id, key, user_message, self.last_messages
            )

            states.append(TurnState.RETRIEVING_CONTEXT)
            outcome = await asyncio.to_thread(
                self.retrieval_service.retrieve_with_status, user_message, scope_id, self.retrieval_limit
            )

            states.append(TurnState.COMPOSING_PROMPT)
            prompt = compose_turn_prompt(
                user_message,
                attached_document=attached_document,
                retrieved_context=format_context(outcome.results),
                preamble=PHASE_PREAMBLES.get(key),
            ).build()

            states.append(TurnState.GENERATING)
            deps = TurnDeps(working_memory=dict(recall.working_memory))
            history = self._build_history(recall.recalled_messages)
            result = await asyncio.wait_for(
                instance.agent.run(
                    prompt,
                    deps=deps,
                    message_history=history if history else None,
                ),
                timeout=self.timeout_seconds,
            )
            response = result.output

            states.append(TurnState.COMMITTING_MEMORY)
            self.memory_store.commit(
                memory_key,
                resource_id,
                response,
                deps.working_memory if deps.working_memory_changed else None,
            )
        except Exception as exc:
            error = classify_model_failure(exc)
            states.append(TurnState.FAILED)
            logger.warning(
                "Chat turn failed | agent={} thread={} state={} kind={} | {}",
                key,
                thread_id,
                states[-2].value,
                error.kind,
                error.message,
            )
            raise TurnFailed(error, states) from exc

        states.append(TurnState.DONE)
        latency = int((time.perf_counter() - t0) * 1000)
        logger.info(
            "Chat completed | agent={} thread={} latency={}ms | context={} degraded={}",
            key,
            thread_id,
            latency,
            len(outcome.results),
            outcome.degraded is not None,
        )
        return ChatResult(
            response=response,
            thread_id=thread_id,
            agent_key=key,
            resource_id=resource_id,
            context_chunks=len(outcome.results),
            retrieval_degraded=outcome.degraded is not None,
            latency_ms=latency,
            states=states,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _thread_lock(self, memory_key: str, resource_id: str) -> AsyncIterator[None]:
        """Serialize turns of one thread; the entry is dropped once nobody holds or awaits it."""
        key = (memory_key, resource_id)
        lock = self._thread_locks.setdefault(key, asyncio.Lock())
        self._thread_waiters[key] = self._thread_waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._thread_waiters[key] -= 1
            if not self._thread_waiters[key]:
                del self._thread_waiters[key]
                del self._thread_locks[key]

    @staticmethod
    def _build_history(prior_messages: list[Message]) -> list[ModelRequest | ModelResponse]:
        """Convert recalled messages into PydanticAI message-history objects."""
        history: list[ModelRequest | ModelResponse] = []
        for msg in prior_messages:
            if msg.role == "user":
                history.append(ModelRequest(parts=[UserPromptPart(content=msg.content)]))
            else:
                history.append(ModelResponse(parts=[TextPart(content=msg.content)]))
        return history
