"""Use-case layer: business logic decoupled from the HTTP transport."""

from phase_assistant.application.use_cases.chat import ChatResult, ChatUseCase, TurnFailed
from phase_assistant.application.use_cases.ingest import IngestUseCase

__all__ = ["ChatResult", "ChatUseCase", "IngestUseCase", "TurnFailed"]
