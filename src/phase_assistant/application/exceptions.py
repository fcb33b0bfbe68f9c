"""Application-level exceptions.

These are business-logic errors, not HTTP errors. Each carries a stable
``kind`` and a suggested ``status_code``; the presentation layer renders
them as ``{"error": {"kind", "message"}}`` bodies.
"""

from __future__ import annotations


class PhaseAssistantError(Exception):
    """Base class for every error the service reports to a caller."""

    kind = "internal_error"
    status_code = 500

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint

    def to_dict(self) -> dict:
        body = {"kind": self.kind, "message": self.message}
        if self.hint:
            body["hint"] = self.hint
        return body


class ValidationError(PhaseAssistantError):
    """A required field is missing or a value is out of range."""

    kind = "validation_error"
    status_code = 422


class NotFoundError(PhaseAssistantError):
    kind = "not_found"
    status_code = 404


class ExtractionError(PhaseAssistantError):
    """The uploaded file is of an unsupported type or cannot be read."""

    kind = "extraction_error"
    status_code = 415


class ChunkingError(PhaseAssistantError):
    """The splitter output could not be decoded into a chunk list."""

    kind = "chunking_error"
    status_code = 422


class EmbeddingError(PhaseAssistantError):
    kind = "embedding_error"
    status_code = 502


class StorageError(PhaseAssistantError):
    kind = "storage_error"
    status_code = 500


class RetrievalDegraded(PhaseAssistantError):
    """Retrieval could not run; the turn continues without context.

    Logged, never surfaced to the end user.
    """

    kind = "retrieval_degraded"
    status_code = 200


class CredentialError(PhaseAssistantError):
    """Missing or rejected API key / endpoint configuration."""

    kind = "credential_error"
    status_code = 503

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(
            message,
            hint=hint
            or "Set AZURE_OPENAI_API_KEY and AZURE_OPENAI_ENDPOINT in the environment or .env file.",
        )


class ModelError(PhaseAssistantError):
    """The generation call failed for a non-transient reason."""

    kind = "model_error"
    status_code = 502


class ModelUnavailableError(ModelError):
    """The generation call timed out, was rate limited, or could not connect."""

    kind = "model_unavailable"
    status_code = 503
