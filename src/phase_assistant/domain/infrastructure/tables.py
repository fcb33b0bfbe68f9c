"""SQLModel type definitions for database tables."""

from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(UTC)


class DocumentRecord(SQLModel, table=True):
    """Uploaded document table model."""

    __tablename__ = "documents"

    id: str = Field(primary_key=True)
    scope_id: str = Field(index=True)
    file_name: str
    mime_type: str
    size_bytes: int = Field(default=0)
    raw_text: str = ""
    uploaded_at: datetime = Field(default_factory=_utcnow)


class AgentConfigRecord(SQLModel, table=True):
    """Stored override of a built-in agent profile."""

    __tablename__ = "agent_configs"

    agent_key: str = Field(primary_key=True)
    name: str | None = None
    instructions: str | None = None
    model: str | None = None
    updated_at: datetime = Field(default_factory=_utcnow)
