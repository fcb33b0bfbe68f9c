"""Relational storage for uploaded documents and agent instruction overrides."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from pathlib import Path

from loguru import logger
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine, select

from phase_assistant.domain.infrastructure.tables import AgentConfigRecord, DocumentRecord
from phase_assistant.domain.models import AgentConfig, Document


def _create_engine(db_path: Path) -> Engine:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        connect_args={"check_same_thread": False},
    )


def _fmt(ts: datetime) -> str:
    return ts.strftime("%Y-%m-%d %H:%M:%S")


class DocumentStore:
    """Manages the ``documents`` table."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.engine: Engine | None = None

    def connect(self) -> None:
        """Connect to the database and create the table."""
        self.engine = _create_engine(self.db_path)
        SQLModel.metadata.create_all(self.engine, tables=[DocumentRecord.__table__])
        logger.info("Document store ready at {}", self.db_path)

    def close(self) -> None:
        if self.engine:
            self.engine.dispose()
            self.engine = None

    def create(
        self,
        scope_id: str,
        file_name: str,
        mime_type: str,
        size_bytes: int,
        raw_text: str,
    ) -> Document:
        """Insert a new document record and return it."""
        if not self.engine:
            raise RuntimeError("Database not connected. Call connect() first.")
        record = DocumentRecord(
            id=str(uuid.uuid4()),
            scope_id=scope_id,
            file_name=file_name,
            mime_type=mime_type,
            size_bytes=size_bytes,
            raw_text=raw_text,
            uploaded_at=datetime.now(UTC),
        )
        with Session(self.engine) as session:
            session.add(record)
            session.commit()
            session.refresh(record)
            document = self._to_document(record)
        logger.info("Created document {} ({}) in scope {}", document.id, file_name, scope_id)
        return document

    def get(self, document_id: str) -> Document | None:
        if not self.engine:
            raise RuntimeError("Database not connected. Call connect() first.")
        with Session(self.engine) as session:
            record = session.get(DocumentRecord, document_id)
            return self._to_document(record) if record else None

    def list(self, scope_id: str | None = None) -> list[Document]:
        """Return documents, newest first, optionally restricted to one scope."""
        if not self.engine:
            raise RuntimeError("Database not connected. Call connect() first.")
        statement = select(DocumentRecord)
        if scope_id:
            statement = statement.where(DocumentRecord.scope_id == scope_id)
        statement = statement.order_by(DocumentRecord.uploaded_at.desc())
        with Session(self.engine) as session:
            return [self._to_document(r) for r in session.exec(statement).all()]

    def delete(self, document_id: str) -> bool:
        """Delete the document record. Chunks must already be gone."""
        if not self.engine:
            raise RuntimeError("Database not connected. Call connect() first.")
        with Session(self.engine) as session:
            record = session.get(DocumentRecord, document_id)
            if record is None:
                return False
            session.delete(record)
            session.commit()
        logger.info("Deleted document {}", document_id)
        return True

    @staticmethod
    def _to_document(record: DocumentRecord) -> Document:
        return Document(
            id=record.id,
            scope_id=record.scope_id,
            file_name=record.file_name,
            mime_type=record.mime_type,
            size_bytes=record.size_bytes,
            raw_text=record.raw_text,
            uploaded_at=_fmt(record.uploaded_at),
        )


class AgentConfigStore:
    """Manages the ``agent_configs`` table (instruction overrides per agent)."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.engine: Engine | None = None

    def connect(self) -> None:
        self.engine = _create_engine(self.db_path)
        SQLModel.metadata.create_all(self.engine, tables=[AgentConfigRecord.__table__])

    def close(self) -> None:
        if self.engine:
            self.engine.dispose()
            self.engine = None

    def get(self, agent_key: str) -> AgentConfig | None:
        if not self.engine:
            raise RuntimeError("Database not connected. Call connect() first.")
        with Session(self.engine) as session:
            record = session.get(AgentConfigRecord, agent_key)
            return self._to_config(record) if record else None

    def list(self) -> list[AgentConfig]:
        if not self.engine:
            raise RuntimeError("Database not connected. Call connect() first.")
        with Session(self.engine) as session:
            records = session.exec(select(AgentConfigRecord).order_by(AgentConfigRecord.agent_key))
            return [self._to_config(r) for r in records.all()]

    def upsert(
        self,
        agent_key: str,
        instructions: str | None = None,
        name: str | None = None,
        model: str | None = None,
    ) -> AgentConfig:
        """Insert or update the override for *agent_key*; ``None`` fields are left unchanged."""
        if not self.engine:
            raise RuntimeError("Database not connected. Call connect() first.")
        with Session(self.engine) as session:
            record = session.get(AgentConfigRecord, agent_key)
            if record is None:
                record = AgentConfigRecord(agent_key=agent_key)
            if instructions is not None:
                record.instructions = instructions
            if name is not None:
                record.name = name
            if model is not None:
                record.model = model
            record.updated_at = datetime.now(UTC)
            session.add(record)
            session.commit()
            session.refresh(record)
            config = self._to_config(record)
        logger.info("Stored instructions override for agent '{}'", agent_key)
        return config

    @staticmethod
    def _to_config(record: AgentConfigRecord) -> AgentConfig:
        return AgentConfig(
            agent_key=record.agent_key,
            name=record.name,
            instructions=record.instructions,
            model=record.model,
            updated_at=_fmt(record.updated_at),
        )
