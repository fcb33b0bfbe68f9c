"""Conversation memory persistence.

Stores bounded message history and working memory per (thread, resource)
in a dedicated SQLite database, separate from the document/chunk store.
Threads are created implicitly on first use and never expire here.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, datetime
from pathlib import Path

from loguru import logger

from phase_assistant.application.exceptions import StorageError
from phase_assistant.domain.models import (
    ConversationThread,
    MemoryRecall,
    Message,
    normalize_working_memory,
)

DEFAULT_LAST_MESSAGES = 30

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS threads (
    thread_id TEXT NOT NULL,
    resource_id TEXT NOT NULL,
    agent_key TEXT NOT NULL,
    working_memory TEXT NOT NULL DEFAULT '{}',
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (thread_id, resource_id)
);

CREATE TABLE IF NOT EXISTS messages (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    thread_id TEXT NOT NULL,
    resource_id TEXT NOT NULL,
    role TEXT NOT NULL CHECK(role IN ('user', 'assistant')),
    content TEXT NOT NULL,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (thread_id, resource_id) REFERENCES threads(thread_id, resource_id)
        ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_messages_thread ON messages(thread_id, resource_id, seq);
"""


def _utcnow() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")


class MemoryStore:
    """Message history plus working memory for each (thread, resource) pair."""

    def __init__(self, db_path: Path, last_messages: int = DEFAULT_LAST_MESSAGES) -> None:
        self.db_path = db_path
        self.last_messages = last_messages
        self.conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Open (or create) the database and ensure the schema exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self.conn.executescript(_SCHEMA_SQL)
        self.conn.commit()
        logger.info("Memory DB ready at {}", self.db_path)

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None

    # ------------------------------------------------------------------
    # Turn lifecycle
    # ------------------------------------------------------------------

    def append_and_recall(
        self,
        thread_id: str,
        resource_id: str,
        agent_key: str,
        user_message: str,
        last_messages: int | None = None,
    ) -> MemoryRecall:
        """Recall the thread, then append the new user message.

        Returns at most the last N messages that precede the new one plus
        the working-memory snapshot. The thread is created on first use.
        """
        assert self.conn
        limit = self.last_messages if last_messages is None else last_messages
        try:
            with self.conn:
                thread = self._ensure_thread(thread_id, resource_id, agent_key)
                recalled = self._recent_messages(thread_id, resource_id, limit) if limit > 0 else []
                self._insert_message(thread_id, resource_id, "user", user_message)
        except sqlite3.Error as exc:
            raise StorageError(f"Could not recall thread {thread_id}: {exc}") from exc
        return MemoryRecall(recalled_messages=recalled, working_memory=thread.working_memory)

    def commit(
        self,
        thread_id: str,
        resource_id: str,
        assistant_message: str,
        working_memory: dict[str, str] | None = None,
    ) -> None:
        """Append the assistant reply and persist any working-memory update."""
        assert self.conn
        try:
            with self.conn:
                self._insert_message(thread_id, resource_id, "assistant", assistant_message)
                if working_memory is not None:
                    current = self._load_working_memory(thread_id, resource_id)
                    current.update(normalize_working_memory(working_memory))
                    self.conn.execute(
                        "UPDATE threads SET working_memory = ?, updated_at = ? "
                        "WHERE thread_id = ? AND resource_id = ?",
                        (json.dumps(current), _utcnow(), thread_id, resource_id),
                    )
                else:
                    self._touch(thread_id, resource_id)
        except sqlite3.Error as exc:
            raise StorageError(f"Could not commit turn for thread {thread_id}: {exc}") from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_thread(self, thread_id: str, resource_id: str) -> ConversationThread | None:
        assert self.conn
        row = self.conn.execute(
            "SELECT * FROM threads WHERE thread_id = ? AND resource_id = ?",
            (thread_id, resource_id),
        ).fetchone()
        return self._row_to_thread(row) if row else None

    def get_messages(self, thread_id: str, resource_id: str) -> list[Message]:
        """Return every message of the thread in submission order."""
        assert self.conn
        rows = self.conn.execute(
            "SELECT role, content, created_at FROM messages "
            "WHERE thread_id = ? AND resource_id = ? ORDER BY seq ASC",
            (thread_id, resource_id),
        ).fetchall()
        return [self._row_to_message(row) for row in rows]

    def clear_thread(self, thread_id: str, resource_id: str) -> bool:
        """Remove a thread and its messages. Used by the surrounding system only."""
        assert self.conn
        with self.conn:
            self.conn.execute(
                "DELETE FROM messages WHERE thread_id = ? AND resource_id = ?",
                (thread_id, resource_id),
            )
            deleted = self.conn.execute(
                "DELETE FROM threads WHERE thread_id = ? AND resource_id = ?",
                (thread_id, resource_id),
            ).rowcount
        return deleted > 0

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _ensure_thread(self, thread_id: str, resource_id: str, agent_key: str) -> ConversationThread:
        assert self.conn
        thread = self.get_thread(thread_id, resource_id)
        if thread:
            return thread
        now = _utcnow()
        self.conn.execute(
            "INSERT INTO threads (thread_id, resource_id, agent_key, working_memory, created_at, updated_at) "
            "VALUES (?, ?, ?, '{}', ?, ?)",
            (thread_id, resource_id, agent_key, now, now),
        )
        logger.info("Created thread {} for resource {} ({})", thread_id, resource_id, agent_key)
        return ConversationThread(
            thread_id=thread_id,
            resource_id=resource_id,
            agent_key=agent_key,
            working_memory={},
            created_at=now,
            updated_at=now,
        )

    def _recent_messages(self, thread_id: str, resource_id: str, limit: int) -> list[Message]:
        assert self.conn
        rows = self.conn.execute(
            """
            SELECT role, content, created_at FROM (
                SELECT seq, role, content, created_at FROM messages
                WHERE thread_id = ? AND resource_id = ?
                ORDER BY seq DESC
                LIMIT ?
            ) ORDER BY seq ASC
            """,
            (thread_id, resource_id, limit),
        ).fetchall()
        return [self._row_to_message(row) for row in rows]

    def _insert_message(self, thread_id: str, resource_id: str, role: str, content: str) -> None:
        assert self.conn
        self.conn.execute(
            "INSERT INTO messages (thread_id, resource_id, role, content, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (thread_id, resource_id, role, content, _utcnow()),
        )

    def _load_working_memory(self, thread_id: str, resource_id: str) -> dict[str, str]:
        thread = self.get_thread(thread_id, resource_id)
        return dict(thread.working_memory) if thread else {}

    def _touch(self, thread_id: str, resource_id: str) -> None:
        assert self.conn
        self.conn.execute(
            "UPDATE threads SET updated_at = ? WHERE thread_id = ? AND resource_id = ?",
            (_utcnow(), thread_id, resource_id),
        )

    @staticmethod
    def _row_to_thread(row: sqlite3.Row) -> ConversationThread:
        try:
            working_memory = json.loads(row["working_memory"] or "{}")
        except json.JSONDecodeError:
            logger.warning("Corrupt working memory for thread {}; starting empty", row["thread_id"])
            working_memory = {}
        return ConversationThread(
            thread_id=row["thread_id"],
            resource_id=row["resource_id"],
            agent_key=row["agent_key"],
            working_memory=normalize_working_memory(working_memory),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> Message:
        return Message(role=row["role"], content=row["content"], created_at=row["created_at"])
