"""Chunk storage and cosine-similarity search with SQLite and sqlite-vec."""

from __future__ import annotations

import sqlite3
import threading
from datetime import UTC, datetime
from pathlib import Path

import sqlite_vec
from loguru import logger
from sqlite_vec import serialize_float32

from phase_assistant.application.exceptions import StorageError
from phase_assistant.domain.models import Chunk, RetrievalResult

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS chunks (
    chunk_id TEXT PRIMARY KEY,
    document_id TEXT NOT NULL,
    scope_id TEXT NOT NULL,
    file_name TEXT NOT NULL,
    sequence_index INTEGER NOT NULL,
    total_chunks INTEGER NOT NULL,
    section TEXT NOT NULL DEFAULT '',
    text TEXT NOT NULL,
    embedding BLOB NOT NULL,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (document_id, sequence_index)
);

CREATE INDEX IF NOT EXISTS idx_chunks_scope_id ON chunks(scope_id);
CREATE INDEX IF NOT EXISTS idx_chunks_document_id ON chunks(document_id);
"""

# Cosine distance is in [0, 2]; map it onto a [0, 1] similarity.
_SEARCH_SQL = """\
SELECT chunk_id, file_name, sequence_index, total_chunks, section, text,
       1.0 - vec_distance_cosine(embedding, ?) / 2.0 AS score
FROM chunks
WHERE scope_id = ?
ORDER BY score DESC, sequence_index ASC, chunk_id ASC
LIMIT ?
"""


def _utcnow() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")


class ChunkStore:
    """Persists embedded chunks and ranks them against a query vector.

    A single connection is shared across threads behind a lock; every
    write runs in one transaction.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def connect(self) -> None:
        """Open the database, load sqlite-vec and ensure the schema exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self.conn.enable_load_extension(True)
        sqlite_vec.load(self.conn)
        self.conn.enable_load_extension(False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.executescript(_SCHEMA_SQL)
        self.conn.commit()
        (vec_version,) = self.conn.execute("SELECT vec_version()").fetchone()
        logger.info("Chunk store ready at {} (sqlite-vec {})", self.db_path, vec_version)

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def replace_document_chunks(self, document_id: str, chunks: list[Chunk]) -> int:
        """Atomically replace every chunk of *document_id* with *chunks*.

        Re-ingesting a document any number of times leaves exactly one
        chunk set for it.
        """
        assert self.conn
        for chunk in chunks:
            if chunk.document_id != document_id:
                raise ValueError(f"chunk {chunk.id} belongs to {chunk.document_id}, not {document_id}")
        now = _utcnow()
        try:
            with self._lock, self.conn:
                removed = self.conn.execute(
                    "DELETE FROM chunks WHERE document_id = ?", (document_id,)
                ).rowcount
                self.conn.executemany(
                    "INSERT INTO chunks (chunk_id, document_id, scope_id, file_name, sequence_index, "
                    "total_chunks, section, text, embedding, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    [
                        (
                            c.id,
                            c.document_id,
                            c.scope_id,
                            c.file_name,
                            c.sequence_index,
                            c.total_chunks,
                            c.section,
                            c.text,
                            serialize_float32(c.vector),
                            c.created_at or now,
                        )
                        for c in chunks
                    ],
                )
        except sqlite3.Error as exc:
            raise StorageError(f"Could not store chunks for document {document_id}: {exc}") from exc

        logger.info(
            "Stored {} chunks for document {} (replaced {})", len(chunks), document_id, removed
        )
        return len(chunks)

    def delete_by_document(self, document_id: str) -> int:
        """Delete every chunk of *document_id* and confirm none remain.

        Raises:
            StorageError: If the delete failed; nothing was removed and the
                caller may retry.
        """
        assert self.conn
        try:
            with self._lock, self.conn:
                deleted = self.conn.execute(
                    "DELETE FROM chunks WHERE document_id = ?", (document_id,)
                ).rowcount
                (remaining,) = self.conn.execute(
                    "SELECT COUNT(*) FROM chunks WHERE document_id = ?", (document_id,)
                ).fetchone()
                if remaining:
                    raise StorageError(
                        f"{remaining} chunks still present for document {document_id}"
                    )
        except sqlite3.Error as exc:
            raise StorageError(f"Could not delete chunks for document {document_id}: {exc}") from exc

        logger.info("Deleted {} chunks for document {}", deleted, document_id)
        return deleted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def count_by_document(self, document_id: str) -> int:
        assert self.conn
        with self._lock:
            (count,) = self.conn.execute(
                "SELECT COUNT(*) FROM chunks WHERE document_id = ?", (document_id,)
            ).fetchone()
        return count

    def list_by_document(self, document_id: str) -> list[Chunk]:
        """Return the chunks of a document in sequence order (without vectors)."""
        assert self.conn
        with self._lock:
            rows = self.conn.execute(
                "SELECT * FROM chunks WHERE document_id = ? ORDER BY sequence_index ASC",
                (document_id,),
            ).fetchall()
        return [self._row_to_chunk(row) for row in rows]

    def search(self, query_vector: list[float], scope_id: str, limit: int) -> list[RetrievalResult]:
        """Rank every chunk in *scope_id* by cosine similarity to *query_vector*.

        Ties are broken by ascending sequence index.
        """
        assert self.conn
        if limit <= 0:
            return []
        try:
            with self._lock:
                rows = self.conn.execute(
                    _SEARCH_SQL, (serialize_float32(query_vector), scope_id, limit)
                ).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"Chunk search failed: {exc}") from exc

        return [
            RetrievalResult(
                chunk_id=row["chunk_id"],
                file_name=row["file_name"],
                chunk_index=row["sequence_index"],
                total_chunks=row["total_chunks"],
                section=row["section"],
                content=row["text"],
                score=min(1.0, max(0.0, float(row["score"]))),
            )
            for row in rows
        ]

    def get_stats(self) -> dict:
        """Return chunk and document counts, overall and per scope."""
        assert self.conn
        with self._lock:
            total_chunks, total_documents = self.conn.execute(
                "SELECT COUNT(*), COUNT(DISTINCT document_id) FROM chunks"
            ).fetchone()
            by_scope = {
                row["scope_id"]: row["n"]
                for row in self.conn.execute(
                    "SELECT scope_id, COUNT(*) AS n FROM chunks GROUP BY scope_id ORDER BY scope_id"
                ).fetchall()
            }
        return {
            "total_chunks": total_chunks,
            "total_documents": total_documents,
            "by_scope": by_scope,
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_chunk(row: sqlite3.Row) -> Chunk:
        return Chunk(
            id=row["chunk_id"],
            document_id=row["document_id"],
            scope_id=row["scope_id"],
            file_name=row["file_name"],
            sequence_index=row["sequence_index"],
            total_chunks=row["total_chunks"],
            section=row["section"],
            text=row["text"],
            created_at=row["created_at"],
        )
