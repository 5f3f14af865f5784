"""SQLite Storage - Persistence for sessions, chunks and translation config.

A thin wrapper around SQLite: each operation opens its own connection, and
every write is a single-row statement except :meth:`TranslationDB.replace_chunks`,
which swaps a session's chunk set in one transaction.
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Iterator

from doctranslate.config import DATABASE_PATH
from doctranslate.constants import ChunkStatus, SessionStatus
from doctranslate.errors import PersistenceError
from doctranslate.models import Chunk, Session, TranslationConfig, utcnow

logger = logging.getLogger(__name__)

SESSION_COLUMNS = (
    "id",
    "title",
    "memo",
    "custom_dict",
    "original_file_name",
    "source_text",
    "translated_text",
    "status",
    "total_chunks",
    "created_at",
    "updated_at",
)

CHUNK_COLUMNS = (
    "id",
    "session_id",
    "chunk_order",
    "source_text",
    "translated_text",
    "status",
    "error_message",
    "retry_count",
    "token_count",
    "processing_time",
    "created_at",
    "updated_at",
)

CONFIG_COLUMNS = (
    "provider",
    "model",
    "chunk_size",
    "temperature",
    "max_output_tokens",
    "top_p",
    "top_k",
    "updated_at",
)

# Chunk.order is stored as chunk_order ("order" is an SQL keyword)
_CHUNK_FIELD_TO_COLUMN = {"order": "chunk_order"}


def _to_db(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class TranslationDB:
    """SQLite wrapper for translation sessions and chunks.

    Example:
        db = TranslationDB("outputs/doctranslate.db")
        db.insert_session(Session(id="s1", title="Novel"))
        db.replace_chunks("s1", chunks, status=SessionStatus.READY, total_chunks=3)
    """

    def __init__(self, db_path: str | Path | None = None):
        """Initialize database.

        Args:
            db_path: Path to SQLite database file (default: outputs/doctranslate.db)
        """
        if db_path is None:
            db_path = DATABASE_PATH
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_db()

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, wrapping SQLite failures in PersistenceError.

        Yields:
            Database connection
        """
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Database error on {self.db_path}: {e}")
            raise PersistenceError(f"Database error: {e}") from e
        finally:
            conn.close()

    def _init_db(self):
        """Initialize database tables."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS translation_sessions (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    memo TEXT,
                    custom_dict TEXT,
                    original_file_name TEXT,
                    source_text TEXT,
                    translated_text TEXT,
                    status TEXT NOT NULL DEFAULT 'draft',
                    total_chunks INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS translation_chunks (
                    id TEXT PRIMARY KEY,
                    session_id TEXT NOT NULL
                        REFERENCES translation_sessions(id) ON DELETE CASCADE,
                    chunk_order INTEGER NOT NULL,
                    source_text TEXT NOT NULL,
                    translated_text TEXT,
                    status TEXT NOT NULL DEFAULT 'pending',
                    error_message TEXT,
                    retry_count INTEGER NOT NULL DEFAULT 0,
                    token_count INTEGER,
                    processing_time INTEGER,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE (session_id, chunk_order)
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_chunks_session_status
                ON translation_chunks(session_id, status)
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS translation_config (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    provider TEXT NOT NULL,
                    model TEXT NOT NULL,
                    chunk_size INTEGER NOT NULL,
                    temperature REAL NOT NULL,
                    max_output_tokens INTEGER,
                    top_p REAL,
                    top_k INTEGER,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()

    # =========================================================================
    # Row mapping
    # =========================================================================

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> Session:
        return Session(**dict(row))

    @staticmethod
    def _row_to_chunk(row: sqlite3.Row) -> Chunk:
        data = dict(row)
        data["order"] = data.pop("chunk_order")
        return Chunk(**data)

    @staticmethod
    def _chunk_values(chunk: Chunk) -> tuple:
        data = chunk.model_dump()
        data["chunk_order"] = data.pop("order")
        return tuple(_to_db(data[col]) for col in CHUNK_COLUMNS)

    # =========================================================================
    # Sessions
    # =========================================================================

    def insert_session(self, session: Session) -> Session:
        """Insert a new session row."""
        data = session.model_dump()
        placeholders = ", ".join("?" for _ in SESSION_COLUMNS)
        with self._get_connection() as conn:
            conn.execute(
                f"INSERT INTO translation_sessions ({', '.join(SESSION_COLUMNS)}) "
                f"VALUES ({placeholders})",
                tuple(_to_db(data[col]) for col in SESSION_COLUMNS),
            )
            conn.commit()
        return session

    def get_session(self, session_id: str) -> Session | None:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM translation_sessions WHERE id = ?", (session_id,)
            ).fetchone()
            return self._row_to_session(row) if row else None

    def get_session_status(self, session_id: str) -> SessionStatus | None:
        """Read only the status column (used for cooperative cancellation)."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT status FROM translation_sessions WHERE id = ?", (session_id,)
            ).fetchone()
            return SessionStatus(row["status"]) if row else None

    def list_sessions(self, limit: int | None = None) -> list[Session]:
        """List sessions, most recently updated first."""
        query = "SELECT * FROM translation_sessions ORDER BY updated_at DESC"
        params: tuple = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        with self._get_connection() as conn:
            return [self._row_to_session(row) for row in conn.execute(query, params).fetchall()]

    def update_session(self, session_id: str, **fields: Any) -> Session | None:
        """Update session columns by name; ``updated_at`` is refreshed.

        Returns:
            The updated session, or None if it does not exist

        Raises:
            ValueError: On unknown column names
        """
        self._check_columns(fields, SESSION_COLUMNS)
        fields.setdefault("updated_at", utcnow())
        assignments = ", ".join(f"{name} = ?" for name in fields)
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"UPDATE translation_sessions SET {assignments} WHERE id = ?",
                (*(_to_db(v) for v in fields.values()), session_id),
            )
            conn.commit()
            if cursor.rowcount == 0:
                return None
        return self.get_session(session_id)

    def delete_session(self, session_id: str) -> bool:
        """Delete a session and its chunks.

        Returns:
            True if deleted, False if not found
        """
        with self._get_connection() as conn:
            conn.execute("DELETE FROM translation_chunks WHERE session_id = ?", (session_id,))
            cursor = conn.execute("DELETE FROM translation_sessions WHERE id = ?", (session_id,))
            conn.commit()
            return cursor.rowcount > 0

    # =========================================================================
    # Chunks
    # =========================================================================

    def get_chunk(self, chunk_id: str) -> Chunk | None:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM translation_chunks WHERE id = ?", (chunk_id,)
            ).fetchone()
            return self._row_to_chunk(row) if row else None

    def get_chunks(
        self,
        session_id: str,
        statuses: set[ChunkStatus] | frozenset[ChunkStatus] | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Chunk]:
        """Chunks of a session in ascending order, optionally filtered by status."""
        query = "SELECT * FROM translation_chunks WHERE session_id = ?"
        params: list[Any] = [session_id]
        if statuses:
            query += f" AND status IN ({', '.join('?' for _ in statuses)})"
            params.extend(sorted(s.value for s in statuses))
        query += " ORDER BY chunk_order ASC"
        if limit is not None:
            query += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])
        with self._get_connection() as conn:
            return [self._row_to_chunk(row) for row in conn.execute(query, params).fetchall()]

    def count_chunks_by_status(self, session_id: str) -> dict[ChunkStatus, int]:
        """Number of chunks per status (every status present, zero if none)."""
        counts = {status: 0 for status in ChunkStatus}
        with self._get_connection() as conn:
            rows = conn.execute(
                """SELECT status, COUNT(*) AS n FROM translation_chunks
                   WHERE session_id = ? GROUP BY status""",
                (session_id,),
            ).fetchall()
        for row in rows:
            counts[ChunkStatus(row["status"])] = row["n"]
        return counts

    def update_chunk(self, chunk_id: str, **fields: Any) -> Chunk | None:
        """Update chunk columns by field name; ``updated_at`` is refreshed.

        Returns:
            The updated chunk, or None if it does not exist
        """
        columns = {_CHUNK_FIELD_TO_COLUMN.get(k, k): v for k, v in fields.items()}
        self._check_columns(columns, CHUNK_COLUMNS)
        columns.setdefault("updated_at", utcnow())
        assignments = ", ".join(f"{name} = ?" for name in columns)
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"UPDATE translation_chunks SET {assignments} WHERE id = ?",
                (*(_to_db(v) for v in columns.values()), chunk_id),
            )
            conn.commit()
            if cursor.rowcount == 0:
                return None
        return self.get_chunk(chunk_id)

    def replace_chunks(self, session_id: str, chunks: list[Chunk], **session_fields: Any) -> Session:
        """Atomically replace a session's chunks and update the session.

        Deletes all existing chunks, inserts ``chunks`` and applies
        ``session_fields`` in a single transaction.

        Raises:
            PersistenceError: If any statement fails (nothing is applied)
            ValueError: On unknown session columns
        """
        self._check_columns(session_fields, SESSION_COLUMNS)
        session_fields.setdefault("updated_at", utcnow())
        assignments = ", ".join(f"{name} = ?" for name in session_fields)
        placeholders = ", ".join("?" for _ in CHUNK_COLUMNS)

        with self._get_connection() as conn:
            conn.execute("DELETE FROM translation_chunks WHERE session_id = ?", (session_id,))
            conn.executemany(
                f"INSERT INTO translation_chunks ({', '.join(CHUNK_COLUMNS)}) "
                f"VALUES ({placeholders})",
                [self._chunk_values(chunk) for chunk in chunks],
            )
            cursor = conn.execute(
                f"UPDATE translation_sessions SET {assignments} WHERE id = ?",
                (*(_to_db(v) for v in session_fields.values()), session_id),
            )
            if cursor.rowcount == 0:
                conn.rollback()
                raise PersistenceError(f"Session vanished during chunking: {session_id}")
            conn.commit()

        logger.debug(f"Replaced chunks of session {session_id}: {len(chunks)} chunks")
        return self.get_session(session_id)

    # =========================================================================
    # Translation config
    # =========================================================================

    def get_config(self) -> TranslationConfig | None:
        with self._get_connection() as conn:
            row = conn.execute(
                f"SELECT {', '.join(CONFIG_COLUMNS)} FROM translation_config WHERE id = 1"
            ).fetchone()
            return TranslationConfig(**dict(row)) if row else None

    def save_config(self, config: TranslationConfig) -> TranslationConfig:
        """Insert or replace the single config row."""
        data = config.model_dump()
        with self._get_connection() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO translation_config (id, {', '.join(CONFIG_COLUMNS)}) "
                f"VALUES (1, {', '.join('?' for _ in CONFIG_COLUMNS)})",
                tuple(_to_db(data[col]) for col in CONFIG_COLUMNS),
            )
            conn.commit()
        return config

    @staticmethod
    def _check_columns(fields: dict, allowed: tuple[str, ...]) -> None:
        rejected = [name for name in fields if name == "id" or name not in allowed]
        if rejected:
            raise ValueError(f"Cannot update columns: {rejected}")
