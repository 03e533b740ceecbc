"""Conversation persistence: message repositories and the adapter around them."""

import asyncio
import itertools
import sqlite3
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Literal, Protocol

from worldsmith.utils.logging import get_logger

if TYPE_CHECKING:
    from worldsmith.services.memory import HistoryCompressor, LongTermMemoryStore

logger = get_logger(__name__)

PersistedRole = Literal["user", "ai"]

DEFAULT_SESSION_ID = "default"


@dataclass
class PersistedMessage:
    """Durable message record."""

    id: int
    role: PersistedRole
    content: str
    session_id: str = DEFAULT_SESSION_ID
    type: str = "text"
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def as_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "type": self.type,
            "session_id": self.session_id,
            "created_at": self.created_at,
        }


class MessageRepository(Protocol):
    """Interface for the append-only message store."""

    async def save(
        self, role: PersistedRole, content: str, session_id: str, type: str = "text"
    ) -> PersistedMessage:
        """Append a message and return the stored record."""
        ...

    async def find_recent(self, session_id: str, limit: int) -> list[PersistedMessage]:
        """Most recent messages of a session, newest first."""
        ...

    async def find_all(self, session_id: str) -> list[PersistedMessage]:
        """All messages of a session, oldest first."""
        ...

    async def count(self, session_id: str) -> int:
        """Number of stored messages for a session."""
        ...

    async def clear(self, session_id: str) -> int:
        """Delete every message of a session and return how many were removed."""
        ...


class InMemoryMessageRepository:
    """In-memory message repository.

    Keeps records in insertion order; ids are monotonically increasing, so
    `(created_at, id)` is a total order even when timestamps collide.
    """

    def __init__(self) -> None:
        self.messages: list[PersistedMessage] = []
        self._ids = itertools.count(1)

    async def save(
        self, role: PersistedRole, content: str, session_id: str, type: str = "text"
    ) -> PersistedMessage:
        record = PersistedMessage(id=next(self._ids), role=role, content=content, session_id=session_id, type=type)
        self.messages.append(record)
        return record

    async def find_recent(self, session_id: str, limit: int) -> list[PersistedMessage]:
        records = sorted(self._for_session(session_id), key=_sort_key, reverse=True)
        return records[:limit]

    async def find_all(self, session_id: str) -> list[PersistedMessage]:
        return sorted(self._for_session(session_id), key=_sort_key)

    async def count(self, session_id: str) -> int:
        return len(self._for_session(session_id))

    async def clear(self, session_id: str) -> int:
        before = len(self.messages)
        self.messages = [m for m in self.messages if m.session_id != session_id]
        return before - len(self.messages)

    def _for_session(self, session_id: str) -> list[PersistedMessage]:
        return [m for m in self.messages if m.session_id == session_id]


def _sort_key(record: PersistedMessage) -> tuple[datetime, int]:
    return record.created_at, record.id


class SqliteMessageRepository:
    """SQLite-backed message repository.

    Blocking sqlite3 calls run in a worker thread so the event loop keeps
    streaming while the store is written.
    """

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS message (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            role TEXT NOT NULL,
            content TEXT NOT NULL,
            type TEXT NOT NULL DEFAULT 'text',
            session_id TEXT NOT NULL DEFAULT 'default',
            created_at TEXT NOT NULL
        )
    """
    INDEX = "CREATE INDEX IF NOT EXISTS idx_message_session_created ON message (session_id, created_at)"

    def __init__(self, database_path: str | Path):
        self.database_path = str(database_path)
        if self.database_path != ":memory:":
            Path(self.database_path).parent.mkdir(parents=True, exist_ok=True)
        self._connection = sqlite3.connect(self.database_path, check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        self._lock = asyncio.Lock()
        with self._connection:
            self._connection.execute(self.SCHEMA)
            self._connection.execute(self.INDEX)

    async def save(
        self, role: PersistedRole, content: str, session_id: str, type: str = "text"
    ) -> PersistedMessage:
        created_at = datetime.now(UTC)

        def _insert() -> int:
            with self._connection:
                cursor = self._connection.execute(
                    "INSERT INTO message (role, content, type, session_id, created_at) VALUES (?, ?, ?, ?, ?)",
                    (role, content, type, session_id, created_at.isoformat()),
                )
                return int(cursor.lastrowid)

        async with self._lock:
            message_id = await asyncio.to_thread(_insert)
        return PersistedMessage(
            id=message_id, role=role, content=content, session_id=session_id, type=type, created_at=created_at
        )

    async def find_recent(self, session_id: str, limit: int) -> list[PersistedMessage]:
        return await self._query(
            "SELECT * FROM message WHERE session_id = ? ORDER BY created_at DESC, id DESC LIMIT ?",
            (session_id, limit),
        )

    async def find_all(self, session_id: str) -> list[PersistedMessage]:
        return await self._query(
            "SELECT * FROM message WHERE session_id = ? ORDER BY created_at ASC, id ASC",
            (session_id,),
        )

    async def count(self, session_id: str) -> int:
        def _count() -> int:
            row = self._connection.execute(
                "SELECT COUNT(*) FROM message WHERE session_id = ?", (session_id,)
            ).fetchone()
            return int(row[0])

        async with self._lock:
            return await asyncio.to_thread(_count)

    async def clear(self, session_id: str) -> int:
        def _delete() -> int:
            with self._connection:
                cursor = self._connection.execute("DELETE FROM message WHERE session_id = ?", (session_id,))
                return cursor.rowcount

        async with self._lock:
            return await asyncio.to_thread(_delete)

    def close(self) -> None:
        self._connection.close()

    async def _query(self, sql: str, params: tuple[object, ...]) -> list[PersistedMessage]:
        def _fetch() -> list[sqlite3.Row]:
            return self._connection.execute(sql, params).fetchall()

        async with self._lock:
            rows = await asyncio.to_thread(_fetch)
        return [
            PersistedMessage(
                id=row["id"],
                role=row["role"],
                content=row["content"],
                type=row["type"],
                session_id=row["session_id"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]


@dataclass
class ArchiveResult:
    """Outcome of compressing older turns."""

    archived: int
    summary: str


class ConversationPersistence:
    """Adapter between the turn pipeline and the message repository.

    The user message is written before orchestration starts and the final
    assistant answer after it ends. Nothing else from a turn is persisted.
    """

    def __init__(self, repository: MessageRepository):
        self.repository = repository

    async def save_user_message(self, content: str, session_id: str) -> PersistedMessage:
        logger.debug(f"Persisting user message for session {session_id}")
        return await self.repository.save("user", content, session_id)

    async def save_assistant_message(self, content: str, session_id: str) -> PersistedMessage:
        logger.debug(f"Persisting assistant message for session {session_id}")
        return await self.repository.save("ai", content, session_id)

    async def find_recent(self, session_id: str, limit: int) -> list[PersistedMessage]:
        """Most recent records, newest first."""
        return await self.repository.find_recent(session_id, limit)

    async def get_history(self, session_id: str, limit: int = 50) -> list[PersistedMessage]:
        """The last `limit` records, oldest first."""
        recent = await self.repository.find_recent(session_id, limit)
        return list(reversed(recent))

    async def clear(self, session_id: str) -> int:
        deleted = await self.repository.clear(session_id)
        logger.info(f"Cleared {deleted} messages for session {session_id}")
        return deleted

    async def archive(
        self,
        session_id: str,
        compressor: "HistoryCompressor",
        memory: "LongTermMemoryStore",
        keep_recent: int = 20,
    ) -> ArchiveResult:
        """Compress turns older than the most recent `keep_recent` into long-term memory.

        Records stay in the store; the memory keeps track of the last record
        already folded into the summary so each record is compressed once.
        """
        records = await self.repository.find_all(session_id)
        older = records[:-keep_recent] if keep_recent > 0 else records
        archived_through = await memory.get_archived_through(session_id)
        pending = [record for record in older if record.id > archived_through]

        summary = await memory.get_summary(session_id)
        if not pending:
            logger.info(f"Nothing to archive for session {session_id}")
            return ArchiveResult(archived=0, summary=summary)

        summary = await compressor.compress(summary, pending)
        await memory.update(session_id, summary, archived_through=pending[-1].id)
        logger.info(f"Archived {len(pending)} messages for session {session_id}")
        return ArchiveResult(archived=len(pending), summary=summary)
