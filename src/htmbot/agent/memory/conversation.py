"""
Chat Repository Implementation.

Handles chat session and message persistence in PostgreSQL via an
asyncpg pool. Messages are stored one row per message with a ``kind``
discriminator; unused columns stay NULL.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, AsyncContextManager, Iterable, Optional, Protocol, Sequence

import asyncpg

from ..domain.entities import (
    ChatMessage,
    ChatSession,
    FunctionCallMessage,
    FunctionResultMessage,
    MessageRole,
    ReasoningMessage,
    TextMessage,
)
from ..domain.exceptions import SessionNotFoundError
from ..domain.ports import IChatRepository

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS chat_sessions (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS chat_messages (
    id BIGSERIAL PRIMARY KEY,
    chat_session_id TEXT NOT NULL REFERENCES chat_sessions(id) ON DELETE CASCADE,
    kind TEXT NOT NULL,
    role TEXT,
    content TEXT,
    name TEXT,
    args TEXT,
    call_id TEXT,
    result TEXT,
    summary TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_chat_messages_session
    ON chat_messages (chat_session_id, id);
"""


class IAsyncDBConnection(Protocol):
    """Protocol for the pooled connection the repository works with."""

    async def execute(self, query: str, *args) -> str: ...
    async def executemany(self, query: str, args: Iterable[Sequence[Any]]) -> None: ...
    async def fetch(self, query: str, *args) -> list[Any]: ...
    async def fetchrow(self, query: str, *args) -> Optional[Any]: ...
    async def fetchval(self, query: str, *args) -> Any: ...
    def transaction(self) -> AsyncContextManager[Any]: ...


class IAsyncDBPool(Protocol):
    """Protocol for async database pool."""

    def acquire(self) -> AsyncContextManager[IAsyncDBConnection]: ...


def _message_to_row(message: ChatMessage) -> tuple:
    """Column values (kind, role, content, name, args, call_id, result, summary)."""
    if isinstance(message, TextMessage):
        return (message.kind, message.role.value, message.content, None, None, None, None, None)
    if isinstance(message, FunctionCallMessage):
        return (message.kind, None, None, message.name, message.arguments, message.call_id, None, None)
    if isinstance(message, FunctionResultMessage):
        return (message.kind, None, None, message.name, None, message.call_id, message.result, None)
    if isinstance(message, ReasoningMessage):
        return (message.kind, None, message.content, None, None, None, None, message.summary)
    raise TypeError(f"Cannot store message of type {type(message).__name__}")


def _row_to_message(row: Any) -> ChatMessage:
    kind = row["kind"]
    if kind == "text":
        return TextMessage(role=MessageRole(row["role"]), content=row["content"] or "")
    if kind == "function_call":
        return FunctionCallMessage(
            name=row["name"], arguments=row["args"] or "", call_id=row["call_id"]
        )
    if kind == "function_result":
        return FunctionResultMessage(
            name=row["name"] or "", result=row["result"] or "", call_id=row["call_id"]
        )
    if kind == "reasoning":
        return ReasoningMessage(summary=row["summary"] or "", content=row["content"] or "")
    raise ValueError(f"Unknown stored message kind: {kind!r}")


class PostgresChatRepository(IChatRepository):
    """PostgreSQL-based chat repository.

    Usage:
        pool = await asyncpg.create_pool(database_url)
        repo = PostgresChatRepository(pool)
        await repo.ensure_schema()

        session = await repo.create_chat("Device Search")
        await repo.save_messages(session.id, user_message("Hi"), reply)
        history = await repo.get_messages(session.id, limit=30)
    """

    def __init__(self, db_pool: IAsyncDBPool):
        """Initialize the chat repository.

        Args:
            db_pool: Async database connection pool
        """
        self.db = db_pool

    async def ensure_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        async with self.db.acquire() as conn:
            await conn.execute(SCHEMA_SQL)
        logger.info("Chat schema ensured")

    async def create_chat(self, name: str) -> ChatSession:
        session = ChatSession(name=name)

        async with self.db.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO chat_sessions (id, name)
                VALUES ($1, $2)
                RETURNING created_at
                """,
                session.id,
                session.name,
            )
            session.created_at = row["created_at"]

        logger.info(f"Created chat session {session.id} ({name})")
        return session

    async def list_sessions(self) -> list[ChatSession]:
        async with self.db.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT id, name, created_at
                FROM chat_sessions
                ORDER BY created_at DESC
                """
            )

        return [
            ChatSession(id=row["id"], name=row["name"], created_at=row["created_at"])
            for row in rows
        ]

    async def get_session_name(self, session_id: str) -> str:
        async with self.db.acquire() as conn:
            name = await conn.fetchval(
                "SELECT name FROM chat_sessions WHERE id = $1",
                session_id,
            )

        if name is None:
            raise SessionNotFoundError(session_id)
        return name

    async def delete_session(self, session_id: str) -> bool:
        async with self.db.acquire() as conn:
            status = await conn.execute(
                "DELETE FROM chat_sessions WHERE id = $1",
                session_id,
            )

        # asyncpg returns the command tag, e.g. "DELETE 1"
        deleted = status.split()[-1] != "0"
        if deleted:
            logger.info(f"Deleted chat session {session_id}")
        return deleted

    async def get_messages(
        self,
        session_id: str,
        limit: int = 50,
        before: Optional[datetime] = None,
    ) -> list[ChatMessage]:
        async with self.db.acquire() as conn:
            exists = await conn.fetchval(
                "SELECT EXISTS (SELECT 1 FROM chat_sessions WHERE id = $1)",
                session_id,
            )
            if not exists:
                raise SessionNotFoundError(session_id)

            rows = await conn.fetch(
                """
                SELECT kind, role, content, name, args, call_id, result, summary
                FROM (
                    SELECT id, kind, role, content, name, args, call_id, result, summary
                    FROM chat_messages
                    WHERE chat_session_id = $1
                      AND ($2::timestamptz IS NULL OR created_at < $2)
                    ORDER BY id DESC
                    LIMIT $3
                ) recent
                ORDER BY id ASC
                """,
                session_id,
                before,
                limit,
            )

        return [_row_to_message(row) for row in rows]

    async def save_messages(self, session_id: str, *messages: ChatMessage) -> None:
        if not messages:
            return

        rows = [(session_id, *_message_to_row(message)) for message in messages]

        try:
            async with self.db.acquire() as conn:
                async with conn.transaction():
                    await conn.executemany(
                        """
                        INSERT INTO chat_messages (
                            chat_session_id, kind, role, content, name,
                            args, call_id, result, summary
                        ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                        """,
                        rows,
                    )
        except asyncpg.ForeignKeyViolationError as e:
            raise SessionNotFoundError(session_id) from e

        logger.debug(f"Saved {len(messages)} messages to session {session_id}")
