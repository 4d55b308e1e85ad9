"""
In-memory chat repository.

Dict-backed IChatRepository for local runs and tests. Data lives only as
long as the process. Failures can be injected per operation to exercise
the pipeline's error paths.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from ..domain.entities import ChatMessage, ChatSession
from ..domain.exceptions import SessionNotFoundError
from ..domain.ports import IChatRepository

logger = logging.getLogger(__name__)


class InMemoryChatRepository(IChatRepository):
    """Chat repository keeping sessions and messages in dictionaries.

    Usage:
        repo = InMemoryChatRepository()
        session = await repo.create_chat("Support")
        await repo.save_messages(session.id, user_message("Hi"))

        # Make the next history load fail
        repo.fail_get_messages = RuntimeError("database is down")

    Attributes:
        fail_get_messages: Raised by get_messages while set
        fail_save_messages: Raised by save_messages while set
        saved_batches: Number of successful save_messages calls
    """

    def __init__(self):
        self._sessions: dict[str, ChatSession] = {}
        self._messages: dict[str, list[tuple[datetime, ChatMessage]]] = {}
        self.fail_get_messages: Optional[Exception] = None
        self.fail_save_messages: Optional[Exception] = None
        self.saved_batches = 0

    async def create_chat(self, name: str) -> ChatSession:
        session = ChatSession(name=name)
        self._sessions[session.id] = session
        self._messages[session.id] = []
        logger.info(f"Created chat session {session.id} ({name})")
        return session

    async def list_sessions(self) -> list[ChatSession]:
        return sorted(self._sessions.values(), key=lambda s: s.created_at, reverse=True)

    async def get_session_name(self, session_id: str) -> str:
        return self._get_session(session_id).name

    async def delete_session(self, session_id: str) -> bool:
        self._messages.pop(session_id, None)
        deleted = self._sessions.pop(session_id, None) is not None
        if deleted:
            logger.info(f"Deleted chat session {session_id}")
        return deleted

    async def get_messages(
        self,
        session_id: str,
        limit: int = 50,
        before: Optional[datetime] = None,
    ) -> list[ChatMessage]:
        if self.fail_get_messages is not None:
            raise self.fail_get_messages
        self._get_session(session_id)

        stored = self._messages[session_id]
        if before is not None:
            stored = [entry for entry in stored if entry[0] < before]
        if limit <= 0:
            return []
        return [message for _, message in stored[-limit:]]

    async def save_messages(self, session_id: str, *messages: ChatMessage) -> None:
        if self.fail_save_messages is not None:
            raise self.fail_save_messages
        self._get_session(session_id)

        now = datetime.utcnow()
        self._messages[session_id].extend((now, message) for message in messages)
        self.saved_batches += 1

    def _get_session(self, session_id: str) -> ChatSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session
