"""
Chat Service.

Facade used by the HTTP layer. Session lifecycle goes straight to the
repository, user messages go to the processing pipeline through the
enqueuer, and live updates come from the event bus.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .domain.entities import ChatMessage, ChatSession
from .domain.ports import IChatRepository, IMessageEnqueuer, IPubSub, ISubscription

logger = logging.getLogger(__name__)

PAGE_MESSAGE_LIMIT = 100


@dataclass
class ChatPageData:
    """Everything needed to render a chat session."""

    session_id: str
    name: str
    messages: list[ChatMessage] = field(default_factory=list)


class ChatService:
    """Chat operations exposed to the request path.

    Usage:
        service = ChatService(repository, pubsub, processor.enqueuer())

        session = await service.create_chat("Support")
        await service.send_message(session.id, "Hello")

        with service.subscribe_to_messages(session.id) as subscription:
            async for event in subscription:
                ...
    """

    def __init__(
        self,
        repository: IChatRepository,
        pubsub: IPubSub,
        enqueuer: IMessageEnqueuer,
    ):
        self.repository = repository
        self.pubsub = pubsub
        self.enqueuer = enqueuer

    async def list_sessions(self) -> list[ChatSession]:
        return await self.repository.list_sessions()

    async def create_chat(self, name: str) -> ChatSession:
        name = name.strip()
        if not name:
            raise ValueError("chat name is required")
        return await self.repository.create_chat(name)

    async def get_session_name(self, session_id: str) -> str:
        return await self.repository.get_session_name(session_id)

    async def get_chat_page_data(self, session_id: str) -> ChatPageData:
        """Load a session's name and its most recent messages.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        name = await self.repository.get_session_name(session_id)
        messages = await self.repository.get_messages(session_id, limit=PAGE_MESSAGE_LIMIT)
        return ChatPageData(session_id=session_id, name=name, messages=messages)

    async def send_message(self, session_id: str, text: str) -> None:
        """Submit a user message for processing.

        The message is saved and echoed by the pipeline, not here.

        Raises:
            ValueError: If the text is blank
            SessionNotFoundError: If the session does not exist
            QueueFullError: If the pipeline is too busy to accept it
        """
        if not text or not text.strip():
            raise ValueError("message text is required")

        await self.repository.get_session_name(session_id)
        await self.enqueuer.enqueue(session_id, text)
        logger.debug(f"Accepted message for session {session_id}")

    async def delete_chat(self, session_id: str) -> bool:
        return await self.repository.delete_session(session_id)

    def subscribe_to_messages(self, session_id: str) -> ISubscription:
        """Open a live subscription. The caller must cancel it when done."""
        return self.pubsub.subscribe(session_id)
