"""
Port interfaces (abstract base classes) for the agent module.

These define the contracts that adapters must implement.
Following the Ports & Adapters (Hexagonal) architecture pattern.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, AsyncIterator, Optional

from .exceptions import SubscriptionClosed

if TYPE_CHECKING:
    from .entities import (
        ChatEvent,
        ChatMessage,
        ChatSession,
        ProviderResponse,
        ProviderStreamEvent,
        ToolDefinition,
    )


# ============================================
# LLM Provider Interface
# ============================================


class ILLMProvider(ABC):
    """Interface for LLM providers.

    Implementations handle the specifics of each LLM API while
    providing a consistent interface to the orchestrator. The
    orchestrator only ever sees domain messages and output items.
    """

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model identifier (e.g., 'gpt-4o-mini')."""
        pass

    @abstractmethod
    async def generate(
        self,
        transcript: list[ChatMessage],
        tools: Optional[list[ToolDefinition]] = None,
    ) -> ProviderResponse:
        """Send the transcript and return the completed response.

        Args:
            transcript: Conversation so far
            tools: Tool schemas the model may call

        Returns:
            ProviderResponse with output items in emission order
        """
        pass

    @abstractmethod
    def stream_generate(
        self,
        transcript: list[ChatMessage],
        tools: Optional[list[ToolDefinition]] = None,
    ) -> AsyncIterator[ProviderStreamEvent]:
        """Stream a response.

        Yields zero or more TextDeltaEvent objects followed by exactly one
        ResponseCompletedEvent.
        """
        pass


# ============================================
# Tool Interface
# ============================================


class ILLMTool(ABC):
    """A capability the model can invoke.

    The orchestrator treats every tool the same way: it reads the schema
    and passes the raw argument string through to ``execute``.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        pass

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON schema describing the arguments."""
        pass

    @abstractmethod
    async def execute(self, arguments: str) -> str:
        """Run the tool with the provider's raw argument string.

        Raises:
            Exception: Any failure; the orchestrator treats it as fatal
        """
        pass

    @property
    def definition(self) -> ToolDefinition:
        from .entities import ToolDefinition

        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
        )


# ============================================
# Chat Repository Interface
# ============================================


class IChatRepository(ABC):
    """Interface for chat session and message persistence."""

    @abstractmethod
    async def create_chat(self, name: str) -> ChatSession:
        """Create a new chat session."""
        pass

    @abstractmethod
    async def list_sessions(self) -> list[ChatSession]:
        """List sessions, newest first."""
        pass

    @abstractmethod
    async def get_session_name(self, session_id: str) -> str:
        """Get a session's display name.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        pass

    @abstractmethod
    async def delete_session(self, session_id: str) -> bool:
        """Delete a session and all its messages."""
        pass

    @abstractmethod
    async def get_messages(
        self,
        session_id: str,
        limit: int = 50,
        before: Optional[datetime] = None,
    ) -> list[ChatMessage]:
        """Get the most recent messages of a session.

        Args:
            session_id: Session to read
            limit: Maximum number of messages
            before: Only messages created strictly before this time

        Returns:
            Up to ``limit`` messages in chronological order
        """
        pass

    @abstractmethod
    async def save_messages(self, session_id: str, *messages: ChatMessage) -> None:
        """Append messages to a session, preserving their order."""
        pass


# ============================================
# Event Bus Interface
# ============================================


class ISubscription(ABC):
    """A receiving queue registered under one topic.

    Owners drain it with ``get()`` or ``async for`` and must cancel it on
    every exit path. Used as a context manager it cancels itself on exit.
    """

    topic: str

    @property
    @abstractmethod
    def closed(self) -> bool:
        """True once cancel() has been called."""
        pass

    @abstractmethod
    async def get(self) -> ChatEvent:
        """Wait for the next event.

        Raises:
            SubscriptionClosed: After cancel() once pending events are drained
        """
        pass

    @abstractmethod
    def cancel(self) -> None:
        """Unregister from the bus. Safe to call more than once."""
        pass

    def __aiter__(self) -> ISubscription:
        return self

    async def __anext__(self) -> ChatEvent:
        try:
            return await self.get()
        except SubscriptionClosed:
            raise StopAsyncIteration

    def __enter__(self) -> ISubscription:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cancel()


class IPubSub(ABC):
    """Topic-keyed publish/subscribe."""

    @abstractmethod
    def subscribe(self, topic: str) -> ISubscription:
        """Register a new bounded receiving queue under ``topic``."""
        pass

    @abstractmethod
    def publish(self, topic: str, event: ChatEvent) -> None:
        """Deliver ``event`` to every subscriber of ``topic`` without blocking."""
        pass


# ============================================
# Message Enqueuer Interface
# ============================================


class IMessageEnqueuer(ABC):
    """Hands user messages to the processing pipeline."""

    @abstractmethod
    async def enqueue(self, session_id: str, text: str) -> None:
        """Submit a user message.

        Raises:
            QueueFullError: If the pipeline cannot accept the message now
        """
        pass
