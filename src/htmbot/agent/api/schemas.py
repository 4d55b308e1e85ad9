"""
Pydantic schemas for the chat API.

Defines request/response models for the chatbot API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ..domain.entities import ChatMessage, ChatSession

# =============================================================================
# Constants
# =============================================================================

MAX_MESSAGE_LENGTH = 10000
MAX_CHAT_NAME_LENGTH = 200


# =============================================================================
# Session Schemas
# =============================================================================


class CreateChatRequest(BaseModel):
    """Request to create a chat session."""

    name: str = Field(..., min_length=1, max_length=MAX_CHAT_NAME_LENGTH)

    model_config = {
        "json_schema_extra": {
            "example": {"name": "Tool check"},
        }
    }


class SessionResponse(BaseModel):
    """A chat session."""

    id: str
    name: str
    created_at: datetime

    @classmethod
    def from_session(cls, session: ChatSession) -> SessionResponse:
        return cls(id=session.id, name=session.name, created_at=session.created_at)


class SessionListResponse(BaseModel):
    """Response for listing sessions."""

    sessions: list[SessionResponse]
    total: int


# =============================================================================
# Message Schemas
# =============================================================================


class MessageResponse(BaseModel):
    """A stored chat message. Fields not used by ``kind`` are null."""

    kind: str
    role: Optional[str] = None
    content: Optional[str] = None
    name: Optional[str] = None
    arguments: Optional[str] = None
    call_id: Optional[str] = None
    result: Optional[str] = None
    summary: Optional[str] = None

    @classmethod
    def from_message(cls, message: ChatMessage) -> MessageResponse:
        return cls(**message.to_dict())


class ChatPageResponse(BaseModel):
    """A session with its most recent messages."""

    id: str
    name: str
    messages: list[MessageResponse] = []


class SendMessageRequest(BaseModel):
    """Request to send a chat message."""

    text: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)

    model_config = {
        "json_schema_extra": {
            "example": {"text": "Can you call the available tool and tell me how it went?"},
        }
    }


class SendMessageResponse(BaseModel):
    """Response after queueing a message.

    The assistant's answer arrives on the session's event stream.
    """

    session_id: str
    status: str = "queued"
