"""
Domain entities for the agent chatbot.

These are pure domain objects with no infrastructure dependencies.
They define the core data structures used throughout the agent module.

Chat messages and chat events are closed sum types: every variant is its
own frozen dataclass and the unions below list the full variant set.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional, Union

# ============================================
# Message Types
# ============================================


class MessageRole(str, Enum):
    """Role of a text message in a conversation."""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class TextMessage:
    """Plain text written by the user or the assistant.

    Attributes:
        role: Who wrote the message
        content: Message text
    """

    role: MessageRole
    content: str
    kind: Literal["text"] = field(default="text", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class FunctionCallMessage:
    """A tool invocation requested by the model.

    Attributes:
        name: Tool name being called
        arguments: Raw argument string as produced by the provider (JSON)
        call_id: Correlates the call with its FunctionResultMessage
    """

    name: str
    arguments: str
    call_id: str
    kind: Literal["function_call"] = field(default="function_call", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "name": self.name,
            "arguments": self.arguments,
            "call_id": self.call_id,
        }


@dataclass(frozen=True)
class FunctionResultMessage:
    """Output of a tool call, fed back to the model.

    Attributes:
        name: Tool name that produced the result
        result: Raw result string
        call_id: ID of the FunctionCallMessage this answers
    """

    name: str
    result: str
    call_id: str
    kind: Literal["function_result"] = field(default="function_result", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "name": self.name,
            "result": self.result,
            "call_id": self.call_id,
        }


@dataclass(frozen=True)
class ReasoningMessage:
    """Provider reasoning output (summary and raw content)."""

    summary: str
    content: str = ""
    kind: Literal["reasoning"] = field(default="reasoning", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "summary": self.summary, "content": self.content}


ChatMessage = Union[TextMessage, FunctionCallMessage, FunctionResultMessage, ReasoningMessage]


def user_message(content: str) -> TextMessage:
    """Create a user text message."""
    return TextMessage(role=MessageRole.USER, content=content)


def assistant_message(content: str) -> TextMessage:
    """Create an assistant text message."""
    return TextMessage(role=MessageRole.ASSISTANT, content=content)


def message_from_dict(data: dict[str, Any]) -> ChatMessage:
    """Decode a message produced by ``to_dict()``.

    Raises:
        ValueError: If the discriminator is missing or unknown
    """
    kind = data.get("kind")
    if kind == "text":
        return TextMessage(role=MessageRole(data["role"]), content=data.get("content", ""))
    if kind == "function_call":
        return FunctionCallMessage(
            name=data["name"],
            arguments=data.get("arguments", ""),
            call_id=data["call_id"],
        )
    if kind == "function_result":
        return FunctionResultMessage(
            name=data.get("name", ""),
            result=data.get("result", ""),
            call_id=data["call_id"],
        )
    if kind == "reasoning":
        return ReasoningMessage(
            summary=data.get("summary", ""),
            content=data.get("content", ""),
        )
    raise ValueError(f"Unknown chat message kind: {kind!r}")


# ============================================
# Chat Session
# ============================================


@dataclass
class ChatSession:
    """A named chat session.

    Attributes:
        name: Display name chosen by the user
        id: Unique session identifier (also the event bus topic)
        created_at: Creation timestamp
    """

    name: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("name is required")
        if self.created_at is None:
            self.created_at = datetime.utcnow()


# ============================================
# Tool System
# ============================================


@dataclass
class ToolDefinition:
    """Definition of an available tool.

    Attributes:
        name: Tool name (e.g., 'test-tool')
        description: Human-readable description
        parameters: JSON Schema for parameters
    """

    name: str
    description: str
    parameters: dict[str, Any]

    def to_responses_format(self) -> dict[str, Any]:
        """Convert to OpenAI Responses API function tool format."""
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    def to_openai_format(self) -> dict[str, Any]:
        """Convert to OpenAI chat completions function calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


# ============================================
# Provider Output
# ============================================


@dataclass(frozen=True)
class RefusalOutput:
    """The model declined to answer. Never stored in a transcript."""

    text: str
    kind: Literal["refusal"] = field(default="refusal", init=False)


OutputItem = Union[TextMessage, FunctionCallMessage, ReasoningMessage, RefusalOutput]


@dataclass
class ProviderResponse:
    """A completed provider response.

    Attributes:
        output: Output items in emission order
        response_id: Provider response identifier, if any
    """

    output: list[OutputItem] = field(default_factory=list)
    response_id: Optional[str] = None

    @property
    def function_calls(self) -> list[FunctionCallMessage]:
        return [item for item in self.output if isinstance(item, FunctionCallMessage)]

    @property
    def refusal(self) -> Optional[RefusalOutput]:
        for item in self.output:
            if isinstance(item, RefusalOutput):
                return item
        return None


@dataclass(frozen=True)
class TextDeltaEvent:
    """Incremental text token from a streaming provider."""

    text: str


@dataclass(frozen=True)
class ResponseCompletedEvent:
    """Terminal event of a provider stream."""

    response: ProviderResponse


ProviderStreamEvent = Union[TextDeltaEvent, ResponseCompletedEvent]


# ============================================
# Streaming Events
# ============================================


class ChatEventType(str, Enum):
    """Types of chat events published on the event bus."""

    MESSAGE = "message"  # Fully formed message
    DELTA_START = "delta_start"  # New streaming assistant turn
    DELTA = "delta"  # Cumulative text of the turn so far


@dataclass(frozen=True)
class MessageEvent:
    """A complete message: user input echo or a finished assistant turn."""

    session_id: str
    message: ChatMessage
    type: ChatEventType = field(default=ChatEventType.MESSAGE, init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "session_id": self.session_id,
            "message": self.message.to_dict(),
        }


@dataclass(frozen=True)
class DeltaStartEvent:
    """Signals the beginning of a streaming assistant turn."""

    session_id: str
    delta_id: str
    type: ChatEventType = field(default=ChatEventType.DELTA_START, init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "session_id": self.session_id,
            "delta_id": self.delta_id,
        }


@dataclass(frozen=True)
class DeltaEvent:
    """Cumulative (not incremental) text of the in-progress turn."""

    session_id: str
    delta_id: str
    text: str
    type: ChatEventType = field(default=ChatEventType.DELTA, init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "session_id": self.session_id,
            "delta_id": self.delta_id,
            "text": self.text,
        }


ChatEvent = Union[MessageEvent, DeltaStartEvent, DeltaEvent]


def new_delta_id() -> str:
    """Generate a fresh identifier for a streaming turn."""
    return uuid.uuid4().hex
