"""Domain entities, exceptions and port interfaces for the agent module."""

from .entities import (
    ChatEvent,
    ChatEventType,
    ChatMessage,
    ChatSession,
    DeltaEvent,
    DeltaStartEvent,
    FunctionCallMessage,
    FunctionResultMessage,
    MessageEvent,
    MessageRole,
    OutputItem,
    ProviderResponse,
    ProviderStreamEvent,
    ReasoningMessage,
    RefusalOutput,
    ResponseCompletedEvent,
    TextDeltaEvent,
    TextMessage,
    ToolDefinition,
    assistant_message,
    message_from_dict,
    new_delta_id,
    user_message,
)
from .exceptions import (
    AgentError,
    AgentRefusalError,
    IterationLimitError,
    QueueFullError,
    SessionNotFoundError,
    ToolExecutionError,
)
from .ports import (
    IChatRepository,
    ILLMProvider,
    ILLMTool,
    IMessageEnqueuer,
    IPubSub,
)

__all__ = [
    # Entities
    "ChatEvent",
    "ChatEventType",
    "ChatMessage",
    "ChatSession",
    "DeltaEvent",
    "DeltaStartEvent",
    "FunctionCallMessage",
    "FunctionResultMessage",
    "MessageEvent",
    "MessageRole",
    "OutputItem",
    "ProviderResponse",
    "ProviderStreamEvent",
    "ReasoningMessage",
    "RefusalOutput",
    "ResponseCompletedEvent",
    "TextDeltaEvent",
    "TextMessage",
    "ToolDefinition",
    "assistant_message",
    "message_from_dict",
    "new_delta_id",
    "user_message",
    # Exceptions
    "AgentError",
    "AgentRefusalError",
    "IterationLimitError",
    "QueueFullError",
    "SessionNotFoundError",
    "ToolExecutionError",
    # Ports
    "IChatRepository",
    "ILLMProvider",
    "ILLMTool",
    "IMessageEnqueuer",
    "IPubSub",
]
