"""
htmbot Chat Agent Module.

An LLM-backed chat agent that can call tools mid-conversation while any
number of browser tabs watch the conversation update live.

Architecture:
- Domain: Core entities, exceptions and port interfaces
- Providers: LLM provider implementations (OpenAI Responses API)
- Tools: Tool registry, typed function tools, diagnostic tool
- Orchestrator: Tool-calling loop with streamed text deltas
- Pub/Sub: In-process event bus with drop-on-full subscriber queues
- Message Processor: Single worker turning user messages into turns
- Memory: PostgreSQL and in-memory chat repositories
- API: FastAPI router with Server-Sent Events

Key Features:
- One orchestrator run at a time, process wide
- Cumulative deltas keyed by a per-turn delta ID
- Failed turns leave no partial assistant output behind
- Backpressure surfaced to the request path as "try again"
"""

# Domain entities
from .domain.entities import (
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
    ReasoningMessage,
    TextMessage,
    ToolDefinition,
)
from .domain.exceptions import (
    AgentError,
    AgentRefusalError,
    IterationLimitError,
    QueueFullError,
    SessionNotFoundError,
    ToolExecutionError,
)

# Orchestrator
from .orchestrator import AgentConfig, AgentOrchestrator

# Pipeline
from .chat_service import ChatService
from .message_processor import MessageEnqueuer, MessageProcessor, TurnState
from .pubsub import ChannelPubSub

# Memory
from .memory import InMemoryChatRepository, PostgresChatRepository

# Tools
from .tools import DiagnosticTool, FunctionTool, ToolRegistry

# Providers
from .providers import LLMProviderConfig, LLMProviderError, OpenAIProvider

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
    "ReasoningMessage",
    "TextMessage",
    "ToolDefinition",
    # Exceptions
    "AgentError",
    "AgentRefusalError",
    "IterationLimitError",
    "QueueFullError",
    "SessionNotFoundError",
    "ToolExecutionError",
    # Orchestrator
    "AgentOrchestrator",
    "AgentConfig",
    # Pipeline
    "ChatService",
    "ChannelPubSub",
    "MessageEnqueuer",
    "MessageProcessor",
    "TurnState",
    # Memory
    "InMemoryChatRepository",
    "PostgresChatRepository",
    # Tools
    "DiagnosticTool",
    "FunctionTool",
    "ToolRegistry",
    # Providers
    "LLMProviderConfig",
    "LLMProviderError",
    "OpenAIProvider",
]
