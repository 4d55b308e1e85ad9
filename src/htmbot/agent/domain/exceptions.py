"""Exception hierarchy for the agent core.

Exception Hierarchy:
    AgentError (base)
    ├── AgentRefusalError (fatal to the turn - model declined)
    ├── IterationLimitError (fatal to the turn - tool loop did not settle)
    ├── ToolExecutionError (fatal to the turn - a tool raised)
    ├── QueueFullError (recoverable - caller may try again)
    ├── SessionNotFoundError (caller error)
    └── SubscriptionClosed (end of a cancelled subscription)

Provider transport failures raise LLMProviderError from
``providers.base``, which is also an AgentError.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional


class AgentError(Exception):
    """Base exception for all agent errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "ITERATION_LIMIT")
        details: Additional context as a dictionary
        timestamp: When the error occurred
        recoverable: Whether retrying the same operation might succeed
    """

    default_code = "AGENT_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.timestamp = datetime.utcnow()
        self.recoverable = recoverable

        if cause:
            self.__cause__ = cause

    def __str__(self) -> str:
        parts = [f"[{self.code}]", self.message]
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)


class AgentRefusalError(AgentError):
    """The model refused to answer. Never retried."""

    default_code = "MODEL_REFUSAL"

    def __init__(self, refusal: str):
        super().__init__(
            f"message refused by the model: {refusal}",
            details={"refusal": refusal},
        )
        self.refusal = refusal


class IterationLimitError(AgentError):
    """The model kept requesting tools past the iteration bound."""

    default_code = "ITERATION_LIMIT"

    def __init__(self, max_iterations: int):
        super().__init__(
            "max number of iterations reached",
            details={"max_iterations": max_iterations},
        )
        self.max_iterations = max_iterations


class ToolExecutionError(AgentError):
    """A registered tool raised while executing."""

    default_code = "TOOL_EXECUTION_FAILED"

    def __init__(self, tool_name: str, call_id: str, cause: Exception):
        super().__init__(
            f"error executing tool {tool_name}: {cause}",
            details={"tool": tool_name, "call_id": call_id},
            cause=cause,
        )
        self.tool_name = tool_name
        self.call_id = call_id


class QueueFullError(AgentError):
    """The intake queue stayed full; the caller should try again later."""

    default_code = "QUEUE_FULL"

    def __init__(self, capacity: int):
        super().__init__(
            "the assistant is busy, please try again",
            details={"capacity": capacity},
            recoverable=True,
        )
        self.capacity = capacity


class SessionNotFoundError(AgentError):
    """The requested chat session does not exist."""

    default_code = "SESSION_NOT_FOUND"

    def __init__(self, session_id: str):
        super().__init__(
            f"chat session {session_id} not found",
            details={"session_id": session_id},
        )
        self.session_id = session_id


class SubscriptionClosed(AgentError):
    """The subscription was cancelled and has no pending events left."""

    default_code = "SUBSCRIPTION_CLOSED"

    def __init__(self, topic: str):
        super().__init__(f"subscription to {topic} is closed", details={"topic": topic})
        self.topic = topic
