"""
Base LLM Provider Implementation.

Provides common functionality for all LLM providers.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Optional

from ..domain.entities import (
    ChatMessage,
    ProviderResponse,
    ProviderStreamEvent,
    ResponseCompletedEvent,
    ToolDefinition,
)
from ..domain.exceptions import AgentError
from ..domain.ports import ILLMProvider

logger = logging.getLogger(__name__)


class ErrorType(str, Enum):
    """Types of provider errors."""

    RECOVERABLE = "recoverable"  # Can retry
    FATAL = "fatal"  # Must abort
    TIMEOUT = "timeout"  # LLM timeout
    RATE_LIMIT = "rate_limit"  # Rate limited, back off


class LLMProviderError(AgentError):
    """Base exception for LLM provider errors."""

    default_code = "PROVIDER_ERROR"

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.RECOVERABLE,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message,
            details={"error_type": error_type.value},
            cause=original_error,
            recoverable=error_type != ErrorType.FATAL,
        )
        self.error_type = error_type
        self.original_error = original_error


@dataclass
class LLMProviderConfig:
    """Configuration for LLM providers.

    Attributes:
        api_key: API key for the provider
        model: Model name to use
        base_url: Optional custom base URL
        timeout: Request timeout in seconds
        max_retries: Maximum retry attempts made by the SDK client
        temperature: Sampling temperature (None = provider default)
        max_output_tokens: Maximum tokens per response (None = provider default)
        instructions: Optional system instructions sent with every request
    """

    api_key: str
    model: str
    base_url: Optional[str] = None
    timeout: float = 60.0
    max_retries: int = 3
    temperature: Optional[float] = None
    max_output_tokens: Optional[int] = None
    instructions: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)


class BaseLLMProvider(ILLMProvider, ABC):
    """Base class for LLM provider implementations.

    Provides common functionality like request options and a non-streaming
    fallback built on top of ``stream_generate``. Subclasses must implement
    the streaming call for their specific API.
    """

    def __init__(self, config: LLMProviderConfig):
        """Initialize the provider.

        Args:
            config: Provider configuration
        """
        self.config = config

    @property
    def model_name(self) -> str:
        """Return the model name."""
        return self.config.model

    def _format_tools_for_api(
        self, tools: list[ToolDefinition]
    ) -> list[dict[str, Any]]:
        """Convert tool definitions to API format.

        Subclasses should override for provider-specific formatting.
        """
        raise NotImplementedError("Subclass must implement _format_tools_for_api")

    def _request_options(self) -> dict[str, Any]:
        """Optional sampling parameters shared by every request."""
        options: dict[str, Any] = {}
        if self.config.temperature is not None:
            options["temperature"] = self.config.temperature
        if self.config.max_output_tokens:
            options["max_output_tokens"] = self.config.max_output_tokens
        if self.config.instructions:
            options["instructions"] = self.config.instructions
        options.update(self.config.extra)
        return options

    async def generate(
        self,
        transcript: list[ChatMessage],
        tools: Optional[list[ToolDefinition]] = None,
    ) -> ProviderResponse:
        """Generate a response by draining the stream.

        Providers with a dedicated non-streaming endpoint override this.
        """
        async for event in self.stream_generate(transcript, tools):
            if isinstance(event, ResponseCompletedEvent):
                return event.response

        raise LLMProviderError(
            "Provider stream ended without a completed response",
            error_type=ErrorType.FATAL,
        )

    @abstractmethod
    def stream_generate(
        self,
        transcript: list[ChatMessage],
        tools: Optional[list[ToolDefinition]] = None,
    ) -> AsyncIterator[ProviderStreamEvent]:
        """Stream a response. Must be implemented by subclasses."""
        pass

    async def close(self) -> None:
        """Release client resources."""
        pass

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
