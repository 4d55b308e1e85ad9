"""
OpenAI LLM Provider.

Implements the ILLMProvider interface on top of the OpenAI Responses API.
Supports streaming, function calling, refusals and reasoning items.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Optional

from ..domain.entities import (
    ChatMessage,
    FunctionCallMessage,
    FunctionResultMessage,
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
)
from .base import BaseLLMProvider, ErrorType, LLMProviderConfig, LLMProviderError

logger = logging.getLogger(__name__)

# Lazy import to avoid requiring openai if not used
try:
    import openai
    from openai import AsyncOpenAI

    OPENAI_AVAILABLE = True
except ImportError:
    OPENAI_AVAILABLE = False
    openai = None
    AsyncOpenAI = None


class OpenAIProvider(BaseLLMProvider):
    """OpenAI provider implementation (Responses API).

    Supports:
    - GPT-4o, GPT-4o mini, GPT-4.1 and reasoning models
    - Streaming text deltas
    - Function calling
    - Refusal content surfaced as RefusalOutput

    Usage:
        config = LLMProviderConfig(
            api_key="sk-...",
            model="gpt-4o-mini",
        )
        provider = OpenAIProvider(config)

        async for event in provider.stream_generate(transcript, tools):
            print(event)
    """

    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(self, config: LLMProviderConfig):
        """Initialize the OpenAI provider.

        Args:
            config: Provider configuration

        Raises:
            ImportError: If openai package is not installed
        """
        if not OPENAI_AVAILABLE:
            raise ImportError(
                "openai package is required for OpenAIProvider. "
                "Install with: pip install openai"
            )

        super().__init__(config)

        self.client = AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )

    # ------------------------------------------------------------------
    # Request formatting
    # ------------------------------------------------------------------

    def _format_messages_for_api(
        self, transcript: list[ChatMessage]
    ) -> list[dict[str, Any]]:
        """Convert domain messages to Responses API input items.

        Reasoning items are not replayed: the API only accepts them back
        together with their provider-side IDs.
        """
        items = []
        for msg in transcript:
            item = self._message_to_input_item(msg)
            if item is not None:
                items.append(item)
        return items

    @staticmethod
    def _message_to_input_item(msg: ChatMessage) -> Optional[dict[str, Any]]:
        if isinstance(msg, TextMessage):
            return {"role": msg.role.value, "content": msg.content}
        if isinstance(msg, FunctionCallMessage):
            return {
                "type": "function_call",
                "call_id": msg.call_id,
                "name": msg.name,
                "arguments": msg.arguments,
            }
        if isinstance(msg, FunctionResultMessage):
            return {
                "type": "function_call_output",
                "call_id": msg.call_id,
                "output": msg.result,
            }
        return None

    @staticmethod
    def _input_item_to_message(
        item: dict[str, Any], tool_names: Optional[dict[str, str]] = None
    ) -> ChatMessage:
        """Decode an input item back into a domain message.

        Args:
            item: Input item produced by ``_format_messages_for_api``
            tool_names: call_id -> tool name, used to name function outputs

        Raises:
            ValueError: For item types that have no domain equivalent
        """
        item_type = item.get("type", "message")
        if item_type == "message":
            return TextMessage(role=MessageRole(item["role"]), content=item["content"])
        if item_type == "function_call":
            return FunctionCallMessage(
                name=item["name"],
                arguments=item["arguments"],
                call_id=item["call_id"],
            )
        if item_type == "function_call_output":
            return FunctionResultMessage(
                name=(tool_names or {}).get(item["call_id"], ""),
                result=item["output"],
                call_id=item["call_id"],
            )
        raise ValueError(f"Unsupported input item type: {item_type}")

    def _format_tools_for_api(
        self, tools: list[ToolDefinition]
    ) -> list[dict[str, Any]]:
        """Convert tools to Responses API format."""
        return [tool.to_responses_format() for tool in tools]

    def _build_request(
        self,
        transcript: list[ChatMessage],
        tools: Optional[list[ToolDefinition]],
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.config.model,
            "input": self._format_messages_for_api(transcript),
        }
        if tools:
            kwargs["tools"] = self._format_tools_for_api(tools)
        kwargs.update(self._request_options())
        return kwargs

    # ------------------------------------------------------------------
    # Response parsing
    # ------------------------------------------------------------------

    def _parse_response(self, response: Any) -> ProviderResponse:
        """Convert an SDK Response into a ProviderResponse."""
        output: list[OutputItem] = []
        for item in getattr(response, "output", None) or []:
            output.extend(self._parse_output_item(item))
        return ProviderResponse(output=output, response_id=getattr(response, "id", None))

    @staticmethod
    def _parse_output_item(item: Any) -> list[OutputItem]:
        item_type = getattr(item, "type", None)

        if item_type == "message":
            texts = []
            refusals = []
            for part in getattr(item, "content", None) or []:
                if part.type == "refusal":
                    refusals.append(part.refusal)
                else:
                    texts.append(getattr(part, "text", "") or "")

            parsed: list[OutputItem] = []
            if texts or not refusals:
                parsed.append(
                    TextMessage(role=MessageRole.ASSISTANT, content="\n".join(texts))
                )
            if refusals:
                parsed.append(RefusalOutput(text="\n".join(refusals)))
            return parsed

        if item_type == "function_call":
            return [
                FunctionCallMessage(
                    name=item.name,
                    arguments=item.arguments or "",
                    call_id=item.call_id,
                )
            ]

        if item_type == "reasoning":
            summary = "\n".join(s.text for s in (getattr(item, "summary", None) or []))
            content = "\n".join(
                c.text for c in (getattr(item, "content", None) or []) if getattr(c, "text", None)
            )
            return [ReasoningMessage(summary=summary, content=content)]

        logger.debug(f"Ignoring unsupported output item type: {item_type}")
        return []

    # ------------------------------------------------------------------
    # API calls
    # ------------------------------------------------------------------

    async def generate(
        self,
        transcript: list[ChatMessage],
        tools: Optional[list[ToolDefinition]] = None,
    ) -> ProviderResponse:
        """Generate a complete (non-streaming) response.

        Raises:
            LLMProviderError: On API errors
        """
        kwargs = self._build_request(transcript, tools)

        try:
            response = await self.client.responses.create(**kwargs)
        except Exception as e:
            raise self._translate_error(e)

        return self._parse_response(response)

    async def stream_generate(
        self,
        transcript: list[ChatMessage],
        tools: Optional[list[ToolDefinition]] = None,
    ) -> AsyncIterator[ProviderStreamEvent]:
        """Generate a streaming response.

        Yields:
            TextDeltaEvent per output text token, then one ResponseCompletedEvent

        Raises:
            LLMProviderError: On API errors or a failed response
        """
        kwargs = self._build_request(transcript, tools)

        try:
            stream = await self.client.responses.create(stream=True, **kwargs)

            async with stream:
                async for event in stream:
                    event_type = getattr(event, "type", None)

                    if event_type == "response.output_text.delta":
                        if event.delta:
                            yield TextDeltaEvent(text=event.delta)

                    elif event_type == "response.completed":
                        yield ResponseCompletedEvent(
                            response=self._parse_response(event.response)
                        )
                        return

                    elif event_type == "response.failed":
                        error = getattr(event.response, "error", None)
                        message = getattr(error, "message", None) or "response failed"
                        raise LLMProviderError(f"API error: {message}", ErrorType.RECOVERABLE)

                    elif event_type == "response.incomplete":
                        details = getattr(event.response, "incomplete_details", None)
                        reason = getattr(details, "reason", None) or "unknown"
                        raise LLMProviderError(f"Response incomplete: {reason}", ErrorType.FATAL)

                    elif event_type == "error":
                        raise LLMProviderError(
                            f"Stream error: {event.message}", ErrorType.RECOVERABLE
                        )

        except LLMProviderError:
            raise
        except Exception as e:
            raise self._translate_error(e)

        raise LLMProviderError(
            "Stream ended before the response completed", ErrorType.RECOVERABLE
        )

    @staticmethod
    def _translate_error(e: Exception) -> LLMProviderError:
        """Map SDK exceptions onto LLMProviderError."""
        if isinstance(e, openai.RateLimitError):
            logger.warning(f"Rate limited by OpenAI: {e}")
            return LLMProviderError(f"Rate limited: {e}", ErrorType.RATE_LIMIT, e)
        if isinstance(e, openai.APITimeoutError):
            logger.error(f"OpenAI API timeout: {e}")
            return LLMProviderError(f"Request timed out: {e}", ErrorType.TIMEOUT, e)
        if isinstance(e, openai.APIError):
            logger.error(f"OpenAI API error: {e}")
            return LLMProviderError(f"API error: {e}", ErrorType.RECOVERABLE, e)
        logger.exception(f"Unexpected error in OpenAI call: {e}")
        return LLMProviderError(str(e), ErrorType.FATAL, e)

    async def close(self) -> None:
        """Close the client."""
        await self.client.close()
