"""
Agent Orchestrator.

Drives the tool-calling conversation loop against an LLM provider:
- Provider calls, streamed or not
- Tool execution and result handling
- Cumulative text deltas for live viewers
"""

from __future__ import annotations

import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence, Union

from ..domain.entities import (
    ChatMessage,
    ProviderResponse,
    ResponseCompletedEvent,
    TextDeltaEvent,
    ToolDefinition,
)
from ..domain.exceptions import AgentRefusalError, IterationLimitError
from ..domain.ports import ILLMProvider, ILLMTool
from ..providers.base import ErrorType, LLMProviderError
from ..tools.registry import ToolRegistry
from .conversation_manager import ConversationManager
from .tool_executor import ToolExecutor

logger = logging.getLogger(__name__)

DeltaCallback = Callable[[str], None]
Tools = Union[ToolRegistry, Iterable[ILLMTool], None]

# Joins text produced in different iterations of the same turn
SEGMENT_SEPARATOR = "\n\n"


@dataclass
class AgentConfig:
    """Configuration for the agent orchestrator.

    Attributes:
        max_iterations: Provider round trips allowed per turn
    """

    max_iterations: int = 15

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")


class _DeltaAccumulator:
    """Running text of a turn, reported through ``on_delta``.

    The text only ever grows: a segment from a later iteration is appended
    after a separator instead of replacing what was already sent.
    """

    def __init__(self, on_delta: DeltaCallback):
        self.on_delta = on_delta
        self.text = ""
        self._segment_open = False

    def start_segment(self) -> None:
        self._segment_open = False

    def add(self, chunk: str) -> None:
        if not chunk:
            return
        if not self._segment_open:
            if self.text:
                self.text += SEGMENT_SEPARATOR
            self._segment_open = True
        self.text += chunk
        self.on_delta(self.text)


class AgentOrchestrator:
    """Main agent orchestration logic.

    Manages the tool loop:
    1. Send the transcript and tool schemas to the provider
    2. Append every output item in emission order
    3. Execute each function call and append its result
    4. Loop while the model keeps calling tools

    Usage:
        orchestrator = AgentOrchestrator(llm_provider=openai_provider)

        new_messages = await orchestrator.stream_generate(
            history,
            tools=[DiagnosticTool()],
            on_delta=lambda text: print(text),
        )

    Failures (refusal, iteration limit, tool error, provider error) abort
    the call and nothing is returned. Cancellation propagates untouched.
    """

    def __init__(
        self,
        llm_provider: ILLMProvider,
        config: Optional[AgentConfig] = None,
        conversation_manager: Optional[ConversationManager] = None,
    ):
        """Initialize the agent orchestrator.

        Args:
            llm_provider: LLM provider for response generation
            config: Agent configuration
            conversation_manager: History normalizer
        """
        self.llm = llm_provider
        self.config = config or AgentConfig()
        self.conversations = conversation_manager or ConversationManager()

    async def generate(
        self,
        history: Sequence[ChatMessage],
        tools: Tools = None,
    ) -> list[ChatMessage]:
        """Run one turn without streaming.

        Args:
            history: Conversation so far, ending with the user's message
            tools: Tools the model may call

        Returns:
            Messages produced during this call, in emission order
        """
        return await self._run(history, tools)

    async def stream_generate(
        self,
        history: Sequence[ChatMessage],
        tools: Tools,
        on_delta: DeltaCallback,
    ) -> list[ChatMessage]:
        """Run one turn, streaming assistant text.

        ``on_delta`` is called on the caller's task with the cumulative
        text of the turn every time new text arrives.

        Returns:
            Messages produced during this call, in emission order
        """
        return await self._run(history, tools, on_delta)

    async def _run(
        self,
        history: Sequence[ChatMessage],
        tools: Tools,
        on_delta: Optional[DeltaCallback] = None,
    ) -> list[ChatMessage]:
        registry = tools if isinstance(tools, ToolRegistry) else ToolRegistry(tools)
        executor = ToolExecutor(registry)
        definitions = registry.definitions() or None
        accumulator = _DeltaAccumulator(on_delta) if on_delta else None

        transcript = self.conversations.prepare_history(history)
        initial_length = len(transcript)

        for iteration in range(1, self.config.max_iterations + 1):
            logger.debug(
                f"Iteration {iteration}/{self.config.max_iterations} "
                f"with {len(transcript)} messages"
            )

            if accumulator:
                accumulator.start_segment()
                response = await self._stream_response(transcript, definitions, accumulator)
            else:
                response = await self.llm.generate(transcript, definitions)

            refusal = response.refusal
            if refusal is not None:
                logger.warning(f"Model refused: {refusal.text}")
                raise AgentRefusalError(refusal.text)

            transcript.extend(response.output)

            calls = response.function_calls
            for call in calls:
                transcript.append(await executor.execute(call))

            if not calls:
                new_messages = transcript[initial_length:]
                logger.info(
                    f"Turn completed after {iteration} iterations "
                    f"with {len(new_messages)} new messages"
                )
                return new_messages

        logger.error(f"Turn exceeded {self.config.max_iterations} iterations")
        raise IterationLimitError(self.config.max_iterations)

    async def _stream_response(
        self,
        transcript: list[ChatMessage],
        definitions: Optional[list[ToolDefinition]],
        accumulator: _DeltaAccumulator,
    ) -> ProviderResponse:
        async with aclosing(self.llm.stream_generate(transcript, definitions)) as events:
            async for event in events:
                if isinstance(event, TextDeltaEvent):
                    accumulator.add(event.text)
                elif isinstance(event, ResponseCompletedEvent):
                    return event.response

        raise LLMProviderError(
            "Provider stream ended without a completed response",
            error_type=ErrorType.FATAL,
        )
