"""Shared fakes for agent tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import AsyncIterator, Optional, Sequence

import pytest

from src.htmbot.agent.domain.entities import (
    ChatMessage,
    OutputItem,
    ProviderResponse,
    ProviderStreamEvent,
    ResponseCompletedEvent,
    TextDeltaEvent,
    ToolDefinition,
)
from src.htmbot.agent.domain.ports import ILLMProvider


@dataclass
class Step:
    """One scripted provider round trip.

    ``output`` of None means the stream ends without a completion event.
    """

    output: Optional[Sequence[OutputItem]] = ()
    deltas: Sequence[str] = ()
    error: Optional[BaseException] = None


@dataclass
class ScriptedProvider(ILLMProvider):
    """Provider replaying a fixed list of steps and recording requests."""

    steps: list[Step] = field(default_factory=list)
    transcripts: list[list[ChatMessage]] = field(default_factory=list)
    tools_seen: list[Optional[list[ToolDefinition]]] = field(default_factory=list)
    streams_closed: int = 0

    @property
    def model_name(self) -> str:
        return "scripted"

    @property
    def calls(self) -> int:
        return len(self.transcripts)

    def _next(self, transcript, tools) -> Step:
        self.transcripts.append(list(transcript))
        self.tools_seen.append(tools)
        if not self.steps:
            raise AssertionError("provider called more often than scripted")
        return self.steps.pop(0)

    async def generate(self, transcript, tools=None) -> ProviderResponse:
        step = self._next(transcript, tools)
        if step.error is not None:
            raise step.error
        return ProviderResponse(output=list(step.output or ()))

    async def stream_generate(self, transcript, tools=None) -> AsyncIterator[ProviderStreamEvent]:
        step = self._next(transcript, tools)
        try:
            for delta in step.deltas:
                yield TextDeltaEvent(text=delta)
            if step.error is not None:
                raise step.error
            if step.output is not None:
                yield ResponseCompletedEvent(response=ProviderResponse(output=list(step.output)))
        finally:
            self.streams_closed += 1


@pytest.fixture
def make_provider():
    """Factory for ScriptedProvider instances."""

    def _make(*steps: Step) -> ScriptedProvider:
        return ScriptedProvider(steps=list(steps))

    return _make


@pytest.fixture
def step():
    """The Step constructor, for scripting provider round trips."""
    return Step
