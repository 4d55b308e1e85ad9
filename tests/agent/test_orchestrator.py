"""
Tests for the agent orchestrator.

Runs the tool loop against a scripted provider and checks:
- The test-tool scenario (two iterations, exact result string)
- Unknown tool recovery
- Refusal, iteration limit, tool and provider failures
- Cumulative deltas that only ever grow
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.htmbot.agent.domain.entities import (
    FunctionCallMessage,
    FunctionResultMessage,
    ReasoningMessage,
    RefusalOutput,
    assistant_message,
    user_message,
)
from src.htmbot.agent.domain.exceptions import (
    AgentRefusalError,
    IterationLimitError,
    ToolExecutionError,
)
from src.htmbot.agent.orchestrator import AgentConfig, AgentOrchestrator
from src.htmbot.agent.providers.base import LLMProviderError
from src.htmbot.agent.tools import DiagnosticTool, ToolRegistry

PROMPT = "Can you call the available tool and tell me how it went?"


def tool_call(name="test-tool", arguments='{"name": "Alice"}', call_id="call_1"):
    return FunctionCallMessage(name=name, arguments=arguments, call_id=call_id)


def mock_tool(name="mock-tool", result="ok"):
    tool = MagicMock()
    tool.name = name
    tool.definition = MagicMock(name=f"{name}-definition")
    tool.execute = AsyncMock(return_value=result)
    return tool


class TestToolScenario:
    """The model calls test-tool once and then answers."""

    @pytest.mark.asyncio
    async def test_two_iterations_with_exact_result(self, make_provider, step):
        provider = make_provider(
            step(output=[tool_call()]),
            step(
                output=[assistant_message("The tool ran fine for Alice.")],
                deltas=["The tool ran ", "fine for Alice."],
            ),
        )
        orchestrator = AgentOrchestrator(llm_provider=provider)
        deltas = []

        messages = await orchestrator.stream_generate(
            [user_message(PROMPT)], [DiagnosticTool()], deltas.append
        )

        assert provider.calls == 2
        assert messages == [
            tool_call(),
            FunctionResultMessage(
                name="test-tool",
                result="Tool executed successfully with name set to: Alice",
                call_id="call_1",
            ),
            assistant_message("The tool ran fine for Alice."),
        ]
        assert deltas == ["The tool ran ", "The tool ran fine for Alice."]

    @pytest.mark.asyncio
    async def test_results_are_sent_back_to_the_model(self, make_provider, step):
        provider = make_provider(
            step(output=[tool_call()]),
            step(output=[assistant_message("done")]),
        )
        orchestrator = AgentOrchestrator(llm_provider=provider)

        await orchestrator.generate([user_message(PROMPT)], [DiagnosticTool()])

        second = provider.transcripts[1]
        assert second[0] == user_message(PROMPT)
        assert second[1] == tool_call()
        assert isinstance(second[2], FunctionResultMessage)
        assert second[2].call_id == "call_1"

    @pytest.mark.asyncio
    async def test_tool_schemas_are_offered(self, make_provider, step):
        provider = make_provider(step(output=[assistant_message("hi")]))
        orchestrator = AgentOrchestrator(llm_provider=provider)

        await orchestrator.generate([user_message("hi")], ToolRegistry([DiagnosticTool()]))

        definitions = provider.tools_seen[0]
        assert [d.name for d in definitions] == ["test-tool"]
        assert definitions[0].parameters["properties"]["name"]["type"] == "string"

    @pytest.mark.asyncio
    async def test_no_tools_sends_none(self, make_provider, step):
        provider = make_provider(step(output=[assistant_message("hi")]))
        orchestrator = AgentOrchestrator(llm_provider=provider)

        await orchestrator.generate([user_message("hi")])

        assert provider.tools_seen == [None]


class TestReturnedMessages:
    """Only messages produced during the call are returned."""

    @pytest.mark.asyncio
    async def test_history_is_not_returned(self, make_provider, step):
        history = [
            user_message("first"),
            assistant_message("first answer"),
            user_message("second"),
        ]
        provider = make_provider(step(output=[assistant_message("second answer")]))
        orchestrator = AgentOrchestrator(llm_provider=provider)

        messages = await orchestrator.generate(history, [])

        assert messages == [assistant_message("second answer")]
        assert provider.transcripts[0] == history

    @pytest.mark.asyncio
    async def test_history_is_not_mutated(self, make_provider, step):
        history = [user_message(PROMPT)]
        provider = make_provider(
            step(output=[tool_call()]),
            step(output=[assistant_message("done")]),
        )
        orchestrator = AgentOrchestrator(llm_provider=provider)

        await orchestrator.generate(history, [DiagnosticTool()])

        assert history == [user_message(PROMPT)]

    @pytest.mark.asyncio
    async def test_output_order_is_preserved(self, make_provider, step):
        reasoning = ReasoningMessage(summary="thinking about tools")
        provider = make_provider(
            step(output=[reasoning, assistant_message("Checking."), tool_call()]),
            step(output=[assistant_message("All good.")]),
        )
        orchestrator = AgentOrchestrator(llm_provider=provider)

        messages = await orchestrator.generate([user_message(PROMPT)], [DiagnosticTool()])

        assert [type(m) for m in messages] == [
            ReasoningMessage,
            type(assistant_message("")),
            FunctionCallMessage,
            FunctionResultMessage,
            type(assistant_message("")),
        ]

    @pytest.mark.asyncio
    async def test_results_follow_all_output_items(self, make_provider, step):
        first = mock_tool("first", result="one")
        second = mock_tool("second", result="two")
        provider = make_provider(
            step(output=[
                tool_call(name="first", arguments="{}", call_id="a"),
                tool_call(name="second", arguments="{}", call_id="b"),
            ]),
            step(output=[assistant_message("both done")]),
        )
        orchestrator = AgentOrchestrator(llm_provider=provider)

        messages = await orchestrator.generate([user_message("go")], [first, second])

        assert [(type(m).__name__, m.call_id) for m in messages[:4]] == [
            ("FunctionCallMessage", "a"),
            ("FunctionCallMessage", "b"),
            ("FunctionResultMessage", "a"),
            ("FunctionResultMessage", "b"),
        ]
        assert messages[2].result == "one"
        assert messages[3].result == "two"

    @pytest.mark.asyncio
    async def test_text_after_a_call_precedes_its_result(self, make_provider, step):
        provider = make_provider(
            step(output=[tool_call(), assistant_message("Calling it now.")]),
            step(output=[assistant_message("Done.")]),
        )
        orchestrator = AgentOrchestrator(llm_provider=provider)

        messages = await orchestrator.generate([user_message(PROMPT)], [DiagnosticTool()])

        assert messages[:3] == [
            tool_call(),
            assistant_message("Calling it now."),
            FunctionResultMessage(
                name="test-tool",
                result="Tool executed successfully with name set to: Alice",
                call_id="call_1",
            ),
        ]


class TestUnknownTool:
    """Calls to tools that are not registered."""

    @pytest.mark.asyncio
    async def test_error_result_is_synthesized(self, make_provider, step):
        provider = make_provider(
            step(output=[tool_call(name="missing-tool", arguments="{}")]),
            step(output=[assistant_message("Sorry, that tool is unavailable.")]),
        )
        orchestrator = AgentOrchestrator(llm_provider=provider)

        messages = await orchestrator.generate([user_message(PROMPT)], [DiagnosticTool()])

        assert messages[1] == FunctionResultMessage(
            name="missing-tool",
            result='{"error":"tool does not exist: missing-tool"}',
            call_id="call_1",
        )
        assert messages[-1] == assistant_message("Sorry, that tool is unavailable.")
        assert provider.calls == 2


class TestFailures:
    """Failures abort the turn."""

    @pytest.mark.asyncio
    async def test_refusal_fails_immediately(self, make_provider, step):
        tool = mock_tool("test-tool")
        provider = make_provider(
            step(output=[tool_call(), RefusalOutput(text="I can't help with that")]),
        )
        orchestrator = AgentOrchestrator(llm_provider=provider)

        with pytest.raises(AgentRefusalError) as exc_info:
            await orchestrator.generate([user_message("something bad")], [tool])

        assert exc_info.value.refusal == "I can't help with that"
        assert "message refused by the model: I can't help with that" in str(exc_info.value)
        tool.execute.assert_not_called()
        assert provider.calls == 1

    @pytest.mark.asyncio
    async def test_refusal_in_stream_mode(self, make_provider, step):
        provider = make_provider(
            step(output=[RefusalOutput(text="no")], deltas=[]),
        )
        orchestrator = AgentOrchestrator(llm_provider=provider)

        with pytest.raises(AgentRefusalError):
            await orchestrator.stream_generate([user_message("x")], [], lambda text: None)

    @pytest.mark.asyncio
    async def test_iteration_limit(self, make_provider, step):
        provider = make_provider(
            *[step(output=[tool_call(call_id=f"call_{i}")]) for i in range(15)]
        )
        orchestrator = AgentOrchestrator(llm_provider=provider)

        with pytest.raises(IterationLimitError) as exc_info:
            await orchestrator.generate([user_message(PROMPT)], [DiagnosticTool()])

        assert exc_info.value.message == "max number of iterations reached"
        assert exc_info.value.max_iterations == 15
        assert provider.calls == 15

    @pytest.mark.asyncio
    async def test_configured_iteration_limit(self, make_provider, step):
        provider = make_provider(
            *[step(output=[tool_call(call_id=f"call_{i}")]) for i in range(3)]
        )
        orchestrator = AgentOrchestrator(
            llm_provider=provider, config=AgentConfig(max_iterations=3)
        )

        with pytest.raises(IterationLimitError):
            await orchestrator.stream_generate(
                [user_message(PROMPT)], [DiagnosticTool()], lambda text: None
            )

        assert provider.calls == 3

    def test_invalid_iteration_limit(self):
        with pytest.raises(ValueError):
            AgentConfig(max_iterations=0)

    @pytest.mark.asyncio
    async def test_tool_error_is_fatal(self, make_provider, step):
        provider = make_provider(step(output=[tool_call(arguments="{}")]))
        orchestrator = AgentOrchestrator(llm_provider=provider)

        with pytest.raises(ToolExecutionError) as exc_info:
            await orchestrator.generate([user_message(PROMPT)], [DiagnosticTool()])

        assert exc_info.value.tool_name == "test-tool"
        assert exc_info.value.call_id == "call_1"
        assert isinstance(exc_info.value.__cause__, ValueError)
        assert str(exc_info.value.__cause__) == "name is required"
        assert provider.calls == 1

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self, make_provider, step):
        provider = make_provider(step(error=LLMProviderError("boom")))
        orchestrator = AgentOrchestrator(llm_provider=provider)

        with pytest.raises(LLMProviderError):
            await orchestrator.generate([user_message("hi")], [])

    @pytest.mark.asyncio
    async def test_stream_without_completion(self, make_provider, step):
        provider = make_provider(step(output=None, deltas=["partial"]))
        orchestrator = AgentOrchestrator(llm_provider=provider)

        with pytest.raises(LLMProviderError):
            await orchestrator.stream_generate([user_message("hi")], [], lambda text: None)

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, make_provider, step):
        provider = make_provider(step(error=asyncio.CancelledError()))
        orchestrator = AgentOrchestrator(llm_provider=provider)

        with pytest.raises(asyncio.CancelledError):
            await orchestrator.stream_generate([user_message("hi")], [], lambda text: None)


class TestDeltas:
    """Cumulative text reported through on_delta."""

    @pytest.mark.asyncio
    async def test_deltas_are_prefix_extensions_across_iterations(self, make_provider, step):
        provider = make_provider(
            step(output=[assistant_message("Let me check."), tool_call()], deltas=["Let me check."]),
            step(output=[assistant_message("Done!")], deltas=["Done", "!"]),
        )
        orchestrator = AgentOrchestrator(llm_provider=provider)
        deltas = []

        await orchestrator.stream_generate(
            [user_message(PROMPT)], [DiagnosticTool()], deltas.append
        )

        assert deltas == [
            "Let me check.",
            "Let me check.\n\nDone",
            "Let me check.\n\nDone!",
        ]
        for previous, current in zip(deltas, deltas[1:]):
            assert current.startswith(previous)
            assert len(current) > len(previous)

    @pytest.mark.asyncio
    async def test_empty_chunks_are_not_reported(self, make_provider, step):
        provider = make_provider(step(output=[assistant_message("a")], deltas=["", "a", ""]))
        orchestrator = AgentOrchestrator(llm_provider=provider)
        deltas = []

        await orchestrator.stream_generate([user_message("x")], [], deltas.append)

        assert deltas == ["a"]

    @pytest.mark.asyncio
    async def test_generate_does_not_stream(self, make_provider, step):
        provider = make_provider(step(output=[assistant_message("hi")], deltas=["hi"]))
        provider.stream_generate = MagicMock(side_effect=AssertionError("streamed"))
        orchestrator = AgentOrchestrator(llm_provider=provider)

        messages = await orchestrator.generate([user_message("x")], [])

        assert messages == [assistant_message("hi")]


class TestProviderStreams:
    """Provider streams are closed as soon as the orchestrator is done with them."""

    @pytest.mark.asyncio
    async def test_every_stream_is_closed_on_return(self, make_provider, step):
        provider = make_provider(
            step(output=[tool_call()], deltas=["Let me check."]),
            step(output=[assistant_message("Fine.")], deltas=["Fine."]),
        )
        orchestrator = AgentOrchestrator(llm_provider=provider)

        await orchestrator.stream_generate(
            [user_message(PROMPT)], [DiagnosticTool()], lambda text: None
        )

        assert provider.calls == 2
        assert provider.streams_closed == 2

    @pytest.mark.asyncio
    async def test_stream_is_closed_on_refusal(self, make_provider, step):
        provider = make_provider(step(output=[RefusalOutput(text="no")]))
        orchestrator = AgentOrchestrator(llm_provider=provider)

        with pytest.raises(AgentRefusalError):
            await orchestrator.stream_generate([user_message("hi")], [], lambda text: None)

        assert provider.streams_closed == 1

    @pytest.mark.asyncio
    async def test_stream_is_closed_when_callback_raises(self, make_provider, step):
        provider = make_provider(step(output=[assistant_message("Hi")], deltas=["Hi"]))
        orchestrator = AgentOrchestrator(llm_provider=provider)

        def on_delta(text):
            raise RuntimeError("viewer gone")

        with pytest.raises(RuntimeError):
            await orchestrator.stream_generate([user_message("hi")], [], on_delta)

        assert provider.streams_closed == 1


class TestHistoryPreparation:
    """History is cleaned up before it reaches the provider."""

    @pytest.mark.asyncio
    async def test_leading_orphan_result_is_dropped(self, make_provider, step):
        orphan = FunctionResultMessage(name="test-tool", result="old", call_id="gone")
        provider = make_provider(step(output=[assistant_message("hi")]))
        orchestrator = AgentOrchestrator(llm_provider=provider)

        messages = await orchestrator.generate([orphan, user_message("hello")], [])

        assert provider.transcripts[0] == [user_message("hello")]
        assert messages == [assistant_message("hi")]
