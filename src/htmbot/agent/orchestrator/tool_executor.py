"""
Tool Executor.

Executes function calls requested by the model and builds the matching
result messages. Routes calls by tool name through a ToolRegistry.
"""

from __future__ import annotations

import json
import logging

from ..domain.entities import FunctionCallMessage, FunctionResultMessage
from ..domain.exceptions import ToolExecutionError
from ..tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


def unknown_tool_result(name: str) -> str:
    """Structured error payload fed back when the model calls a missing tool."""
    return json.dumps({"error": f"tool does not exist: {name}"}, separators=(",", ":"))


class ToolExecutor:
    """Executes tool calls for the orchestration loop.

    Usage:
        executor = ToolExecutor(tool_registry)
        result_message = await executor.execute(call)

    Error policy:
        - Unknown tool: a result carrying an error payload is returned so
          the model can react on its next iteration.
        - Tool raised: ToolExecutionError, which aborts the turn.
        - Cancellation propagates untouched.
    """

    def __init__(self, tool_registry: ToolRegistry):
        """Initialize the tool executor.

        Args:
            tool_registry: Registry used to resolve tool names
        """
        self.tools = tool_registry

    async def execute(self, call: FunctionCallMessage) -> FunctionResultMessage:
        """Execute one function call.

        Args:
            call: Function call emitted by the model

        Returns:
            FunctionResultMessage correlated by call_id

        Raises:
            ToolExecutionError: If the tool raised
        """
        tool = self.tools.get(call.name)
        if tool is None:
            logger.warning(f"Model called unknown tool: {call.name}")
            return FunctionResultMessage(
                name=call.name,
                result=unknown_tool_result(call.name),
                call_id=call.call_id,
            )

        logger.info(f"Executing tool: {call.name}")

        try:
            result = await tool.execute(call.arguments)
        except Exception as e:
            logger.error(f"Tool {call.name} failed: {e}")
            raise ToolExecutionError(call.name, call.call_id, e) from e

        logger.debug(f"Tool {call.name} result: {result}")
        return FunctionResultMessage(name=call.name, result=result, call_id=call.call_id)
