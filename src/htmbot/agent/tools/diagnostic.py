"""Diagnostic tool used to check the function calling round trip."""

from __future__ import annotations

from pydantic import BaseModel

from .function_tool import FunctionTool

DIAGNOSTIC_TOOL_NAME = "test-tool"


class DiagnosticArgs(BaseModel):
    name: str = ""


async def _run_diagnostic(args: DiagnosticArgs) -> str:
    if not args.name:
        raise ValueError("name is required")
    return f"Tool executed successfully with name set to: {args.name}"


class DiagnosticTool(FunctionTool):
    """Echoes the ``name`` argument back.

    Prompting the model with "call the available tool" should make it call
    this tool once and then answer in text, which exercises a full two
    iteration turn.
    """

    def __init__(self):
        super().__init__(
            name=DIAGNOSTIC_TOOL_NAME,
            description="Call this tool when prompted to test a tool",
            args_model=DiagnosticArgs,
            func=_run_diagnostic,
            parameters={
                "type": "object",
                "properties": {
                    "name": {
                        "type": "string",
                        "description": "a random name",
                    },
                },
            },
        )
