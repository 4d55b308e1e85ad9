"""Tool system for the agent chatbot.

Provides:
- Tool registry keyed by tool name
- Typed function tools backed by pydantic argument models
- The diagnostic ``test-tool``
"""

from .diagnostic import DIAGNOSTIC_TOOL_NAME, DiagnosticTool
from .function_tool import FunctionTool
from .registry import ToolRegistry

__all__ = [
    "DIAGNOSTIC_TOOL_NAME",
    "DiagnosticTool",
    "FunctionTool",
    "ToolRegistry",
]
