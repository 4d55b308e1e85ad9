"""Agent Orchestrator.

The orchestrator runs the tool-calling loop of one assistant turn:
- LLM provider for response generation
- Tool execution with unknown-tool recovery
- Cumulative text deltas for live viewers

Provides:
- Main orchestrator and configuration
- Conversation history normalization
- Tool execution
"""

from .agent import AgentConfig, AgentOrchestrator
from .conversation_manager import ConversationManager
from .tool_executor import ToolExecutor, unknown_tool_result

__all__ = [
    # Main orchestrator
    "AgentOrchestrator",
    "AgentConfig",
    # Helpers
    "ConversationManager",
    "ToolExecutor",
    "unknown_tool_result",
]
