"""
Tool Registry.

Holds the tools available to the agent, keyed by name, and exposes their
definitions for the provider request.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from ..domain.entities import ToolDefinition
from ..domain.ports import ILLMTool

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry of agent tools.

    Usage:
        registry = ToolRegistry([DiagnosticTool()])

        # Schemas for the provider
        definitions = registry.definitions()

        # Lookup by the name the model used
        tool = registry.get("test-tool")

    Names are unique; registering a second tool under an existing name
    replaces the first one.
    """

    def __init__(self, tools: Optional[Iterable[ILLMTool]] = None):
        self._tools: dict[str, ILLMTool] = {}
        for tool in tools or ():
            self.register(tool)

    def register(self, tool: ILLMTool) -> None:
        """Add a tool to the registry.

        Args:
            tool: Tool to expose to the model
        """
        if tool.name in self._tools:
            logger.warning(f"Replacing already registered tool: {tool.name}")
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def get(self, name: str) -> Optional[ILLMTool]:
        """Get a tool by name, or None if the model asked for an unknown one."""
        return self._tools.get(name)

    def definitions(self) -> list[ToolDefinition]:
        """Get definitions of all registered tools, in registration order."""
        return [tool.definition for tool in self._tools.values()]
