"""Tool registry: the executor the orchestrator calls into."""

from __future__ import annotations

import logging
from typing import Any

from search_assistant.errors import ToolExecutionError
from search_assistant.tools.base import Tool
from search_assistant.types import ToolOutcome

_logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry of available tools with async execution."""

    def __init__(self, tools: list[Tool] | None = None, note: str = "") -> None:
        self._tools: dict[str, Tool] = {}
        self._note = note
        for tool in tools or ():
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Register a tool instance."""
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        """Look up a tool by name."""
        return self._tools.get(name)

    def list_tools(self) -> list[Tool]:
        """Return all registered tools."""
        return list(self._tools.values())

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools.keys())

    def describe_call(self, tool_name: str, arguments: dict[str, Any]) -> str:
        tool = self._tools.get(tool_name)
        if tool is None:
            return f"Calling tool: {tool_name}(...)"
        return tool.describe_call(arguments)

    async def execute(self, tool_name: str, arguments: dict[str, Any]) -> ToolOutcome | None:
        """Execute a tool by name.

        Returns ``None`` if the tool is unknown or could not run with the
        given arguments.  Failures inside the tool raise ToolExecutionError.
        """
        tool = self._tools.get(tool_name)
        if tool is None:
            _logger.warning("Unknown tool requested: %s", tool_name)
            return None

        label = tool.describe_call(arguments)
        try:
            data = await tool.execute(**arguments)
        except ToolExecutionError:
            raise
        except Exception as e:
            raise ToolExecutionError(tool_name, f"Tool '{tool_name}' failed: {e}") from e

        if data is None:
            _logger.info("Tool %s returned no result", tool_name)
            return None
        _logger.info("Tool %s executed", tool_name)
        return ToolOutcome(label=label, data=data)

    def function_schemas(self) -> list[dict[str, Any]]:
        """Return legacy function-calling schemas for all registered tools."""
        return [t.to_function_schema() for t in self._tools.values()]

    def summary(self) -> str:
        """Compact tool summary for the system prompt."""
        if not self._tools:
            return ""
        parts = ["Available tools:"]
        parts.extend(t.to_compact_description() for t in self._tools.values())
        if self._note:
            parts.append(self._note)
        return " ".join(parts)
