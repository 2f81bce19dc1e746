"""Core chat-turn components."""

from search_assistant.core.orchestrator import (
    ToolExecutor,
    ToolOrchestrator,
    TurnResult,
    parse_tool_call,
)

__all__ = [
    "ToolExecutor",
    "ToolOrchestrator",
    "TurnResult",
    "parse_tool_call",
]
