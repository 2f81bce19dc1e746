"""Async Tool abstract base class."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from search_assistant.types import ToolParameter


class Tool(ABC):
    """Base class for read-only assistant tools.

    Subclasses set ``name``, ``description``, ``parameters`` as class
    attributes and implement :meth:`execute`.  ``execute`` returns the raw
    result, or ``None`` when the arguments are not enough to run.
    """

    name: str
    description: str
    parameters: list[ToolParameter]

    @abstractmethod
    async def execute(self, **kwargs: Any) -> Any | None:
        """Execute the tool asynchronously."""

    def describe_call(self, arguments: dict[str, Any]) -> str:
        """Short label shown in the conversation while the tool runs."""
        return f"Calling tool: {self.name}(...)"

    def to_function_schema(self) -> dict[str, Any]:
        """Convert to the legacy ``functions`` calling format."""
        properties: dict[str, Any] = {}
        required: list[str] = []
        for p in self.parameters:
            prop: dict[str, Any] = {
                "type": p.type,
                "description": p.description,
            }
            if p.enum:
                prop["enum"] = p.enum
            if p.items:
                prop["items"] = p.items
            properties[p.name] = prop
            if p.required:
                required.append(p.name)

        return {
            "name": self.name,
            "description": self.description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": required,
            },
        }

    def to_compact_description(self) -> str:
        """One-line description for the system prompt."""
        params = ", ".join(
            p.name + ("" if p.required else "?") for p in self.parameters
        )
        return f"{self.name}({params}) -> {self.description}"


def string_arg(arguments: dict[str, Any], key: str) -> str:
    """Return ``arguments[key]`` trimmed, or ``""`` if it is not a string."""
    value = arguments.get(key)
    return value.strip() if isinstance(value, str) else ""
