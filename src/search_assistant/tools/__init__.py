"""Tool system for the search assistant."""

from search_assistant.tools.base import Tool
from search_assistant.tools.registry import ToolRegistry
from search_assistant.tools.resources import (
    RESOURCE_TYPES,
    ResourceBackend,
    build_resource_registry,
)

__all__ = [
    "RESOURCE_TYPES",
    "ResourceBackend",
    "Tool",
    "ToolRegistry",
    "build_resource_registry",
]
