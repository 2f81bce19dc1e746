"""Read-only Azure AI Search resource tools.

The tools only validate and normalise the model's arguments; the actual
lookups are delegated to a :class:`ResourceBackend` bound to the selected
connection.
"""

from __future__ import annotations

from typing import Any, Protocol

from search_assistant.tools.base import Tool, string_arg
from search_assistant.tools.registry import ToolRegistry
from search_assistant.types import ToolParameter

RESOURCE_TYPES: list[str] = [
    "indexes",
    "indexers",
    "datasources",
    "skillsets",
    "synonymmaps",
    "aliases",
    "knowledgeSources",
    "knowledgeBases",
]


class ResourceBackend(Protocol):
    """Read-only access to the resources of one search service."""

    async def get_resource(self, resource_type: str, name: str) -> Any: ...

    async def list_resources(self, resource_types: list[str]) -> list[dict[str, Any]]: ...

    async def get_indexer_status(self, name: str) -> Any: ...

    async def get_service_overview(self) -> Any: ...


def normalize_resource_types(types: Any) -> list[str] | None:
    """Validate an optional ``types`` filter.

    Returns ``None`` when no filter was given (meaning all types).  Unknown
    entries are dropped; a filter with no valid entry is an error.
    """
    if not isinstance(types, list):
        return None
    requested = [str(t).strip() for t in types if str(t).strip()]
    if not requested:
        return None
    valid = [t for t in requested if t in RESOURCE_TYPES]
    if not valid:
        raise ValueError("No valid resource types provided.")
    return valid


class ResourceReadTool(Tool):
    name = "resource_read"
    description = "Return JSON for an Azure AI Search resource from the selected connection."
    parameters = [
        ToolParameter(
            name="type", type="string", description="Resource type to read",
            enum=RESOURCE_TYPES,
        ),
        ToolParameter(
            name="name", type="string",
            description="Name of the resource to retrieve from the selected connection",
        ),
    ]

    def __init__(self, backend: ResourceBackend) -> None:
        self._backend = backend

    async def execute(self, **kwargs: Any) -> Any | None:
        resource_type = string_arg(kwargs, "type")
        name = string_arg(kwargs, "name")
        if not resource_type or not name:
            return None
        if resource_type not in RESOURCE_TYPES:
            raise ValueError(f"Unsupported resource type: {resource_type}")
        return await self._backend.get_resource(resource_type, name)

    def describe_call(self, arguments: dict[str, Any]) -> str:
        resource_type = string_arg(arguments, "type")
        name = string_arg(arguments, "name")
        if resource_type and name:
            return f'Calling tool: resource_read(type="{resource_type}", name="{name}")'
        return "Calling tool: resource_read(...)"


class ResourceListTool(Tool):
    name = "resource_list"
    description = (
        "Return a list of Azure AI Search resources from the selected connection. "
        "Optionally filter by resource types."
    )
    parameters = [
        ToolParameter(
            name="types", type="array",
            description=(
                "Optional list of resource types to include. "
                "If omitted, return all resource types."
            ),
            required=False,
            items={"type": "string", "enum": RESOURCE_TYPES},
        ),
    ]

    def __init__(self, backend: ResourceBackend) -> None:
        self._backend = backend

    async def execute(self, **kwargs: Any) -> Any | None:
        types = normalize_resource_types(kwargs.get("types"))
        return await self._backend.list_resources(types or list(RESOURCE_TYPES))

    def describe_call(self, arguments: dict[str, Any]) -> str:
        types = arguments.get("types")
        if isinstance(types, list):
            names = [str(t).strip() for t in types if str(t).strip()]
            if names:
                quoted = ", ".join(f'"{t}"' for t in names)
                return f"Calling tool: resource_list(types=[{quoted}])"
        return "Calling tool: resource_list()"


class IndexerStatusTool(Tool):
    name = "indexer_status"
    description = "Return the run status for the given indexer name from the selected connection."
    parameters = [
        ToolParameter(
            name="name", type="string", description="Indexer name to retrieve status for",
        ),
    ]

    def __init__(self, backend: ResourceBackend) -> None:
        self._backend = backend

    async def execute(self, **kwargs: Any) -> Any | None:
        name = string_arg(kwargs, "name")
        if not name:
            return None
        return await self._backend.get_indexer_status(name)

    def describe_call(self, arguments: dict[str, Any]) -> str:
        name = string_arg(arguments, "name")
        if name:
            return f'Calling tool: indexer_status(name="{name}")'
        return "Calling tool: indexer_status(...)"


class ServiceDetailsTool(Tool):
    name = "service_details"
    description = "Return the full service overview details for the selected connection."
    parameters: list[ToolParameter] = []

    def __init__(self, backend: ResourceBackend) -> None:
        self._backend = backend

    async def execute(self, **kwargs: Any) -> Any | None:
        return await self._backend.get_service_overview()

    def describe_call(self, arguments: dict[str, Any]) -> str:
        return "Calling tool: service_details()"


def build_resource_registry(backend: ResourceBackend) -> ToolRegistry:
    """Registry with every resource tool bound to *backend*."""
    return ToolRegistry(
        [
            ResourceReadTool(backend),
            ResourceListTool(backend),
            IndexerStatusTool(backend),
            ServiceDetailsTool(backend),
        ],
        note=f"Resource types: {', '.join(RESOURCE_TYPES)}.",
    )
