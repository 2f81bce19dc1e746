"""System prompt for the search assistant."""

from __future__ import annotations

from dataclasses import dataclass

_ASSISTANT_RULES = [
    "You are the Azure AI Search Explorer assistant.",
    "Only answer questions about Azure AI Search or this application. "
    "If asked about anything else, refuse briefly and redirect to Azure AI Search topics.",
    "Use the internal read-only resource tool to retrieve Azure AI Search resources "
    "for the selected connection when needed.",
    'Page Context: Each user message may include a "Page Context" block describing the '
    "current screen (resource type, name, action). Use it to interpret relative "
    'references like "this" or "here".',
    "Never ask the user for tool parameters; infer them from the conversation or "
    "request clarification about the resource itself.",
]


def connection_context(
    name: str | None = None,
    endpoint: str | None = None,
    loaded: bool = True,
) -> str:
    if not loaded:
        return "Selected connection could not be loaded."
    if endpoint is None:
        return "No connection selected."
    return f"Selected connection: {name or 'Unnamed'} ({endpoint})."


def build_system_prompt(
    connection_name: str | None = None,
    endpoint: str | None = None,
    loaded: bool = True,
) -> str:
    """Assistant scope rules followed by a line about the active connection."""
    return " ".join([*_ASSISTANT_RULES, connection_context(connection_name, endpoint, loaded)])


@dataclass
class PageContext:
    """The screen the user is looking at when sending a message."""

    resource_type: str
    resource_name: str | None = None
    action: str | None = None

    def render(self) -> str:
        lines = ["Page Context:", f"Resource Type: {self.resource_type}"]
        if self.resource_name:
            lines.append(f"Resource Name: {self.resource_name}")
        if self.action:
            lines.append(f"Action: {self.action}")
        return "\n".join(lines)


def with_page_context(text: str, page: PageContext | None) -> str:
    """Append a ``Page Context`` block to a user message, once."""
    if page is None or "Page Context:" in text:
        return text
    return f"{text}\n\n{page.render()}"
