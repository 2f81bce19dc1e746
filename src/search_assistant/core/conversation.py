"""Conversion of chat history into wire messages for the chat endpoint."""

from __future__ import annotations

import json
from typing import Any

from search_assistant.types import ChatMessage


def to_wire_message(message: ChatMessage) -> dict[str, str]:
    """Map one message to ``{role, content}``.

    The endpoint has no tool role here, so tool turns are sent as system
    messages carrying the raw result.
    """
    if message.role == "tool":
        if message.data is not None:
            payload = json.dumps(message.data, indent=2, default=str)
            return {"role": "system", "content": f"Tool response:\n{payload}"}
        return {"role": "system", "content": message.content}
    return {"role": message.role, "content": message.content}


def build_system_messages(system_prompt: str | None, tool_summary: str = "") -> list[dict[str, str]]:
    messages: list[dict[str, str]] = []
    if system_prompt and system_prompt.strip():
        messages.append({"role": "system", "content": system_prompt.strip()})
    if tool_summary:
        messages.append({"role": "system", "content": tool_summary})
    return messages


def build_wire_messages(
    conversation: list[ChatMessage],
    system_prompt: str | None = None,
    tool_summary: str = "",
) -> list[dict[str, Any]]:
    """System prompt and tool summary first, then the conversation."""
    return [
        *build_system_messages(system_prompt, tool_summary),
        *(to_wire_message(m) for m in conversation),
    ]
