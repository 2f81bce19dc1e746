"""Tests for system prompt assembly and wire-message conversion."""

import json

from search_assistant.core.conversation import build_wire_messages, to_wire_message
from search_assistant.prompts import (
    PageContext,
    build_system_prompt,
    connection_context,
    with_page_context,
)
from search_assistant.types import ChatMessage


class TestSystemPrompt:
    def test_scope_rules(self):
        prompt = build_system_prompt("prod", "https://prod.search.windows.net")
        assert prompt.startswith("You are the Azure AI Search Explorer assistant.")
        assert "refuse briefly" in prompt
        assert "Never ask the user for tool parameters" in prompt
        assert prompt.endswith("Selected connection: prod (https://prod.search.windows.net).")

    def test_connection_lines(self):
        assert connection_context() == "No connection selected."
        assert connection_context(loaded=False) == "Selected connection could not be loaded."
        assert connection_context(None, "https://x") == "Selected connection: Unnamed (https://x)."


class TestPageContext:
    def test_render(self):
        page = PageContext("indexes", "hotels", "edit")
        assert page.render() == (
            "Page Context:\nResource Type: indexes\nResource Name: hotels\nAction: edit"
        )

    def test_render_type_only(self):
        assert PageContext("indexers").render() == "Page Context:\nResource Type: indexers"

    def test_appended_once(self):
        page = PageContext("indexes", "hotels")
        text = with_page_context("What is this?", page)
        assert text.startswith("What is this?\n\nPage Context:")
        assert with_page_context(text, page) == text

    def test_without_page(self):
        assert with_page_context("hi", None) == "hi"


class TestWireMessages:
    def test_roles_pass_through(self):
        message = ChatMessage.create("assistant", "Calling tool: service_details()")
        assert to_wire_message(message) == {
            "role": "assistant", "content": "Calling tool: service_details()",
        }

    def test_tool_with_data(self):
        message = ChatMessage.create("tool", "Tool response: x", data={"count": 2})
        wire = to_wire_message(message)
        assert wire["role"] == "system"
        assert wire["content"] == "Tool response:\n" + json.dumps({"count": 2}, indent=2)

    def test_tool_without_data(self):
        message = ChatMessage.create("tool", "Tool response: x")
        assert to_wire_message(message) == {"role": "system", "content": "Tool response: x"}

    def test_system_prompt_and_summary_first(self):
        conversation = [ChatMessage.create("user", "hi")]
        wire = build_wire_messages(conversation, "  rules  ", "Available tools: a")
        assert wire == [
            {"role": "system", "content": "rules"},
            {"role": "system", "content": "Available tools: a"},
            {"role": "user", "content": "hi"},
        ]

    def test_blank_prompt_omitted(self):
        wire = build_wire_messages([ChatMessage.create("user", "hi")], "   ")
        assert wire == [{"role": "user", "content": "hi"}]
