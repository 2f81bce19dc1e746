"""AssistantContext: everything one application session needs, in one place.

Created when the UI starts (or the user signs in) and closed at sign-out or
shutdown.  It owns the HTTP client, the provider registry, the credential
store, the event bus and the tool loop, so nothing lives in module globals.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

import httpx

from search_assistant.auth.credentials import CredentialStore
from search_assistant.config import AssistantConfig
from search_assistant.core.orchestrator import ToolExecutor, ToolOrchestrator, TurnResult
from search_assistant.errors import AssistantError
from search_assistant.events.bus import EventBus
from search_assistant.prompts import PageContext, with_page_context
from search_assistant.providers.base import ChatProvider, ProviderRegistry
from search_assistant.providers.copilot import CopilotProvider
from search_assistant.types import ChatMessage, ChatSettings, EventType

_logger = logging.getLogger(__name__)


def build_http_client(config: AssistantConfig) -> httpx.AsyncClient:
    """HTTP client for all provider traffic.

    With ``request_timeout`` unset a streamed reply may take as long as the
    model needs; only connecting is bounded.
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(config.request_timeout, connect=config.connect_timeout),
    )


class AssistantContext:
    """Composition root for the chat assistant.

    Usage::

        async with AssistantContext(load_config()) as ctx:
            messages = await ctx.send([], "Which indexes exist?")
    """

    def __init__(
        self,
        config: AssistantConfig | None = None,
        http: httpx.AsyncClient | None = None,
        tools: ToolExecutor | None = None,
        credentials: CredentialStore | None = None,
        event_bus: EventBus | None = None,
        on_content: Callable[[str], None] | None = None,
    ) -> None:
        self.config = config or AssistantConfig()
        self._owns_http = http is None
        self.http = http or build_http_client(self.config)
        self.credentials = credentials or CredentialStore(self.config.credentials_path)
        self.event_bus = event_bus or EventBus()
        self.tools = tools

        self.providers = ProviderRegistry()
        self.providers.register(CopilotProvider(
            self.http,
            self.config.active_provider,
            credentials=self.credentials,
            slow_down_step=self.config.slow_down_step,
            on_content=on_content,
        ))
        self.orchestrator = ToolOrchestrator(
            self.providers,
            executor=tools,
            event_bus=self.event_bus,
            max_iterations=self.config.max_tool_iterations,
            provider_id=self.config.provider,
        )
        self._closed = False

    async def __aenter__(self) -> AssistantContext:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    @property
    def provider(self) -> ChatProvider:
        return self.providers.get(self.config.provider)

    def default_settings(self, system_prompt: str | None = None) -> ChatSettings:
        return self.config.chat.to_settings(system_prompt)

    async def run_turn(
        self,
        conversation: list[ChatMessage],
        settings: ChatSettings | None = None,
        connection_id: str | None = None,
    ) -> TurnResult:
        """Run the tool loop without error conversion."""
        return await self.orchestrator.run(
            conversation,
            settings or self.default_settings(),
            connection_id=connection_id,
        )

    async def send(
        self,
        conversation: list[ChatMessage],
        text: str,
        settings: ChatSettings | None = None,
        page: PageContext | None = None,
        connection_id: str | None = None,
    ) -> list[ChatMessage]:
        """Append a user message, run the turn, append the final reply.

        Returns the new conversation.  Blank *text* leaves it unchanged.
        Terminal failures become a single assistant message carrying the
        error text instead of an exception.
        """
        text = text.strip()
        if not text:
            return list(conversation)

        user = ChatMessage.create("user", with_page_context(text, page))
        messages = [*conversation, user]
        await self.event_bus.emit(EventType.MESSAGE_APPENDED, {"message": user})

        try:
            result = await self.run_turn(messages, settings, connection_id)
        except (AssistantError, httpx.HTTPError) as e:
            _logger.error("Chat turn failed: %s", e)
            return await self._fail(messages, e)
        except Exception as e:
            _logger.exception("Chat turn failed unexpectedly")
            return await self._fail(messages, e)

        messages = result.messages
        if result.reply.content:
            final = ChatMessage.create("assistant", result.reply.content)
            messages.append(final)
            await self.event_bus.emit(EventType.MESSAGE_APPENDED, {"message": final})
        await self.event_bus.emit(EventType.TURN_DONE, {
            "iterations": result.iterations,
            "completed": result.completed,
        })
        return messages

    async def _fail(self, messages: list[ChatMessage], error: Exception) -> list[ChatMessage]:
        await self.event_bus.emit(EventType.TURN_ERROR, {"error": str(error)})
        failure = ChatMessage.create("assistant", str(error) or "Failed to send message.")
        messages.append(failure)
        await self.event_bus.emit(EventType.MESSAGE_APPENDED, {"message": failure})
        return messages

    async def sign_out(self) -> None:
        """Drop every credential and token, then close the session."""
        provider = self.provider
        if isinstance(provider, CopilotProvider):
            provider.sign_out()
        else:
            self.credentials.clear()
        await self.aclose()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.providers.aclose()
        self.event_bus.clear()
        if self._owns_http:
            await self.http.aclose()
