"""Chat provider interface and registry."""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from search_assistant.errors import UnknownProviderError
from search_assistant.types import AuthMode, AuthResult, ChatSendRequest, StreamReply

_logger = logging.getLogger(__name__)


@runtime_checkable
class ChatProvider(Protocol):
    """Uniform contract every chat backend implements."""

    id: str
    name: str

    async def connect(self, mode: AuthMode) -> AuthResult: ...

    async def send_message(self, request: ChatSendRequest) -> StreamReply: ...

    async def list_models(self) -> list[dict[str, Any]]: ...

    async def aclose(self) -> None: ...


class ProviderRegistry:
    """Providers available to one assistant session, keyed by id."""

    def __init__(self) -> None:
        self._providers: dict[str, ChatProvider] = {}

    def register(self, provider: ChatProvider) -> None:
        self._providers[provider.id] = provider

    def get(self, provider_id: str) -> ChatProvider:
        provider = self._providers.get(provider_id)
        if provider is None:
            raise UnknownProviderError(f"Unknown chat provider: {provider_id}")
        return provider

    @property
    def ids(self) -> list[str]:
        return list(self._providers)

    async def send_message(self, request: ChatSendRequest) -> StreamReply:
        """Route *request* to the provider named by ``request.provider_id``."""
        return await self.get(request.provider_id).send_message(request)

    async def connect(self, provider_id: str, mode: AuthMode) -> AuthResult:
        return await self.get(provider_id).connect(mode)

    async def aclose(self) -> None:
        for provider in self._providers.values():
            await provider.aclose()
        self._providers.clear()
