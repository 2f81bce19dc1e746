"""Chat providers."""

from search_assistant.providers.base import ChatProvider, ProviderRegistry
from search_assistant.providers.copilot import CopilotProvider

__all__ = ["ChatProvider", "CopilotProvider", "ProviderRegistry"]
