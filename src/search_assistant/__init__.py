"""Chat assistant client for Azure AI Search Explorer."""

from search_assistant.config import AssistantConfig, load_config
from search_assistant.core.orchestrator import ToolOrchestrator, TurnResult
from search_assistant.llm.stream_decoder import StreamDecoder
from search_assistant.providers import CopilotProvider, ProviderRegistry
from search_assistant.session import AssistantContext
from search_assistant.types import ChatMessage, ChatSettings, FunctionCall, StreamReply

__version__ = "0.1.0"

__all__ = [
    "AssistantConfig",
    "AssistantContext",
    "ChatMessage",
    "ChatSettings",
    "CopilotProvider",
    "FunctionCall",
    "ProviderRegistry",
    "StreamDecoder",
    "StreamReply",
    "ToolOrchestrator",
    "TurnResult",
    "load_config",
]
