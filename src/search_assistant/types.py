"""Shared data types for the search assistant."""

from __future__ import annotations

import enum
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Literal

ChatRole = Literal["system", "user", "assistant", "tool"]
AuthMode = Literal["device_code", "browser", "token"]

AUTH_MODES: tuple[str, ...] = ("device_code", "browser", "token")


def _now_ms() -> int:
    return int(time.time() * 1000)


# ---------------------------------------------------------------------------
# Conversation types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ChatMessage:
    """One turn of a conversation.

    Tool-role messages carry the raw tool result in ``data``; ``content`` is
    only the human-readable summary.
    """

    id: str
    role: ChatRole
    content: str
    created_at: int = field(default_factory=_now_ms)
    data: Any = None

    @classmethod
    def create(cls, role: ChatRole, content: str, data: Any = None) -> ChatMessage:
        return cls(id=uuid.uuid4().hex, role=role, content=content, data=data)


@dataclass
class ChatSettings:
    """Per-request model settings."""

    model: str
    temperature: float = 0.2
    max_tokens: int = 1024
    system_prompt: str | None = None


@dataclass
class ChatSendRequest:
    messages: list[ChatMessage]
    settings: ChatSettings
    provider_id: str = "copilot"
    connection_id: str | None = None
    # Function schemas and prompt summary of the tools the model may call
    functions: list[dict[str, Any]] = field(default_factory=list)
    tool_summary: str = ""


# ---------------------------------------------------------------------------
# Stream / tool types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FunctionCall:
    """A function call requested by the model.

    ``arguments`` is the raw JSON text as streamed; it is parsed only when
    the call is dispatched to a tool.
    """

    name: str
    arguments: str = ""


@dataclass(frozen=True)
class StreamReply:
    """Fully assembled result of one streamed chat completion."""

    content: str = ""
    function_call: FunctionCall | None = None

    @property
    def has_function_call(self) -> bool:
        return self.function_call is not None


@dataclass(frozen=True)
class ToolCall:
    """Parsed, dispatchable tool call."""

    name: str
    arguments: dict[str, Any]


@dataclass
class ToolOutcome:
    """Result of a tool execution."""

    label: str
    data: Any


@dataclass
class ToolParameter:
    """Definition of a tool parameter."""

    name: str
    type: str  # string, array, object
    description: str
    required: bool = True
    enum: list[str] | None = None
    items: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# Auth types
# ---------------------------------------------------------------------------

@dataclass
class DeviceAuthSession:
    """An in-progress device authorization.

    ``interval`` is mutable: the poller raises it on ``slow_down``.
    """

    device_code: str
    user_code: str
    verification_uri: str
    expires_in: int
    interval: int = 5


@dataclass
class AuthResult:
    """What the UI needs to prompt the human after ``connect()``."""

    status_message: str
    open_url: str | None = None
    user_code: str | None = None
    verification_uri: str | None = None
    expires_in: int | None = None
    device_code: str | None = None
    interval: int | None = None

    @classmethod
    def from_session(cls, session: DeviceAuthSession, message: str) -> AuthResult:
        return cls(
            status_message=message,
            open_url=session.verification_uri,
            user_code=session.user_code,
            verification_uri=session.verification_uri,
            expires_in=session.expires_in,
            device_code=session.device_code,
            interval=session.interval,
        )

    def to_session(self) -> DeviceAuthSession:
        if not self.device_code or not self.user_code or not self.verification_uri:
            raise ValueError("AuthResult does not describe a device authorization")
        return DeviceAuthSession(
            device_code=self.device_code,
            user_code=self.user_code,
            verification_uri=self.verification_uri,
            expires_in=self.expires_in or 0,
            interval=self.interval or 5,
        )


@dataclass
class CachedToken:
    value: str
    acquired_at: float
    expires_at: float | None = None


# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------

class EventType(enum.Enum):
    """Event types emitted while a chat turn runs."""

    MESSAGE_APPENDED = "message.appended"

    LLM_REQUEST = "llm.request"
    LLM_RESPONSE = "llm.response"

    TOOL_EXECUTING = "tool.executing"
    TOOL_EXECUTED = "tool.executed"
    TOOL_ERROR = "tool.error"

    TURN_DONE = "turn.done"
    TURN_ERROR = "turn.error"
    TURN_LIMIT = "turn.limit"


@dataclass
class AgentEvent:
    """Event emitted via the EventBus."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
