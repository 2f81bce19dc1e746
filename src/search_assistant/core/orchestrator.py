"""ToolOrchestrator: the bounded multi-turn tool-call loop.

    conversation -> provider -> tool call? -> executor -> append turns -> loop

The loop ends on a reply without a dispatchable call, on a tool that could
not run, or when ``max_iterations`` tool executions have been spent.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from search_assistant.errors import AssistantError, ToolExecutionError
from search_assistant.events.bus import EventBus
from search_assistant.types import (
    ChatMessage,
    ChatSendRequest,
    ChatSettings,
    EventType,
    StreamReply,
    ToolCall,
    ToolOutcome,
)

_logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 8


class ChatSender(Protocol):
    async def send_message(self, request: ChatSendRequest) -> StreamReply: ...


class ToolExecutor(Protocol):
    """Read-only tool capability; must be safe to call repeatedly."""

    @property
    def tool_names(self) -> list[str]: ...

    async def execute(self, tool_name: str, arguments: dict[str, Any]) -> ToolOutcome | None: ...

    def function_schemas(self) -> list[dict[str, Any]]: ...

    def summary(self) -> str: ...


@dataclass
class TurnResult:
    """Outcome of one orchestrated chat turn.

    ``messages`` is the input conversation plus every call/result pair the
    loop appended; the final reply itself is not included.
    """

    reply: StreamReply
    messages: list[ChatMessage]
    iterations: int = 0
    completed: bool = True


def parse_tool_call(reply: StreamReply, tool_names: list[str]) -> ToolCall | None:
    """Return the dispatchable call in *reply*, if any.

    Unknown tool names and arguments that are not a JSON object make the
    call non-actionable.
    """
    call = reply.function_call
    if call is None or call.name not in tool_names:
        return None
    raw = call.arguments.strip()
    if not raw:
        return ToolCall(name=call.name, arguments={})
    try:
        arguments = json.loads(raw)
    except json.JSONDecodeError:
        _logger.warning("Ignoring %s call with malformed arguments", call.name)
        return None
    if not isinstance(arguments, dict):
        _logger.warning("Ignoring %s call with non-object arguments", call.name)
        return None
    return ToolCall(name=call.name, arguments=arguments)


class ToolOrchestrator:
    """Runs the tool-call loop for one conversation at a time.

    Parameters
    ----------
    provider:
        Anything with ``send_message(ChatSendRequest)``.
    executor:
        Default tool executor (usually a ``ToolRegistry``); ``run()`` may
        override it.  Without one the model gets no tools.
    event_bus:
        Receives message and tool events so a UI can render progress.
    max_iterations:
        Maximum tool executions per turn.
    """

    def __init__(
        self,
        provider: ChatSender,
        executor: ToolExecutor | None = None,
        event_bus: EventBus | None = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        provider_id: str = "copilot",
    ) -> None:
        if max_iterations < 0:
            raise ValueError("max_iterations must be >= 0")
        self._provider = provider
        self._executor = executor
        self._event_bus = event_bus or EventBus()
        self._max_iterations = max_iterations
        self._provider_id = provider_id

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    async def run(
        self,
        conversation: list[ChatMessage],
        settings: ChatSettings,
        executor: ToolExecutor | None = None,
        connection_id: str | None = None,
    ) -> TurnResult:
        """Send *conversation* and follow tool calls until a final reply."""
        executor = executor or self._executor
        tool_names = executor.tool_names if executor is not None else []
        messages = list(conversation)
        iterations = 0

        reply = await self._send(messages, settings, executor, connection_id)
        while True:
            call = parse_tool_call(reply, tool_names)
            if call is None or executor is None:
                break

            if iterations >= self._max_iterations:
                _logger.warning("Tool iteration limit reached (%d)", self._max_iterations)
                await self._event_bus.emit(EventType.TURN_LIMIT, {
                    "iterations": iterations,
                    "tool": call.name,
                })
                limit_reply = StreamReply(
                    content=(
                        f"I could not complete this request after "
                        f"{iterations} tool calls."
                    ),
                )
                return TurnResult(limit_reply, messages, iterations, completed=False)

            outcome = await self._execute(executor, call)
            if outcome is None:
                break
            iterations += 1

            await self._append(messages, ChatMessage.create("assistant", outcome.label))
            await self._append(
                messages,
                ChatMessage.create("tool", f"Tool response: {call.name}", data=outcome.data),
            )

            reply = await self._send(messages, settings, executor, connection_id)

        return TurnResult(reply, messages, iterations)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _send(
        self,
        messages: list[ChatMessage],
        settings: ChatSettings,
        executor: ToolExecutor | None,
        connection_id: str | None,
    ) -> StreamReply:
        request = ChatSendRequest(
            messages=list(messages),
            settings=settings,
            provider_id=self._provider_id,
            connection_id=connection_id,
            functions=executor.function_schemas() if executor is not None else [],
            tool_summary=executor.summary() if executor is not None else "",
        )
        await self._event_bus.emit(EventType.LLM_REQUEST, {
            "model": settings.model,
            "messages": len(messages),
        })
        reply = await self._provider.send_message(request)
        await self._event_bus.emit(EventType.LLM_RESPONSE, {
            "content_length": len(reply.content),
            "function_call": reply.function_call.name if reply.function_call else None,
        })
        return reply

    async def _execute(self, executor: ToolExecutor, call: ToolCall) -> ToolOutcome | None:
        await self._event_bus.emit(EventType.TOOL_EXECUTING, {
            "tool": call.name,
            "arguments": call.arguments,
        })
        try:
            outcome = await executor.execute(call.name, call.arguments)
        except Exception as e:
            await self._event_bus.emit(EventType.TOOL_ERROR, {
                "tool": call.name,
                "error": str(e),
            })
            if isinstance(e, AssistantError):
                raise
            raise ToolExecutionError(call.name, f"Tool '{call.name}' failed: {e}") from e
        await self._event_bus.emit(EventType.TOOL_EXECUTED, {
            "tool": call.name,
            "has_result": outcome is not None,
        })
        return outcome

    async def _append(self, messages: list[ChatMessage], message: ChatMessage) -> None:
        messages.append(message)
        await self._event_bus.emit(EventType.MESSAGE_APPENDED, {"message": message})
