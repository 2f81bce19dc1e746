"""Tests for the EventBus."""

import logging

import pytest

from search_assistant.events.bus import EventBus
from search_assistant.types import AgentEvent, EventType


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


class TestEventBus:
    @pytest.mark.asyncio
    async def test_sync_handler(self, bus: EventBus):
        received: list[AgentEvent] = []
        bus.subscribe(EventType.TOOL_EXECUTING, received.append)

        event = await bus.emit(EventType.TOOL_EXECUTING, {"tool": "resource_read"})

        assert received == [event]
        assert event.data == {"tool": "resource_read"}

    @pytest.mark.asyncio
    async def test_async_handler(self, bus: EventBus):
        received: list[AgentEvent] = []

        async def handler(event: AgentEvent) -> None:
            received.append(event)

        bus.subscribe(EventType.TURN_DONE, handler)
        await bus.emit(EventType.TURN_DONE)

        assert len(received) == 1
        assert received[0].data == {}

    @pytest.mark.asyncio
    async def test_only_matching_type(self, bus: EventBus):
        received: list[AgentEvent] = []
        bus.subscribe(EventType.TOOL_EXECUTED, received.append)

        await bus.emit(EventType.TOOL_EXECUTING)

        assert received == []

    @pytest.mark.asyncio
    async def test_wildcard(self, bus: EventBus):
        received: list[EventType] = []
        bus.subscribe("*", lambda e: received.append(e.type))

        await bus.emit(EventType.LLM_REQUEST)
        await bus.emit(EventType.LLM_RESPONSE)

        assert received == [EventType.LLM_REQUEST, EventType.LLM_RESPONSE]

    @pytest.mark.asyncio
    async def test_unsubscribe(self, bus: EventBus):
        received: list[AgentEvent] = []
        bus.subscribe(EventType.TURN_ERROR, received.append)
        bus.unsubscribe(EventType.TURN_ERROR, received.append)

        await bus.emit(EventType.TURN_ERROR)

        assert received == []

    @pytest.mark.asyncio
    async def test_failing_handler_is_logged(self, bus: EventBus, caplog):
        received: list[AgentEvent] = []

        def broken(event: AgentEvent) -> None:
            raise RuntimeError("handler bug")

        bus.subscribe(EventType.TURN_LIMIT, broken)
        bus.subscribe(EventType.TURN_LIMIT, received.append)

        with caplog.at_level(logging.ERROR):
            await bus.emit(EventType.TURN_LIMIT)

        assert len(received) == 1
        assert "handler bug" in caplog.text

    @pytest.mark.asyncio
    async def test_history_is_bounded(self):
        bus = EventBus(max_history=3)
        for _ in range(5):
            await bus.emit(EventType.MESSAGE_APPENDED)
        assert len(bus.history) == 3

    @pytest.mark.asyncio
    async def test_clear(self, bus: EventBus):
        received: list[AgentEvent] = []
        bus.subscribe("*", received.append)
        await bus.emit(EventType.TURN_DONE)

        bus.clear()
        await bus.emit(EventType.TURN_DONE)

        assert len(received) == 1
        assert len(bus.history) == 1

    @pytest.mark.asyncio
    async def test_handlers_run_in_subscription_order(self, bus: EventBus):
        order: list[str] = []

        async def first(event: AgentEvent) -> None:
            order.append("first")

        bus.subscribe("*", first)
        bus.subscribe(EventType.TOOL_EXECUTED, lambda e: order.append("second"))
        bus.subscribe("tool.executed", lambda e: order.append("third"))

        await bus.emit(EventType.TOOL_EXECUTED)

        assert order == ["first", "second", "third"]

    @pytest.mark.asyncio
    async def test_subscribe_returns_unsubscribe(self, bus: EventBus):
        received: list[AgentEvent] = []
        remove = bus.subscribe(EventType.TURN_DONE, received.append)

        remove()
        remove()
        await bus.emit(EventType.TURN_DONE)

        assert received == []
