"""Event bus through which a running chat turn reports progress to the UI.

Handlers run one after another in subscription order, so a UI rendering
``MESSAGE_APPENDED`` events sees them in conversation order.
"""

from __future__ import annotations

import inspect
import logging
from collections import deque
from typing import Any, Callable

from search_assistant.types import AgentEvent, EventType

_logger = logging.getLogger(__name__)

Handler = Callable[[AgentEvent], Any]

# Subscription key meaning "every event type"
ALL_EVENTS = "*"


class EventBus:
    """Ordered pub/sub for :class:`AgentEvent`.

    Handlers may be sync or async.  One that raises is logged and skipped;
    the turn that emitted the event carries on.
    """

    def __init__(self, max_history: int = 200) -> None:
        self._subscribers: list[tuple[EventType | None, Handler]] = []
        self._history: deque[AgentEvent] = deque(maxlen=max_history)

    def subscribe(self, event_type: EventType | str, handler: Handler) -> Callable[[], None]:
        """Call *handler* for *event_type* (``"*"`` for all).

        Returns a callable that removes this subscription.
        """
        entry = (self._normalize(event_type), handler)
        self._subscribers.append(entry)

        def _unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return _unsubscribe

    def unsubscribe(self, event_type: EventType | str, handler: Handler) -> None:
        key = self._normalize(event_type)
        self._subscribers = [
            (k, h) for k, h in self._subscribers if not (k is key and h == handler)
        ]

    async def emit(self, event_type: EventType, data: dict[str, Any] | None = None) -> AgentEvent:
        event = AgentEvent(type=event_type, data=data or {})
        self._history.append(event)
        for key, handler in list(self._subscribers):
            if key is None or key is event_type:
                await self._deliver(handler, event)
        return event

    @property
    def history(self) -> list[AgentEvent]:
        return list(self._history)

    def clear(self) -> None:
        self._subscribers.clear()
        self._history.clear()

    @staticmethod
    def _normalize(event_type: EventType | str) -> EventType | None:
        if event_type == ALL_EVENTS:
            return None
        if isinstance(event_type, EventType):
            return event_type
        return EventType(event_type)

    @staticmethod
    async def _deliver(handler: Handler, event: AgentEvent) -> None:
        try:
            result = handler(event)
            if inspect.isawaitable(result):
                await result
        except Exception:
            _logger.exception("Event handler %r failed on %s", handler, event.type.value)
