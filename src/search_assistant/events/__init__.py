from search_assistant.events.bus import EventBus

__all__ = ["EventBus"]
