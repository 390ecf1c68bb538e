# selffin/eventing.py
import logging

logger = logging.getLogger(__name__)


class Event:
    def __init__(self, event_type: str, payload: dict = None):
        self.event_type = event_type
        self.payload = payload or {}


class EventManager:
    def __init__(self):
        self.listeners = {}

    def add_listener(self, event_type: str, listener):
        self.listeners.setdefault(event_type, [])
        if listener not in self.listeners[event_type]:
            self.listeners[event_type].append(listener)

    def remove_listener(self, event_type: str, listener):
        if listener in self.listeners.get(event_type, []):
            self.listeners[event_type].remove(listener)

    def emit(self, event: Event):
        handlers = self.listeners.get(event.event_type, [])
        logger.debug("emit %s to %d listener(s)", event.event_type, len(handlers))
        for listener in handlers:
            listener(event)


# shared across the store, the API and the CLI
event_manager = EventManager()
