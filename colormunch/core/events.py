"""
Minimal publish/subscribe channel used by the loader, the client and themes.

Listeners are plain callables taking a FeedEvent. Dispatch is synchronous:
every listener registered for the event runs in registration order, then the
default handler for that event (if one was set).
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)

# Event names
COMPLETE = "complete"
FAILED = "failed"


class FeedEvent(BaseModel):
    """Payload carried by every COMPLETE / FAILED event."""
    message: str = ""
    busy: bool = False  # a request was already in flight
    empty: bool = False  # completed, but nothing came back
    data: Optional[Dict[str, Any]] = None


Listener = Callable[[FeedEvent], Any]


class EventChannel:
    """Named-event listener registry with an optional default handler per event."""

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)
        self._default_handlers: Dict[str, Listener] = {}

    def on(self, event_name: str, listener: Listener) -> None:
        """Register a listener for an event."""
        self._listeners[event_name].append(listener)

    def off(self, event_name: str, listener: Listener) -> None:
        """Remove the first registration of a listener. Unknown listeners are ignored."""
        listeners = self._listeners.get(event_name)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def set_default_handler(self, event_name: str, handler: Optional[Listener]) -> None:
        """Set (or clear, with None) the handler that runs after all listeners."""
        if handler is None:
            self._default_handlers.pop(event_name, None)
        else:
            self._default_handlers[event_name] = handler

    def emit(self, event_name: str, detail: FeedEvent) -> None:
        """Dispatch an event to its listeners, then to its default handler."""
        # snapshot: listeners commonly unsubscribe themselves while handling
        for listener in list(self._listeners.get(event_name, ())):
            listener(detail)

        handler = self._default_handlers.get(event_name)
        if handler is not None:
            handler(detail)

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, ()))

    # Aliases
    subscribe = on
    unsubscribe = off
    publish = emit
