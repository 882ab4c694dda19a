"""
Event Bus Service

Typed publish/subscribe hub. Producers (practice engine, session machine)
publish events without knowing who listens; listeners subscribe per event
class or to everything.
"""

import logging
from typing import Callable, Optional, TypeVar

from ..domain.events import Event

# Configure logging
logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Event)
Handler = Callable[[E], None]


class EventBus:
    """
    Synchronous, in-process event dispatcher.

    Handlers run in subscription order on the publisher's call stack, so they
    must be quick; anything slow (network sends) belongs on a queue owned by
    the listener. A failing handler is logged and does not stop delivery to
    the others.

    Usage:
        bus = EventBus()
        unsubscribe = bus.subscribe(FrameScored, lambda e: print(e.posture))
        bus.publish(FrameScored(posture=None, expression=None))
        unsubscribe()
    """

    def __init__(self):
        self._handlers: list[tuple[Optional[type[Event]], Handler]] = []

    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> Callable[[], None]:
        """
        Register a handler for one event class (and its subclasses).

        Returns:
            A function that removes the subscription
        """
        return self._add(event_type, handler)

    def subscribe_all(self, handler: Callable[[Event], None]) -> Callable[[], None]:
        """Register a handler for every event."""
        return self._add(None, handler)

    def publish(self, event: Event) -> None:
        """Deliver an event to every matching handler."""
        for event_type, handler in list(self._handlers):
            if event_type is not None and not isinstance(event, event_type):
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(f"Event handler failed for {event.type}")

    @property
    def listener_count(self) -> int:
        return len(self._handlers)

    def _add(self, event_type: Optional[type[Event]], handler: Handler) -> Callable[[], None]:
        entry = (event_type, handler)
        self._handlers.append(entry)

        def unsubscribe() -> None:
            if entry in self._handlers:
                self._handlers.remove(entry)

        return unsubscribe
