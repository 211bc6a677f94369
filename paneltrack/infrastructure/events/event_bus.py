"""
Event bus implementation for domain event publishing and subscription.

The event bus routes committed domain events to registered handlers. A
failing handler is logged and skipped so it cannot undo or block the change
that produced the event.
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from collections.abc import Callable

from ...core.config import settings
from ...domain.production.events.domain_events import DomainEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEvent], None]


class EventBusInterface(ABC):
    """Contract for publishing events and subscribing to event types."""

    @abstractmethod
    def publish(self, event: DomainEvent) -> None:
        """Publish a domain event to all registered handlers."""

    def publish_all(self, events: list[DomainEvent]) -> None:
        """Publish events in order."""
        for event in events:
            self.publish(event)

    @abstractmethod
    def subscribe(self, event_type: type[DomainEvent], handler: EventHandler) -> None:
        """Subscribe a handler to a specific event type."""

    @abstractmethod
    def unsubscribe(self, event_type: type[DomainEvent], handler: EventHandler) -> None:
        """Unsubscribe a handler from a specific event type."""

    @abstractmethod
    def clear_handlers(self, event_type: type[DomainEvent] | None = None) -> None:
        """Clear handlers for one event type, or all of them."""


class InMemoryEventBus(EventBusInterface):
    """
    In-memory implementation of event bus.

    Handlers run synchronously in subscription order on the publishing
    thread. A bounded history of published events is kept for inspection.
    """

    def __init__(self, max_history_size: int | None = None):
        """
        Initialize the event bus.

        Args:
            max_history_size: Number of published events to remember;
                defaults to ``settings.EVENT_HISTORY_SIZE``
        """
        if max_history_size is None:
            max_history_size = settings.EVENT_HISTORY_SIZE
        self._handlers: dict[type[DomainEvent], list[EventHandler]] = defaultdict(list)
        self._event_history: deque[DomainEvent] = deque(maxlen=max_history_size)
        self._lock = threading.RLock()

    def publish(self, event: DomainEvent) -> None:
        event_type = type(event)
        with self._lock:
            self._event_history.append(event)
            handlers = list(self._handlers.get(event_type, []))

        if not handlers:
            logger.debug(f"No handlers registered for event type: {event_type.__name__}")
            return

        logger.debug(f"Publishing event {event_type.__name__} to {len(handlers)} handlers")

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Error handling event {event_type.__name__} with {handler}: {e}",
                    exc_info=True,
                )
                # Continue with other handlers even if one fails

    def subscribe(self, event_type: type[DomainEvent], handler: EventHandler) -> None:
        with self._lock:
            if handler in self._handlers[event_type]:
                logger.warning(
                    f"Handler {handler} already subscribed to event type {event_type.__name__}"
                )
                return
            self._handlers[event_type].append(handler)
        logger.debug(f"Subscribed handler {handler} to event type {event_type.__name__}")

    def unsubscribe(self, event_type: type[DomainEvent], handler: EventHandler) -> None:
        with self._lock:
            if handler not in self._handlers.get(event_type, []):
                logger.warning(
                    f"Handler {handler} not found for event type {event_type.__name__}"
                )
                return
            self._handlers[event_type].remove(handler)
        logger.debug(f"Unsubscribed handler {handler} from event type {event_type.__name__}")

    def clear_handlers(self, event_type: type[DomainEvent] | None = None) -> None:
        with self._lock:
            if event_type:
                self._handlers.pop(event_type, None)
            else:
                self._handlers.clear()

    def get_handler_count(self, event_type: type[DomainEvent]) -> int:
        with self._lock:
            return len(self._handlers.get(event_type, []))

    def get_event_history(
        self, event_type: type[DomainEvent] | None = None
    ) -> list[DomainEvent]:
        """
        Get history of published events.

        Args:
            event_type: Optional event type to filter by

        Returns:
            List of published events, oldest first
        """
        with self._lock:
            if event_type:
                return [event for event in self._event_history if type(event) is event_type]
            return list(self._event_history)

    def clear_event_history(self) -> None:
        with self._lock:
            self._event_history.clear()
