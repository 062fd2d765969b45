"""Event bus interface for publish-subscribe pattern."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable

from ..events.event_types import EventType


class EventBus(ABC):
    """Event bus for decoupled component communication."""

    @abstractmethod
    def publish(self, event_type: EventType, payload: Any) -> None:
        """
        Publish an event to all subscribers.

        Args:
            event_type: Type of event being published.
            payload: Event data (DomainEvent subclass).
        """

    @abstractmethod
    def subscribe(self, event_type: EventType, callback: Callable[[Any], Any]) -> None:
        """
        Subscribe to an event type.

        Args:
            event_type: Event type to listen for.
            callback: Function (or coroutine function) called with the payload.
        """

    @abstractmethod
    def unsubscribe(self, event_type: EventType, callback: Callable[[Any], Any]) -> None:
        """Unsubscribe a callback from an event type."""
