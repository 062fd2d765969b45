"""Domain events and the in-process event bus."""

from .domain_events import (
    BalancesUpdated,
    DomainEvent,
    LiveStateChanged,
    SessionChanged,
    SyncErrorEvent,
    TransactionReceived,
)
from .event_types import ErrorPhase, EventType
from .local_event_bus import LocalEventBus

__all__ = [
    "EventType",
    "ErrorPhase",
    "LocalEventBus",
    # Domain events
    "DomainEvent",
    "BalancesUpdated",
    "TransactionReceived",
    "SyncErrorEvent",
    "LiveStateChanged",
    "SessionChanged",
]
