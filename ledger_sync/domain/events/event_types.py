"""Event types published on the event bus."""

from __future__ import annotations

from enum import Enum


class EventType(Enum):
    """Bus topics."""

    # Data
    BALANCES_UPDATED = "balances_updated"
    TRANSACTION_RECEIVED = "transaction_received"

    # Failures that were not handled internally
    ERROR = "error"

    # Control
    LIVE_STATE_CHANGED = "live_state_changed"
    SESSION_CHANGED = "session_changed"


class ErrorPhase(Enum):
    """Where an ERROR event originated."""
    HISTORY = "history"
    BALANCES = "balances"
    LIVE = "live"
