"""
Domain events for the ledger sync event bus.

Typed, immutable payloads instead of dict payloads:

    event_bus.publish(
        EventType.TRANSACTION_RECEIVED,
        TransactionReceived(account=account, record=record),
    )

    payload = event.to_dict()   # JSON-safe for logging or forwarding to a UI
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from ...models.payment import BalanceMap, PaymentRecord
from .event_types import ErrorPhase


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _serialize(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, BaseException):
        return f"{type(value).__name__}: {value}"
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialize(v) for v in value]
    return value


# =============================================================================
# Base Domain Event
# =============================================================================

@dataclass(frozen=True, slots=True)
class DomainEvent:
    """
    Base class for all domain events.

    Immutable (frozen) with slots; every field has a default so subclasses
    can add their own.
    """
    timestamp: datetime = field(default_factory=_now_utc)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize event to a JSON-safe dictionary."""
        result = {f.name: _serialize(getattr(self, f.name)) for f in fields(self)}
        result["_event_type"] = self.__class__.__name__
        return result

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


# =============================================================================
# Data Events
# =============================================================================

@dataclass(frozen=True, slots=True)
class BalancesUpdated(DomainEvent):
    """
    Full balance map after a successful refresh.

    Published on EventType.BALANCES_UPDATED.
    """
    account: str = ""
    balances: BalanceMap = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class TransactionReceived(DomainEvent):
    """
    One payment record produced by live sync.

    Published on EventType.TRANSACTION_RECEIVED. Delivery is at-least-once;
    consumers de-duplicate on record.id.
    """
    account: str = ""
    record: Optional[PaymentRecord] = None


# =============================================================================
# System Events
# =============================================================================

@dataclass(frozen=True, slots=True)
class SyncErrorEvent(DomainEvent):
    """
    Failure surfaced to consumers.

    Published on EventType.ERROR.
    """
    phase: ErrorPhase = ErrorPhase.LIVE
    account: str = ""
    cause: Optional[BaseException] = None

    @property
    def message(self) -> str:
        return str(self.cause) if self.cause else ""


@dataclass(frozen=True, slots=True)
class LiveStateChanged(DomainEvent):
    """
    Live sync state transition.

    Published on EventType.LIVE_STATE_CHANGED.
    """
    account: str = ""
    state: str = ""
    previous: str = ""
    reconnect_attempt: int = 0


@dataclass(frozen=True, slots=True)
class SessionChanged(DomainEvent):
    """
    Wallet session connect/disconnect.

    Published on EventType.SESSION_CHANGED.
    """
    account: Optional[str] = None
    active: bool = False
    wallet_type: Optional[str] = None
