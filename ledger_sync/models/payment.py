"""Normalized payment record and balance map."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

# Asset symbol → current balance; replaced wholesale on every refresh
BalanceMap = Dict[str, Decimal]


class PaymentStatus(Enum):
    """Payment status. PENDING and CONVERTING are set by callers, never by classification."""
    COMPLETED = "completed"
    FAILED = "failed"
    PENDING = "pending"
    CONVERTING = "converting"


class PaymentDirection(Enum):
    """Direction relative to the watched account."""
    INCOMING = "incoming"
    OUTGOING = "outgoing"


@dataclass(frozen=True, slots=True)
class PaymentRecord:
    """
    One payment-relevant operation, normalized.

    `id` is the originating operation id and is the de-duplication key;
    several records may share `hash` when a transaction carries more than
    one payment operation.
    """

    id: str
    date: datetime
    amount: Decimal
    token: str
    status: PaymentStatus
    hash: str
    direction: PaymentDirection
    operation_type: str
    from_account: Optional[str] = None
    to_account: Optional[str] = None
    fee: Optional[str] = None
    memo: Optional[str] = None

    @property
    def is_incoming(self) -> bool:
        return self.direction is PaymentDirection.INCOMING

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-safe dict."""
        result: Dict[str, Any] = {}
        for key, value in asdict(self).items():
            if isinstance(value, datetime):
                result[key] = value.isoformat()
            elif isinstance(value, Enum):
                result[key] = value.value
            elif isinstance(value, Decimal):
                result[key] = str(value)
            else:
                result[key] = value
        return result
