"""
Ledger data models (Horizon resources).

Transactions and operations are immutable once confirmed, so every model is
a frozen pydantic model. Operations form a tagged union discriminated on
`type`: each variant carries only the fields meaningful for that kind, and
any type outside the payment set parses as OtherOperation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Annotated, Any, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, field_validator

NATIVE_ASSET_CODE = "XLM"
NATIVE_ASSET_TYPE = "native"

PAYMENT = "payment"
PATH_PAYMENT_STRICT_RECEIVE = "path_payment_strict_receive"
PATH_PAYMENT_STRICT_SEND = "path_payment_strict_send"
CREATE_ACCOUNT = "create_account"

PAYMENT_OPERATION_TYPES = frozenset({
    PAYMENT,
    PATH_PAYMENT_STRICT_RECEIVE,
    PATH_PAYMENT_STRICT_SEND,
    CREATE_ACCOUNT,
})


class LedgerModel(BaseModel):
    """Base for Horizon resources: immutable, unknown fields ignored."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


# =============================================================================
# Operations
# =============================================================================

class BaseOperation(LedgerModel):
    """Fields shared by every operation kind."""

    id: str
    type: str
    source_account: Optional[str] = None
    transaction_hash: Optional[str] = None
    created_at: Optional[datetime] = None
    paging_token: Optional[str] = None


class TransferOperation(BaseOperation):
    """Asset movement between two accounts (payment and path payments)."""

    amount: Optional[str] = None
    asset_type: str = NATIVE_ASSET_TYPE
    asset_code: Optional[str] = None
    asset_issuer: Optional[str] = None
    from_account: Optional[str] = Field(default=None, alias="from")
    to_account: Optional[str] = Field(default=None, alias="to")


class PaymentOperation(TransferOperation):
    type: Literal["payment"] = PAYMENT


class PathPaymentStrictReceiveOperation(TransferOperation):
    type: Literal["path_payment_strict_receive"] = PATH_PAYMENT_STRICT_RECEIVE
    source_amount: Optional[str] = None
    source_asset_type: Optional[str] = None
    source_asset_code: Optional[str] = None
    source_asset_issuer: Optional[str] = None


class PathPaymentStrictSendOperation(TransferOperation):
    type: Literal["path_payment_strict_send"] = PATH_PAYMENT_STRICT_SEND
    source_amount: Optional[str] = None
    source_asset_type: Optional[str] = None
    source_asset_code: Optional[str] = None
    source_asset_issuer: Optional[str] = None


class CreateAccountOperation(BaseOperation):
    """Funds a new account with a starting balance of the native asset."""

    type: Literal["create_account"] = CREATE_ACCOUNT
    starting_balance: Optional[str] = None
    funder: Optional[str] = None
    account: Optional[str] = None


class OtherOperation(BaseOperation):
    """Any non-payment operation (offers, trustlines, options, ...)."""


def _operation_tag(value: Any) -> str:
    kind = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return kind if kind in PAYMENT_OPERATION_TYPES else "other"


Operation = Annotated[
    Union[
        Annotated[PaymentOperation, Tag(PAYMENT)],
        Annotated[PathPaymentStrictReceiveOperation, Tag(PATH_PAYMENT_STRICT_RECEIVE)],
        Annotated[PathPaymentStrictSendOperation, Tag(PATH_PAYMENT_STRICT_SEND)],
        Annotated[CreateAccountOperation, Tag(CREATE_ACCOUNT)],
        Annotated[OtherOperation, Tag("other")],
    ],
    Discriminator(_operation_tag),
]


# =============================================================================
# Transactions
# =============================================================================

class Transaction(LedgerModel):
    """A confirmed ledger transaction and (once resolved) its operations."""

    id: str
    hash: str
    created_at: datetime
    source_account: str
    successful: bool = True
    fee_charged: str = "0"
    ledger_sequence: int = Field(default=0, alias="ledger")
    envelope_xdr: str = ""
    result_xdr: str = ""
    memo: Optional[str] = None
    memo_type: Optional[str] = None
    paging_token: Optional[str] = None
    operations: Tuple[Operation, ...] = ()

    @field_validator("fee_charged", mode="before")
    @classmethod
    def _coerce_fee(cls, value: Any) -> str:
        # Older Horizon versions return the fee as an integer
        return "0" if value is None else str(value)

    @property
    def cursor(self) -> str:
        """Paging token used to resume a stream after this transaction."""
        return self.paging_token or self.id

    def with_operations(self, operations: List[Any]) -> "Transaction":
        """Copy of this transaction carrying the resolved operations."""
        return self.model_copy(update={"operations": tuple(operations)})


@dataclass
class TransactionPage:
    """One page of a transaction listing."""

    records: List[Transaction] = field(default_factory=list)
    next_cursor: Optional[str] = None
    fetched: Optional[int] = None  # Records returned by the server, including skipped ones

    @property
    def size(self) -> int:
        return self.fetched if self.fetched is not None else len(self.records)


# =============================================================================
# Accounts
# =============================================================================

class BalanceLine(LedgerModel):
    """Single balance entry of an account."""

    balance: str
    asset_type: str
    asset_code: Optional[str] = None
    asset_issuer: Optional[str] = None
    liquidity_pool_id: Optional[str] = None
    limit: Optional[str] = None
    buying_liabilities: Optional[str] = None
    selling_liabilities: Optional[str] = None

    @property
    def is_native(self) -> bool:
        return self.asset_type == NATIVE_ASSET_TYPE


class AccountRecord(LedgerModel):
    """Account state as returned by Horizon /accounts/{id}."""

    account_id: str
    sequence: str = "0"
    balances: Tuple[BalanceLine, ...] = ()
    subentry_count: int = 0

    @field_validator("sequence", mode="before")
    @classmethod
    def _coerce_sequence(cls, value: Any) -> str:
        return str(value)
