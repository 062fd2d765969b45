"""Pytest configuration and fixtures."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import pytest

from ledger_sync.domain.events import EventType, LocalEventBus
from ledger_sync.domain.exceptions import NotFoundError
from ledger_sync.models.ledger import (
    AccountRecord,
    BalanceLine,
    CreateAccountOperation,
    OtherOperation,
    PathPaymentStrictReceiveOperation,
    PathPaymentStrictSendOperation,
    PaymentOperation,
    Transaction,
    TransactionPage,
)

# Syntactically valid account ids: "G" + 55 base32 characters
WATCHED = "GWATCHED" + "A" * 48
OTHER = "GOTHER" + "B" * 50
THIRD = "GTHIRD" + "C" * 50
ISSUER = "GISSUER" + "D" * 49
ISSUER_2 = "GISSUERTWO" + "E" * 46

BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

# Stream script item: block until the stream is cancelled
HANG = object()


def build_transaction(
    n: int,
    source: str = OTHER,
    successful: bool = True,
    memo: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> Transaction:
    """Transaction number `n`; higher numbers are newer."""
    return Transaction(
        id=f"tx-{n}",
        hash=f"{n:064x}",
        created_at=created_at or BASE_TIME + timedelta(minutes=n),
        source_account=source,
        successful=successful,
        fee_charged="100",
        ledger=1000 + n,
        memo=memo,
        memo_type="text" if memo else "none",
        paging_token=str(n * 4096),
    )


def build_payment(
    transaction: Transaction,
    index: int = 1,
    from_account: Optional[str] = OTHER,
    to_account: Optional[str] = WATCHED,
    amount: Optional[str] = "10.0000000",
    asset_code: Optional[str] = None,
    asset_issuer: Optional[str] = None,
    source_account: Optional[str] = None,
    kind: str = "payment",
) -> Any:
    variants = {
        "payment": PaymentOperation,
        "path_payment_strict_receive": PathPaymentStrictReceiveOperation,
        "path_payment_strict_send": PathPaymentStrictSendOperation,
    }
    return variants[kind](
        id=f"{transaction.paging_token}-{index}",
        source_account=source_account or from_account,
        transaction_hash=transaction.hash,
        created_at=transaction.created_at,
        amount=amount,
        asset_type="native" if asset_code is None else "credit_alphanum4",
        asset_code=asset_code,
        asset_issuer=asset_issuer,
        from_account=from_account,
        to_account=to_account,
    )


def build_create_account(
    transaction: Transaction,
    index: int = 1,
    funder: Optional[str] = OTHER,
    account: str = WATCHED,
    starting_balance: Optional[str] = "10000.0000000",
) -> CreateAccountOperation:
    return CreateAccountOperation(
        id=f"{transaction.paging_token}-{index}",
        source_account=funder,
        transaction_hash=transaction.hash,
        created_at=transaction.created_at,
        starting_balance=starting_balance,
        funder=funder,
        account=account,
    )


def build_other(transaction: Transaction, index: int = 1, kind: str = "change_trust") -> OtherOperation:
    return OtherOperation(
        id=f"{transaction.paging_token}-{index}",
        type=kind,
        source_account=WATCHED,
        transaction_hash=transaction.hash,
    )


def build_account(account: str = WATCHED, balances: Optional[List[Dict[str, Any]]] = None) -> AccountRecord:
    lines = balances if balances is not None else [{"balance": "100.0000000", "asset_type": "native"}]
    return AccountRecord(
        account_id=account,
        sequence="123",
        balances=tuple(BalanceLine(**line) for line in lines),
    )


class FakeLedgerClient:
    """
    In-memory LedgerClient.

    Streams are scripted: each entry of `stream_scripts` serves one
    stream_transactions() call. An exception entry fails the connection;
    a list entry connects, then yields its transactions, raises its
    exceptions, or blocks on HANG. With no script left the stream blocks.
    """

    def __init__(self) -> None:
        self.transactions: List[Transaction] = []
        self.operations: Dict[str, List[Any]] = {}
        self.accounts: Dict[str, AccountRecord] = {}
        self.operation_errors: Dict[str, Exception] = {}
        self.list_error: Optional[Exception] = None
        self.account_error: Optional[Exception] = None
        self.stream_scripts: List[Any] = []

        self.list_calls: List[Dict[str, Any]] = []
        self.operation_calls: List[str] = []
        self.stream_cursors: List[str] = []
        self.active_streams = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    def add_transaction(self, transaction: Transaction, operations: List[Any]) -> None:
        self.transactions.append(transaction)
        self.operations[transaction.hash] = list(operations)

    async def list_transactions(
        self,
        account: str,
        limit: int,
        order: str = "desc",
        cursor: Optional[str] = None,
        include_failed: bool = False,
    ) -> TransactionPage:
        self.list_calls.append(
            {"account": account, "limit": limit, "order": order, "cursor": cursor, "include_failed": include_failed}
        )
        if self.list_error is not None:
            raise self.list_error

        records = [t for t in self.transactions if include_failed or t.successful]
        records.sort(key=lambda t: int(t.paging_token), reverse=(order == "desc"))
        if cursor is not None:
            position = int(cursor)
            if order == "desc":
                records = [t for t in records if int(t.paging_token) < position]
            else:
                records = [t for t in records if int(t.paging_token) > position]

        page = records[:limit]
        return TransactionPage(records=page, next_cursor=page[-1].cursor if page else None)

    async def list_operations(self, transaction_hash: str) -> List[Any]:
        self.operation_calls.append(transaction_hash)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if transaction_hash in self.operation_errors:
                raise self.operation_errors[transaction_hash]
            return list(self.operations.get(transaction_hash, []))
        finally:
            self.in_flight -= 1

    async def get_transaction(self, transaction_hash: str) -> Transaction:
        for transaction in self.transactions:
            if transaction.hash == transaction_hash:
                return transaction
        raise NotFoundError(f"Transaction {transaction_hash} not found")

    async def get_account(self, account: str) -> AccountRecord:
        if self.account_error is not None:
            raise self.account_error
        if account not in self.accounts:
            raise NotFoundError(f"Account {account} not found")
        return self.accounts[account]

    async def account_exists(self, account: str) -> bool:
        return account in self.accounts

    async def stream_transactions(
        self,
        account: str,
        cursor: str = "now",
        on_connected: Optional[Callable[[], None]] = None,
    ):
        self.stream_cursors.append(cursor)
        script = self.stream_scripts.pop(0) if self.stream_scripts else [HANG]
        if isinstance(script, BaseException):
            raise script

        if on_connected is not None:
            on_connected()

        self.active_streams += 1
        try:
            for item in script:
                if item is HANG:
                    await asyncio.Event().wait()
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            self.active_streams -= 1

    async def close(self) -> None:
        self.closed = True


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Let background tasks run until `predicate` holds."""
    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(poll(), timeout)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_client() -> FakeLedgerClient:
    """Empty in-memory ledger."""
    return FakeLedgerClient()


@pytest.fixture
def event_bus() -> LocalEventBus:
    return LocalEventBus()


@pytest.fixture
def recorded_events(event_bus: LocalEventBus) -> Dict[str, List[Any]]:
    """Every event published on `event_bus`, keyed by event type value."""
    events: Dict[str, List[Any]] = {et.value: [] for et in EventType}
    for event_type in EventType:
        event_bus.subscribe(event_type, events[event_type.value].append)
    return events
