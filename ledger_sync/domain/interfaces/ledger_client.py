"""Ledger client protocol (read-only access to the ledger API)."""

from __future__ import annotations

from typing import AsyncIterator, Callable, List, Optional, Protocol, runtime_checkable

from ...models.ledger import AccountRecord, Operation, Transaction, TransactionPage


@runtime_checkable
class LedgerClient(Protocol):
    """
    Protocol for ledger data sources.

    Implementations:
    - HorizonClient (Stellar Horizon REST + SSE)
    - FakeLedgerClient (tests)

    All methods may raise FetchError; get_account/get_transaction raise
    NotFoundError when the resource does not exist.
    """

    async def list_transactions(
        self,
        account: str,
        limit: int,
        order: str = "desc",
        cursor: Optional[str] = None,
        include_failed: bool = False,
    ) -> TransactionPage:
        """
        Fetch one page of transactions touching `account`.

        Returned transactions have no operations attached.
        """
        ...

    async def list_operations(self, transaction_hash: str) -> List[Operation]:
        """Fetch the operations of a transaction, in ledger order."""
        ...

    async def get_transaction(self, transaction_hash: str) -> Transaction:
        """Fetch a single transaction by hash (without operations)."""
        ...

    async def get_account(self, account: str) -> AccountRecord:
        """
        Fetch account state including balances.

        Raises:
            NotFoundError: Account does not exist on the ledger yet.
            FetchError: Transport failure.
        """
        ...

    async def account_exists(self, account: str) -> bool:
        ...

    def stream_transactions(
        self,
        account: str,
        cursor: str = "now",
        on_connected: Optional[Callable[[], None]] = None,
    ) -> AsyncIterator[Transaction]:
        """
        Stream transactions for `account` strictly after `cursor`.

        `on_connected` is called once the server has accepted the stream.

        Iteration raises StreamError when the connection drops or the
        server closes it. Cancelling the consuming task closes the stream.
        """
        ...

    async def close(self) -> None:
        ...
