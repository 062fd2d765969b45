"""
History sync - paginated payment backfill for one account.

Flow:
1. Page through the account's successful transactions, newest first,
   until `limit` transactions are collected
2. Resolve each transaction's operations (bounded concurrent fan-out,
   joined before anything is returned)
3. Classify every operation against the account
4. Return records ordered by date, newest first; operations of one
   transaction keep their ledger order

A failed operation lookup degrades that one transaction to "no operations";
a failed transaction listing fails the whole call.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional, Set

from ..domain.exceptions import FetchError, ParseError
from ..domain.interfaces.ledger_client import LedgerClient
from ..domain.services.operation_classifier import OperationClassifier
from ..models.ledger import Transaction
from ..models.payment import PaymentRecord
from ..utils.logging_setup import get_logger

logger = get_logger(__name__)


class HistorySync:
    """Backfills classified payments for an account."""

    def __init__(
        self,
        client: LedgerClient,
        classifier: Optional[OperationClassifier] = None,
        page_size: int = 200,
        max_concurrency: int = 8,
    ):
        """
        Args:
            client: Ledger data source.
            classifier: Operation classifier (default policy if None).
            page_size: Transactions requested per page.
            max_concurrency: Max concurrent operation lookups.
        """
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")

        self._client = client
        self._classifier = classifier or OperationClassifier()
        self._page_size = page_size
        self._max_concurrency = max_concurrency

    async def fetch_payments(self, account: str, limit: int = 20) -> List[PaymentRecord]:
        """
        Fetch up to `limit` transactions and classify their payments.

        Raises:
            NotFoundError: Account does not exist on the ledger.
            FetchError: Transaction listing failed.
        """
        if limit < 1:
            return []

        transactions = await self._list_transactions(account, limit)
        resolved = await self._resolve_operations(transactions)

        records: List[PaymentRecord] = []
        seen: Set[str] = set()
        for transaction in resolved:
            for record in self._classifier.classify_transaction(transaction, account):
                if record.id in seen:
                    continue
                seen.add(record.id)
                records.append(record)

        # Stable sort keeps operation order within a transaction
        records.sort(key=lambda r: r.date, reverse=True)

        logger.info(
            f"Backfill for {account[:8]}...: {len(resolved)} transactions → {len(records)} payments"
        )
        return records

    async def fetch_transaction_payments(self, transaction_hash: str, account: str) -> List[PaymentRecord]:
        """
        Classify the payments of a single transaction.

        Unlike the backfill, a failed operation lookup propagates here.

        Raises:
            NotFoundError: Unknown transaction hash.
            FetchError: Transport failure.
        """
        transaction = await self._client.get_transaction(transaction_hash)
        operations = await self._client.list_operations(transaction.hash)
        return self._classifier.classify_transaction(transaction.with_operations(operations), account)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _list_transactions(self, account: str, limit: int) -> List[Transaction]:
        transactions: List[Transaction] = []
        seen_hashes: Set[str] = set()
        cursor: Optional[str] = None

        while len(transactions) < limit:
            remaining = limit - len(transactions)
            page_limit = min(self._page_size, remaining)
            page = await self._client.list_transactions(
                account,
                limit=page_limit,
                order="desc",
                cursor=cursor,
                include_failed=False,
            )

            for transaction in page.records:
                if transaction.hash in seen_hashes:
                    continue
                seen_hashes.add(transaction.hash)
                transactions.append(transaction)
                if len(transactions) >= limit:
                    break

            if page.size < page_limit or not page.next_cursor or page.next_cursor == cursor:
                break
            cursor = page.next_cursor

        return transactions

    async def _resolve_operations(self, transactions: List[Transaction]) -> List[Transaction]:
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def resolve(transaction: Transaction) -> Transaction:
            async with semaphore:
                try:
                    operations = await self._client.list_operations(transaction.hash)
                except (FetchError, ParseError) as e:
                    logger.warning(
                        f"Operations unavailable for tx {transaction.hash[:12]}: {e}; "
                        "continuing without them"
                    )
                    return transaction.with_operations([])
            return transaction.with_operations(operations)

        return list(await asyncio.gather(*(resolve(tx) for tx in transactions)))
