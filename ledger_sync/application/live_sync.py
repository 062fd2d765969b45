"""
Live sync - streams new transactions for one account and publishes payments.

State machine:

    DISCONNECTED --start()--> CONNECTING --stream open--> STREAMING
         ^                        ^                           |
         |                        |                      drop / error
         |                        +------- RECONNECTING <-----+
         |                                      |
         +------- stop() / retries exhausted ---+

The cursor only advances after a transaction has been fully processed, so a
reconnect resumes from the last delivered transaction (at-least-once).
Transactions are processed one at a time, in stream order.
"""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from ..domain.events.domain_events import (
    LiveStateChanged,
    SyncErrorEvent,
    TransactionReceived,
)
from ..domain.events.event_types import ErrorPhase, EventType
from ..domain.exceptions import FetchError, ParseError, StreamError
from ..domain.interfaces.event_bus import EventBus
from ..domain.interfaces.ledger_client import LedgerClient
from ..domain.interfaces.session_provider import CursorStore
from ..domain.services.operation_classifier import OperationClassifier
from ..models.ledger import Transaction
from ..utils.backoff import BackoffPolicy
from ..utils.logging_setup import get_logger

logger = get_logger(__name__)

START_CURSOR = "now"


class LiveState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    RECONNECTING = "reconnecting"


class LiveSync:
    """
    Reconnecting transaction stream for a single account.

    Usage:
        live = LiveSync(client, event_bus, account, cursor_store=store)
        await live.start()          # returns immediately, runs in background
        ...
        await live.stop()           # no events are published after this returns
    """

    def __init__(
        self,
        client: LedgerClient,
        event_bus: EventBus,
        account: str,
        classifier: Optional[OperationClassifier] = None,
        backoff: Optional[BackoffPolicy] = None,
        max_retries: Optional[int] = None,
        cursor_store: Optional[CursorStore] = None,
    ):
        """
        Args:
            client: Ledger data source.
            event_bus: Bus for TRANSACTION_RECEIVED / LIVE_STATE_CHANGED / ERROR.
            account: Watched account id.
            classifier: Operation classifier (default policy if None).
            backoff: Reconnect delay policy.
            max_retries: Consecutive failed attempts before giving up
                (None = retry forever, 0 = never retry).
            cursor_store: Persists the resume cursor across restarts.
        """
        if max_retries is not None and max_retries < 0:
            raise ValueError(f"max_retries must be >= 0 or None, got {max_retries}")

        self.account = account
        self._client = client
        self._event_bus = event_bus
        self._classifier = classifier or OperationClassifier()
        self._backoff = backoff or BackoffPolicy()
        self._max_retries = max_retries
        self._cursor_store = cursor_store

        self._state = LiveState.DISCONNECTED
        self._cursor = START_CURSOR
        self._task: Optional[asyncio.Task] = None
        self._stopping = False
        self._attempt = 0

        # Statistics
        self._transactions_received = 0
        self._payments_published = 0
        self._reconnect_count = 0
        self._last_error: Optional[str] = None
        self._last_message_at: Optional[datetime] = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def state(self) -> LiveState:
        return self._state

    @property
    def cursor(self) -> str:
        """Paging token of the last fully processed transaction."""
        return self._cursor

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            "account": self.account,
            "state": self._state.value,
            "cursor": self._cursor,
            "running": self.is_running,
            "transactions_received": self._transactions_received,
            "payments_published": self._payments_published,
            "reconnect_count": self._reconnect_count,
            "last_error": self._last_error,
            "last_message_at": self._last_message_at.isoformat() if self._last_message_at else None,
        }

    async def start(self, cursor: Optional[str] = None) -> None:
        """
        Begin streaming in a background task.

        Resumes from `cursor`, else from the stored cursor, else from "now".
        Failures never surface here; they show up as state changes and
        ERROR events.
        """
        if self.is_running:
            logger.warning(f"Live sync for {self.account[:8]}... already running")
            return

        if cursor is None and self._cursor_store is not None:
            cursor = self._cursor_store.get(self.account)
        self._cursor = cursor or START_CURSOR

        self._stopping = False
        self._attempt = 0
        self._set_state(LiveState.CONNECTING)
        self._task = asyncio.create_task(self._run(), name=f"live-sync-{self.account[:8]}")
        logger.info(f"Live sync started for {self.account[:8]}... at cursor {self._cursor}")

    async def stop(self) -> None:
        """
        Stop streaming. Idempotent.

        Once this returns the stream is closed and nothing more is published
        for this account. Called from inside a subscriber running on the
        stream task itself, the task is cancelled without being awaited.
        """
        self._stopping = True
        task, self._task = self._task, None

        if task is not None and not task.done():
            task.cancel()
            if task is not asyncio.current_task():
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        if self._state is not LiveState.DISCONNECTED:
            self._set_state(LiveState.DISCONNECTED)
            logger.info(
                f"Live sync stopped for {self.account[:8]}... "
                f"(transactions={self._transactions_received}, reconnects={self._reconnect_count})"
            )

    # -------------------------------------------------------------------------
    # Internal: Stream Loop with Auto-Reconnect
    # -------------------------------------------------------------------------

    async def _run(self) -> None:
        while not self._stopping:
            try:
                stream = self._client.stream_transactions(
                    self.account, self._cursor, on_connected=self._on_connected
                )
                async with aclosing(stream):
                    async for transaction in stream:
                        await self._process(transaction)
                        # Progress made: the next failure starts a fresh backoff
                        self._attempt = 0
                raise StreamError(f"Stream for {self.account} ended")

            except asyncio.CancelledError:
                logger.debug(f"Live sync loop cancelled for {self.account[:8]}...")
                raise

            except (StreamError, FetchError) as e:
                error: Exception = e

            except Exception as e:
                logger.error(f"Unexpected live sync error for {self.account[:8]}...: {e}", exc_info=True)
                error = e

            if self._stopping:
                return

            self._attempt += 1
            self._last_error = str(error)

            if self._max_retries is not None and self._attempt > self._max_retries:
                logger.error(
                    f"Live sync for {self.account[:8]}... giving up after "
                    f"{self._attempt - 1} retries: {error}"
                )
                self._publish(
                    EventType.ERROR,
                    SyncErrorEvent(phase=ErrorPhase.LIVE, account=self.account, cause=error),
                )
                self._set_state(LiveState.DISCONNECTED)
                return

            self._reconnect_count += 1
            delay = self._backoff.delay(self._attempt)
            logger.warning(
                f"Live stream for {self.account[:8]}... lost: {error}, "
                f"reconnecting in {delay:.1f}s (attempt #{self._attempt})"
            )
            self._set_state(LiveState.RECONNECTING)
            await asyncio.sleep(delay)
            if not self._stopping:
                self._set_state(LiveState.CONNECTING)

    def _on_connected(self) -> None:
        if self._stopping:
            return
        self._set_state(LiveState.STREAMING)

    async def _process(self, transaction: Transaction) -> None:
        self._transactions_received += 1
        self._last_message_at = datetime.now()

        try:
            operations = await self._client.list_operations(transaction.hash)
        except (FetchError, ParseError) as e:
            # Leave the cursor where it is so the transaction is redelivered
            raise StreamError(
                f"Could not resolve operations for tx {transaction.hash[:12]}: {e}"
            ) from e

        records = self._classifier.classify_transaction(
            transaction.with_operations(operations), self.account
        )
        for record in records:
            if self._stopping:
                return
            self._publish(
                EventType.TRANSACTION_RECEIVED,
                TransactionReceived(account=self.account, record=record),
            )
            self._payments_published += 1

        self._advance_cursor(transaction.cursor)

    def _advance_cursor(self, cursor: str) -> None:
        if not cursor:
            return
        self._cursor = cursor
        if self._cursor_store is not None:
            self._cursor_store.set(self.account, cursor)

    # -------------------------------------------------------------------------
    # Internal: Publishing
    # -------------------------------------------------------------------------

    def _set_state(self, state: LiveState) -> None:
        if state is self._state:
            return
        previous, self._state = self._state, state

        # After stop() only the final DISCONNECTED transition is published
        if self._stopping and state is not LiveState.DISCONNECTED:
            return

        self._event_bus.publish(
            EventType.LIVE_STATE_CHANGED,
            LiveStateChanged(
                account=self.account,
                state=state.value,
                previous=previous.value,
                reconnect_attempt=self._attempt,
            ),
        )

    def _publish(self, event_type: EventType, payload: Any) -> None:
        if self._stopping:
            return
        self._event_bus.publish(event_type, payload)
