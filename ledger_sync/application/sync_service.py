"""
Ledger sync service - the consumer-facing facade.

Wires HistorySync, BalanceAggregator and per-account LiveSync instances to
one event bus, and owns per-account scheduling:
- at most one history/balance call in flight per account
- at most one live stream per account
- different accounts run independently

Error policy:
- NotFoundError (account not created yet) → empty result, no error event
- Any other fetch/parse failure → ERROR event on the bus, then re-raised
- start_live never raises; stream failures arrive as events
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Union

from ..domain.events.domain_events import BalancesUpdated, SyncErrorEvent
from ..domain.events.event_types import ErrorPhase, EventType
from ..domain.events.local_event_bus import LocalEventBus
from ..domain.exceptions import NotFoundError, RecoverableError
from ..domain.interfaces.event_bus import EventBus
from ..domain.interfaces.ledger_client import LedgerClient
from ..domain.interfaces.session_provider import CursorStore, SessionProvider
from ..domain.services.balance_aggregator import BalanceAggregator
from ..domain.services.operation_classifier import OperationClassifier, UnrelatedPolicy
from ..models.payment import BalanceMap, PaymentRecord
from ..utils.backoff import BackoffPolicy
from ..utils.logging_setup import get_logger
from ..utils.perf_logger import log_timing_async
from ..utils.trace_context import new_sync_cycle
from .history_sync import HistorySync
from .live_sync import LiveState, LiveSync

if TYPE_CHECKING:
    from config.models import AppConfig

logger = get_logger(__name__)


class LedgerSyncService:
    """
    Payments, balances and live updates for Stellar accounts.

    Usage:
        service = LedgerSyncService(HorizonClient(TESTNET))
        service.subscribe(EventType.TRANSACTION_RECEIVED, on_payment)

        payments = await service.fetch_payments("GABC...", limit=20)
        balances = await service.refresh_balances("GABC...")
        await service.start_live("GABC...")
        ...
        await service.close()
    """

    def __init__(
        self,
        client: LedgerClient,
        event_bus: Optional[EventBus] = None,
        classifier: Optional[OperationClassifier] = None,
        default_limit: int = 20,
        page_size: int = 200,
        max_concurrency: int = 8,
        qualify_issuer: bool = False,
        live_backoff: Optional[BackoffPolicy] = None,
        live_max_retries: Optional[int] = None,
        cursor_store: Optional[CursorStore] = None,
    ):
        """
        Args:
            client: Ledger data source (owned; closed by close()).
            event_bus: Event bus (a LocalEventBus is created if None).
            classifier: Operation classifier shared by history and live sync.
            default_limit: Transactions fetched when fetch_payments gets no limit.
            page_size: Transactions per listing request.
            max_concurrency: Concurrent operation lookups during a backfill.
            qualify_issuer: Key issued assets as CODE:ISSUER.
            live_backoff: Reconnect policy for live streams.
            live_max_retries: Reconnect attempts before giving up (None = forever).
            cursor_store: Persists live-stream cursors per account.
        """
        self._client = client
        self.event_bus: EventBus = event_bus or LocalEventBus()
        self._classifier = classifier or OperationClassifier()
        self._default_limit = default_limit
        self._live_backoff = live_backoff
        self._live_max_retries = live_max_retries
        self._cursor_store = cursor_store

        self._history = HistorySync(
            client,
            classifier=self._classifier,
            page_size=page_size,
            max_concurrency=max_concurrency,
        )
        self._aggregator = BalanceAggregator(client, qualify_issuer=qualify_issuer)

        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        # Separate from _locks so a long backfill never blocks stopping a stream
        self._live_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._balances: Dict[str, BalanceMap] = {}
        self._live: Dict[str, LiveSync] = {}
        self._session: Optional[SessionProvider] = None
        self._session_account: Optional[str] = None

    @classmethod
    def from_config(
        cls,
        config: "AppConfig",
        client: LedgerClient,
        event_bus: Optional[EventBus] = None,
        cursor_store: Optional[CursorStore] = None,
    ) -> "LedgerSyncService":
        """Build a service from the loaded application config."""
        live = config.live
        return cls(
            client,
            event_bus=event_bus,
            classifier=OperationClassifier(UnrelatedPolicy(config.classifier.unrelated_policy)),
            default_limit=config.history.default_limit,
            page_size=config.horizon.page_size,
            max_concurrency=config.history.max_concurrency,
            qualify_issuer=config.balances.qualify_issuer,
            live_backoff=BackoffPolicy(
                initial=live.backoff_initial,
                max_delay=live.backoff_max,
                factor=live.backoff_factor,
                jitter=live.backoff_jitter,
            ),
            live_max_retries=live.max_retries,
            cursor_store=cursor_store,
        )

    # -------------------------------------------------------------------------
    # History and balances
    # -------------------------------------------------------------------------

    async def fetch_payments(
        self, account: Optional[str] = None, limit: Optional[int] = None
    ) -> List[PaymentRecord]:
        """
        Backfill classified payments, newest first.

        Uses the session account when `account` is None. An account that
        does not exist yet yields an empty list.

        Raises:
            FetchError: Transaction listing failed (also published as ERROR).
        """
        account = self._resolve_account(account)
        limit = self._default_limit if limit is None else limit

        async with self._locks[account]:
            with new_sync_cycle():
                try:
                    async with log_timing_async(
                        "history_backfill", warn_threshold_ms=3000, extra={"account": account}
                    ) as ctx:
                        records = await self._history.fetch_payments(account, limit)
                        ctx["records"] = len(records)
                except NotFoundError:
                    logger.info(f"Account {account[:8]}... not found; no payment history")
                    return []
                except RecoverableError as e:
                    logger.error(f"Payment backfill failed for {account[:8]}...: {e}")
                    self._publish_error(ErrorPhase.HISTORY, account, e)
                    raise
        return records

    async def fetch_transaction_payments(
        self, transaction_hash: str, account: Optional[str] = None
    ) -> List[PaymentRecord]:
        """Classified payments of a single transaction."""
        account = self._resolve_account(account)
        return await self._history.fetch_transaction_payments(transaction_hash, account)

    async def refresh_balances(self, account: Optional[str] = None) -> BalanceMap:
        """
        Replace the stored balances for `account` and publish BALANCES_UPDATED.

        An account that does not exist yet publishes and returns an empty map.
        On failure the previous map is kept.

        Raises:
            FetchError: Account lookup failed (also published as ERROR).
            ParseError: Malformed balance (also published as ERROR).
        """
        account = self._resolve_account(account)

        async with self._locks[account]:
            with new_sync_cycle():
                try:
                    async with log_timing_async("balance_refresh", extra={"account": account}) as ctx:
                        balances = await self._aggregator.refresh_balances(account)
                        ctx["assets"] = len(balances)
                except NotFoundError:
                    logger.info(f"Account {account[:8]}... not found; balances empty")
                    balances = {}
                except RecoverableError as e:
                    logger.error(f"Balance refresh failed for {account[:8]}...: {e}")
                    self._publish_error(ErrorPhase.BALANCES, account, e)
                    raise

            self._balances[account] = balances
            self.event_bus.publish(
                EventType.BALANCES_UPDATED,
                BalancesUpdated(account=account, balances=dict(balances)),
            )
        return dict(balances)

    def get_balances(self, account: Optional[str] = None) -> BalanceMap:
        """Last refreshed balances for `account` (empty if never refreshed)."""
        account = self._resolve_account(account)
        return dict(self._balances.get(account, {}))

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(self, event_type: Union[EventType, str], callback: Callable[[Any], Any]) -> None:
        self.event_bus.subscribe(EventType(event_type), callback)

    def unsubscribe(self, event_type: Union[EventType, str], callback: Callable[[Any], Any]) -> None:
        self.event_bus.unsubscribe(EventType(event_type), callback)

    # -------------------------------------------------------------------------
    # Live sync
    # -------------------------------------------------------------------------

    async def start_live(self, account: Optional[str] = None, cursor: Optional[str] = None) -> None:
        """
        Start streaming `account`, replacing any existing stream for it.

        Never raises for ledger failures; they arrive as ERROR and
        LIVE_STATE_CHANGED events.
        """
        account = self._resolve_account(account)

        async with self._live_locks[account]:
            existing = self._live.pop(account, None)
            if existing is not None:
                await existing.stop()

            live = LiveSync(
                self._client,
                self.event_bus,
                account,
                classifier=self._classifier,
                backoff=self._live_backoff,
                max_retries=self._live_max_retries,
                cursor_store=self._cursor_store,
            )
            self._live[account] = live
            await live.start(cursor)

    async def stop_live(self, account: Optional[str] = None) -> None:
        """Stop streaming `account`. No events for it follow this call."""
        account = self._resolve_account(account)
        async with self._live_locks[account]:
            live = self._live.pop(account, None)
            if live is not None:
                await live.stop()

    def live_state(self, account: Optional[str] = None) -> LiveState:
        account = self._resolve_account(account)
        live = self._live.get(account)
        return live.state if live is not None else LiveState.DISCONNECTED

    def live_stats(self) -> Dict[str, Dict[str, Any]]:
        return {account: live.stats for account, live in self._live.items()}

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    async def attach_session(self, session: SessionProvider) -> None:
        """
        Follow a wallet session: live sync runs for the connected account and
        stops on disconnect.
        """
        if self._session is not None:
            self._session.remove_listener(self._on_session_changed)

        self._session = session
        session.add_listener(self._on_session_changed)

        if session.is_active():
            await self._on_session_changed(session.current_account(), True)

    async def _on_session_changed(self, account: Optional[str], active: bool) -> None:
        previous = self._session_account

        if previous is not None and (not active or account != previous):
            self._session_account = None
            await self.stop_live(previous)

        if active and account and account != previous:
            self._session_account = account
            await self.start_live(account)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """Stop every live stream and close the ledger client."""
        if self._session is not None:
            self._session.remove_listener(self._on_session_changed)
            self._session = None

        for account in list(self._live):
            await self.stop_live(account)

        await self._client.close()
        logger.info("Ledger sync service closed")

    async def __aenter__(self) -> "LedgerSyncService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _resolve_account(self, account: Optional[str]) -> str:
        if account:
            return account
        if self._session is not None:
            current = self._session.current_account()
            if current:
                return current
        raise ValueError("No account given and no wallet session is connected")

    def _publish_error(self, phase: ErrorPhase, account: str, error: BaseException) -> None:
        self.event_bus.publish(
            EventType.ERROR,
            SyncErrorEvent(phase=phase, account=account, cause=error),
        )
