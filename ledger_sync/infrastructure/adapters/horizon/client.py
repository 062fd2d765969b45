"""
Horizon adapter - read-only access to the Stellar ledger over REST and SSE.

Provides:
- Paged transaction listing and per-transaction operation lookup
- Account lookup (404 → NotFoundError, distinct from transport failure)
- Transaction streaming via Server-Sent Events
- Read retries with jittered exponential backoff on timeouts, 429 and 5xx
- Testnet funding through friendbot
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from ....domain.exceptions import (
    ConfigurationError,
    FetchError,
    NotFoundError,
    ParseError,
    StreamError,
)
from ....models.ledger import AccountRecord, Operation, Transaction, TransactionPage
from ....utils.backoff import BackoffPolicy
from ....utils.logging_setup import get_logger
from .converters import (
    embedded_records,
    parse_account,
    parse_operations,
    parse_transaction,
    parse_transaction_page,
)
from .network import TESTNET, NetworkConfig
from .sse import iter_sse

logger = get_logger(__name__)


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class HorizonClient:
    """
    Async Horizon client implementing the LedgerClient protocol.

    Usage:
        client = HorizonClient(TESTNET)
        page = await client.list_transactions(account, limit=20)
        ops = await client.list_operations(page.records[0].hash)
        await client.close()
    """

    ADAPTER_TYPE = "horizon"
    MAX_PAGE_SIZE = 200

    def __init__(
        self,
        network: NetworkConfig = TESTNET,
        timeout: float = 15.0,
        max_retries: int = 3,
        backoff: Optional[BackoffPolicy] = None,
        stream_read_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Horizon client.

        Args:
            network: Network preset (Horizon URL, passphrase, friendbot).
            timeout: Per-request timeout in seconds.
            max_retries: Retries for retryable read failures (0 disables).
            backoff: Delay policy between retries.
            stream_read_timeout: Max silence on a stream before it is
                considered dead (None waits indefinitely).
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        self.network = network
        self.max_retries = max_retries
        self._timeout = timeout
        self._stream_read_timeout = stream_read_timeout
        self._backoff = backoff or BackoffPolicy(initial=0.5, max_delay=10.0)
        self._client = httpx.AsyncClient(
            base_url=network.horizon_url,
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

        # Stats
        self._request_count = 0
        self._retry_count = 0
        self._stream_count = 0
        self._last_error: Optional[str] = None
        self._last_success: Optional[datetime] = None

    # -------------------------------------------------------------------------
    # LedgerClient
    # -------------------------------------------------------------------------

    async def list_transactions(
        self,
        account: str,
        limit: int,
        order: str = "desc",
        cursor: Optional[str] = None,
        include_failed: bool = False,
    ) -> TransactionPage:
        params: Dict[str, Any] = {
            "limit": max(1, min(limit, self.MAX_PAGE_SIZE)),
            "order": order,
            "include_failed": "true" if include_failed else "false",
        }
        if cursor:
            params["cursor"] = cursor

        payload = await self._get_json(f"/accounts/{account}/transactions", params)
        return parse_transaction_page(payload)

    async def list_operations(self, transaction_hash: str) -> List[Operation]:
        # A transaction carries at most 100 operations, so one page suffices
        payload = await self._get_json(
            f"/transactions/{transaction_hash}/operations",
            {"limit": self.MAX_PAGE_SIZE},
        )
        return parse_operations(embedded_records(payload))

    async def get_transaction(self, transaction_hash: str) -> Transaction:
        payload = await self._get_json(f"/transactions/{transaction_hash}")
        return parse_transaction(payload)

    async def get_account(self, account: str) -> AccountRecord:
        payload = await self._get_json(f"/accounts/{account}")
        return parse_account(payload)

    async def account_exists(self, account: str) -> bool:
        try:
            await self.get_account(account)
        except NotFoundError:
            return False
        return True

    async def stream_transactions(
        self,
        account: str,
        cursor: str = "now",
        on_connected: Optional[Callable[[], None]] = None,
    ) -> AsyncIterator[Transaction]:
        """
        Stream transactions for `account` after `cursor`.

        Raises:
            StreamError: Connection refused, dropped, or closed by the server.
        """
        self._stream_count += 1
        timeout = httpx.Timeout(self._timeout, read=self._stream_read_timeout)
        logger.info(f"Opening transaction stream for {account[:8]}... at cursor {cursor}")

        try:
            async with self._client.stream(
                "GET",
                f"/accounts/{account}/transactions",
                params={"cursor": cursor},
                headers={"Accept": "text/event-stream"},
                timeout=timeout,
            ) as response:
                if response.status_code != 200:
                    raise StreamError(
                        f"Stream for {account} rejected with HTTP {response.status_code}"
                    )

                if on_connected is not None:
                    on_connected()

                async for event in iter_sse(response.aiter_lines()):
                    try:
                        payload = json.loads(event.data)
                    except json.JSONDecodeError:
                        logger.warning(f"Undecodable stream event: {event.data[:80]!r}")
                        continue

                    # "hello" / "byebye" keep-alive payloads are plain strings
                    if not isinstance(payload, dict):
                        continue

                    try:
                        transaction = parse_transaction(payload)
                    except ParseError as e:
                        logger.warning(f"Skipping streamed record: {e}")
                        continue

                    self._last_success = datetime.now()
                    yield transaction

        except httpx.HTTPError as e:
            self._last_error = str(e)
            raise StreamError(f"Stream for {account} failed: {type(e).__name__}: {e}") from e

        raise StreamError(f"Stream for {account} closed by server")

    async def close(self) -> None:
        await self._client.aclose()

    # -------------------------------------------------------------------------
    # Testnet helpers
    # -------------------------------------------------------------------------

    async def fund_testnet_account(self, account: str) -> bool:
        """
        Ask friendbot to create and fund `account` (testnet only).

        Returns:
            True if friendbot accepted the request, False if it refused
            (e.g. the account is already funded).

        Raises:
            ConfigurationError: Not on a network with friendbot.
            FetchError: Transport failure.
        """
        if not self.network.friendbot_url:
            raise ConfigurationError(f"Account funding is not available on {self.network.name}")

        try:
            response = await self._client.get(self.network.friendbot_url, params={"addr": account})
        except httpx.HTTPError as e:
            raise FetchError(f"Friendbot request failed: {e}") from e

        if response.is_success:
            logger.info(f"Friendbot funded {account}")
            return True

        logger.warning(f"Friendbot refused {account}: HTTP {response.status_code}")
        return False

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET with retries for retryable failures."""
        retrying = AsyncRetrying(
            retry=retry_if_exception(lambda e: isinstance(e, FetchError) and e.retryable),
            stop=stop_after_attempt(self.max_retries + 1),
            wait=self._retry_wait,
            before_sleep=lambda retry_state: self._log_retry(path, retry_state),
            reraise=True,
        )
        try:
            return await retrying(self._request_json, path, params)
        except FetchError as e:
            self._last_error = str(e)
            raise

    def _retry_wait(self, retry_state: RetryCallState) -> float:
        """Server's Retry-After when given (capped at max_delay), else backoff."""
        error = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(error, FetchError) and error.retry_after is not None:
            return min(error.retry_after, self._backoff.max_delay)
        return self._backoff.delay(retry_state.attempt_number)

    def _log_retry(self, path: str, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        self._retry_count += 1
        self._last_error = str(error)
        logger.warning(
            f"GET {path} failed ({error}), retrying in {delay:.1f}s "
            f"(attempt {retry_state.attempt_number}/{self.max_retries})"
        )

    async def _request_json(self, path: str, params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        self._request_count += 1
        try:
            response = await self._client.get(path, params=params)
        except httpx.TimeoutException as e:
            raise FetchError(f"Timeout on GET {path}") from e
        except httpx.HTTPError as e:
            raise FetchError(f"Transport error on GET {path}: {type(e).__name__}: {e}") from e

        status = response.status_code
        if status == 404:
            raise NotFoundError(f"Not found: {path}")
        if status == 429:
            raise FetchError(
                f"Rate limited on GET {path}",
                status_code=status,
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
            )
        if status >= 500:
            raise FetchError(f"HTTP {status} on GET {path}", status_code=status)
        if status >= 400:
            raise FetchError(f"HTTP {status} on GET {path}", status_code=status, retryable=False)

        try:
            payload = response.json()
        except ValueError as e:
            raise ParseError(f"Invalid JSON from GET {path}") from e

        self._last_success = datetime.now()
        return payload

    def get_connection_info(self) -> dict:
        """Get client information for monitoring."""
        return {
            "adapter_type": self.ADAPTER_TYPE,
            "network": self.network.name,
            "horizon_url": self.network.horizon_url,
            "requests": self._request_count,
            "retries": self._retry_count,
            "streams_opened": self._stream_count,
            "last_success": self._last_success.isoformat() if self._last_success else None,
            "last_error": self._last_error,
        }
