"""
Domain exceptions for ledger sync.

Splits recoverable runtime errors (network glitches, rate limits, a dropped
stream, one malformed operation) from fatal errors (configuration problems)
that need operator intervention.
"""

from __future__ import annotations

from typing import Optional


class LedgerSyncError(Exception):
    """Base class for all ledger sync exceptions."""


class RecoverableError(LedgerSyncError):
    """
    Errors the sync can recover from without restarting.

    Examples:
    - Horizon timeouts and 5xx responses
    - Rate limiting (429)
    - Streaming connection dropped
    - A single operation with a malformed amount
    """


class FatalError(LedgerSyncError):
    """Errors requiring operator intervention (bad configuration)."""


class FetchError(RecoverableError):
    """Transport or HTTP failure talking to the ledger API."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retryable: bool = True,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable
        self.retry_after = retry_after


class NotFoundError(FetchError):
    """Resource absent on the ledger (e.g. account not created yet)."""

    def __init__(self, message: str):
        super().__init__(message, status_code=404, retryable=False)


class ParseError(RecoverableError):
    """Malformed amount or payload; the affected record is dropped."""


class StreamError(RecoverableError):
    """Live subscription dropped or ended; triggers a reconnect."""


class ConfigurationError(FatalError):
    """Invalid configuration or unsupported network operation."""
