"""
Trace context for correlating logs across a single sync pass.

Provides:
- Unique sync IDs (6-char hex) for each backfill, balance refresh or
  live-sync session
- Context propagation via contextvars (async-safe)

Usage:
    with new_sync_cycle():
        await history.fetch_payments(account, 20)

    # In any module
    from ledger_sync.utils.trace_context import get_sync_id
"""

from __future__ import annotations

import secrets
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Generator, Optional

_sync_id: ContextVar[Optional[str]] = ContextVar("sync_id", default=None)


def generate_sync_id() -> str:
    """
    Generate a new unique sync ID.

    Returns:
        6-character hex string (e.g., "a7f3b2").
    """
    return secrets.token_hex(3)


def get_sync_id() -> str:
    """
    Get the current sync ID.

    Returns:
        Current sync ID, or "------" if none is active.
    """
    sync_id = _sync_id.get()
    return sync_id if sync_id else "------"


@contextmanager
def new_sync_cycle() -> Generator[str, None, None]:
    """
    Context manager that sets a fresh sync ID for the enclosed work.

    Yields:
        The new sync ID.
    """
    sync_id = generate_sync_id()
    token = _sync_id.set(sync_id)
    try:
        yield sync_id
    finally:
        _sync_id.reset(token)
