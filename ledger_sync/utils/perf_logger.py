"""
Performance logging utilities.

Timing context managers that log durations to the perf category with the
current sync ID attached.

Usage:
    async with log_timing_async("history_backfill", warn_threshold_ms=3000) as ctx:
        records = await history.fetch_payments(account, limit)
        ctx["records"] = len(records)

Use it for request-level work (backfills, balance refreshes), not for
per-operation classification inside a batch.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from .logging_setup import get_logger
from .trace_context import get_sync_id

logger = get_logger(__name__)


def _log_duration(
    operation: str,
    duration_ms: float,
    warn_threshold_ms: float,
    error_threshold_ms: float,
    context: dict,
) -> None:
    sync_id = get_sync_id()
    log_data = {
        "sync": sync_id,
        "operation": operation,
        "duration_ms": round(duration_ms, 2),
        **context,
    }

    if duration_ms >= error_threshold_ms:
        logger.error(f"[{sync_id}] SLOW {operation}: {duration_ms:.1f}ms", extra={"data": log_data})
    elif duration_ms >= warn_threshold_ms:
        logger.warning(f"[{sync_id}] {operation}: {duration_ms:.1f}ms (slow)", extra={"data": log_data})
    else:
        logger.debug(f"[{sync_id}] {operation}: {duration_ms:.1f}ms", extra={"data": log_data})


@asynccontextmanager
async def log_timing_async(
    operation: str,
    warn_threshold_ms: float = 1000.0,
    error_threshold_ms: float = 5000.0,
    extra: Optional[dict] = None,
) -> AsyncGenerator[dict, None]:
    """
    Async context manager to log operation timing.

    Args:
        operation: Name of the operation being timed.
        warn_threshold_ms: Duration above which to log as WARNING.
        error_threshold_ms: Duration above which to log as ERROR.
        extra: Additional data to include in the log.

    Yields:
        Dict that can be updated with additional context during execution.
    """
    context = extra.copy() if extra else {}
    start_time = time.perf_counter()

    try:
        yield context
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000
        _log_duration(operation, duration_ms, warn_threshold_ms, error_threshold_ms, context)
