"""Utility modules."""

from .backoff import BackoffPolicy
from .logging_setup import (
    get_logger,
    is_verbose_mode,
    set_log_timezone,
    set_verbose_mode,
    setup_category_logging,
    shutdown_logging,
)
from .perf_logger import log_timing_async
from .trace_context import (
    generate_sync_id,
    get_sync_id,
    new_sync_cycle,
)

__all__ = [
    # Backoff
    "BackoffPolicy",
    # Logging setup
    "setup_category_logging",
    "shutdown_logging",
    "set_log_timezone",
    "get_logger",
    "set_verbose_mode",
    "is_verbose_mode",
    # Trace context
    "get_sync_id",
    "new_sync_cycle",
    "generate_sync_id",
    # Performance logging
    "log_timing_async",
]
