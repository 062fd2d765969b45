"""
Logging setup with categories, JSON files and sync ID correlation.

Provides:
- 5 log categories: system, adapter, sync, data, perf
- Automatic module → category routing
- Sync ID correlation in all logs
- Non-blocking file logging (QueueHandler → QueueListener → FileHandler)
- Console output with colors (CLI / verbose mode)
- Configurable timezone for log timestamps

Categories:
- system: Startup, shutdown, config, CLI, session
- adapter: Horizon HTTP calls, retries, stream connects/disconnects
- sync: History backfill, live sync state machine, event bus
- data: Classification, balance aggregation, cursor/session stores
- perf: Timing, latency
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from queue import Queue
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo

from .trace_context import get_sync_id

# =============================================================================
# GLOBAL STATE
# =============================================================================

# Global timezone setting for log timestamps (None = local time)
_log_timezone: Optional[ZoneInfo] = None

# Global verbose flag (set via --verbose CLI flag)
_verbose_mode: bool = False

# Global log level override
_log_level_override: Optional[str] = None

# Configured category loggers
_category_loggers: Dict[str, logging.Logger] = {}

# Queue listeners for async file logging (one per category)
_queue_listeners: List[logging.handlers.QueueListener] = []

ROOT_LOGGER_NAME = "ledger_sync"

# =============================================================================
# LOG CATEGORIES AND ROUTING
# =============================================================================

CATEGORIES = ["system", "adapter", "sync", "data", "perf"]

CATEGORY_SUFFIXES = {
    "system": "sys",
    "adapter": "adp",
    "sync": "syn",
    "data": "dat",
    "perf": "prf",
}

# Module path → category routing
# More specific paths should come first
MODULE_ROUTING: List[tuple[str, str]] = [
    ("ledger_sync.infrastructure.adapters", "adapter"),
    ("ledger_sync.infrastructure.stores", "data"),
    ("ledger_sync.infrastructure.session", "system"),
    ("ledger_sync.application", "sync"),
    ("ledger_sync.domain.events", "sync"),
    ("ledger_sync.domain.services", "data"),
    ("ledger_sync.models", "data"),
    ("ledger_sync.presentation", "system"),
    ("ledger_sync.utils.perf_logger", "perf"),
    # Default fallback
    ("ledger_sync", "system"),
]


def get_category_for_module(module_name: str) -> str:
    """
    Determine the log category for a given module name.

    Args:
        module_name: Full module path (e.g., "ledger_sync.application.live_sync").

    Returns:
        Category name (system, adapter, sync, data, or perf).
    """
    for prefix, category in MODULE_ROUTING:
        if module_name.startswith(prefix):
            return category
    return "system"


# =============================================================================
# TIMEZONE SUPPORT
# =============================================================================

def set_log_timezone(tz: Optional[str] = None) -> None:
    """
    Set the timezone for log timestamps.

    Args:
        tz: Timezone name (e.g., "UTC", "Europe/Berlin"). None or "local"
            uses local system time.
    """
    global _log_timezone
    if tz is None or tz == "local":
        _log_timezone = None
    else:
        _log_timezone = ZoneInfo(tz)


def get_current_timestamp() -> str:
    """Get the current timestamp formatted for logging."""
    if _log_timezone is not None:
        return datetime.now(_log_timezone).isoformat()
    return datetime.now().isoformat()


# =============================================================================
# GLOBAL CONFIGURATION
# =============================================================================

def set_verbose_mode(enabled: bool) -> None:
    """Enable or disable verbose mode (DEBUG level logging)."""
    global _verbose_mode
    _verbose_mode = enabled


def is_verbose_mode() -> bool:
    return _verbose_mode


def set_log_level_override(level: Optional[str]) -> None:
    """Set a global log level override."""
    global _log_level_override
    _log_level_override = level.upper() if level else None


def get_effective_log_level() -> str:
    """Get the effective log level (considering verbose mode and overrides)."""
    if _verbose_mode:
        return "DEBUG"
    if _log_level_override:
        return _log_level_override
    return "INFO"


# =============================================================================
# FORMATTERS
# =============================================================================

class SyncIdFilter(logging.Filter):
    """Stamp the caller's sync ID on the record before it crosses the queue."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "sync_id"):
            record.sync_id = get_sync_id()
        return True


def _record_sync_id(record: logging.LogRecord) -> str:
    return getattr(record, "sync_id", None) or get_sync_id()


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging with sync ID support.

    Formats log records as single-line JSON with timestamp, level,
    category, sync ID, message and optional exception text.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": get_current_timestamp(),
            "level": record.levelname,
            "cat": self._get_category(record.name),
            "sync": _record_sync_id(record),
            "msg": record.getMessage(),
        }

        if hasattr(record, "data") and record.data:
            log_entry["data"] = record.data

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)

    def _get_category(self, logger_name: str) -> str:
        parts = logger_name.split(".")
        if len(parts) >= 2 and parts[0] == ROOT_LOGGER_NAME and parts[1] in CATEGORIES:
            return parts[1]
        return "system"


class ConsoleFormatter(logging.Formatter):
    """
    Console formatter with sync ID and color support.

    Format: [LEVEL] [sync] message
    """

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        sync_id = _record_sync_id(record)
        level = record.levelname
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        if self.use_colors:
            color = self.COLORS.get(level, "")
            return f"{color}[{level:7}]{self.RESET} [{sync_id}] {message}"
        return f"[{level:7}] [{sync_id}] {message}"


# =============================================================================
# LOGGER FACTORY
# =============================================================================

def get_logger(module_name: str) -> logging.Logger:
    """
    Get a logger for the given module, routed to the correct category.

    This is the primary function modules should use to get their logger.

    Args:
        module_name: Module name (typically __name__).

    Returns:
        Category logger ("ledger_sync.<category>").

    Example:
        from ledger_sync.utils.logging_setup import get_logger
        logger = get_logger(__name__)
        logger.info("Backfilling...")
    """
    category = get_category_for_module(module_name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{category}")


# =============================================================================
# CATEGORY LOGGING SETUP
# =============================================================================

def setup_category_logging(
    env: str,
    log_dir: str = "./logs",
    level: str = "INFO",
    console: bool = False,
    verbose: bool = False,
) -> Dict[str, logging.Logger]:
    """
    Set up separate JSON log files for each category.

    Creates files in a date-specific subdirectory:
    - logs/{date}/ledger_sync_{env}_sys_{date}.log - System events
    - logs/{date}/ledger_sync_{env}_adp_{date}.log - Horizon adapter events
    - logs/{date}/ledger_sync_{env}_syn_{date}.log - Sync events
    - logs/{date}/ledger_sync_{env}_dat_{date}.log - Data events
    - logs/{date}/ledger_sync_{env}_prf_{date}.log - Performance events

    Args:
        env: Environment name (dev/prod).
        log_dir: Base directory for log files.
        level: Default logging level.
        console: Enable console output.
        verbose: Enable verbose (DEBUG) mode.

    Returns:
        Dict mapping category name to logger.
    """
    shutdown_logging()

    for category in CATEGORIES:
        logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{category}")
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)

    set_verbose_mode(verbose)
    if not verbose:
        set_log_level_override(level)

    date_str = datetime.now().strftime("%Y-%m-%d")
    log_path = Path(log_dir) / date_str
    log_path.mkdir(parents=True, exist_ok=True)

    effective_level = getattr(logging, get_effective_log_level(), logging.INFO)

    for category in CATEGORIES:
        suffix = CATEGORY_SUFFIXES[category]
        filename = f"ledger_sync_{env}_{suffix}_{date_str}.log"

        logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{category}")
        logger.setLevel(effective_level)
        logger.propagate = False

        file_handler = logging.FileHandler(
            filename=str(log_path / filename),
            mode="a",
            encoding="utf-8",
        )
        file_handler.setFormatter(JSONFormatter())
        file_handler.setLevel(effective_level)

        # Queue in front of the file so writes never block the event loop
        log_queue: Queue = Queue(-1)
        queue_handler = logging.handlers.QueueHandler(log_queue)
        queue_handler.addFilter(SyncIdFilter())
        logger.addHandler(queue_handler)

        listener = logging.handlers.QueueListener(
            log_queue, file_handler, respect_handler_level=True
        )
        listener.start()
        _queue_listeners.append(listener)

        if console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(ConsoleFormatter(use_colors=sys.stderr.isatty()))
            console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
            logger.addHandler(console_handler)

        _category_loggers[category] = logger

    return _category_loggers


def shutdown_logging() -> None:
    """Drain and stop all queue listeners (call during application shutdown)."""
    for listener in _queue_listeners:
        listener.stop()
        for handler in listener.handlers:
            handler.close()
    _queue_listeners.clear()
