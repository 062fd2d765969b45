"""Application layer: history backfill, live streaming and the service facade."""

from .history_sync import HistorySync
from .live_sync import LiveState, LiveSync
from .sync_service import LedgerSyncService

__all__ = [
    "HistorySync",
    "LiveSync",
    "LiveState",
    "LedgerSyncService",
]
