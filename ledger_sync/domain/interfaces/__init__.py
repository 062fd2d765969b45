"""Domain interfaces (ports)."""

from .event_bus import EventBus
from .ledger_client import LedgerClient
from .session_provider import CursorStore, SessionListener, SessionProvider, SessionStore

__all__ = [
    "EventBus",
    "LedgerClient",
    "SessionProvider",
    "SessionListener",
    "SessionStore",
    "CursorStore",
]
