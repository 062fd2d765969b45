"""Wallet session and its persistence."""

from .session_store import FileSessionStore, InMemorySessionStore
from .wallet_session import WalletSession, is_valid_account_id

__all__ = [
    "WalletSession",
    "InMemorySessionStore",
    "FileSessionStore",
    "is_valid_account_id",
]
