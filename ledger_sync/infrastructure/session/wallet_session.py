"""
Wallet session - the connected account, explicit instead of global.

The session records which account a wallet handshake (done elsewhere)
produced, persists it through an injected SessionStore, and pushes
connect/disconnect notifications to listeners and the event bus, so
consumers never poll for wallet status.
"""

from __future__ import annotations

import re
from typing import List, Optional

from ...domain.events.domain_events import SessionChanged
from ...domain.events.event_types import EventType
from ...domain.interfaces.event_bus import EventBus
from ...domain.interfaces.session_provider import SessionListener, SessionStore
from ...utils.logging_setup import get_logger

logger = get_logger(__name__)

# Stellar public keys: "G" + 55 base32 characters
_ACCOUNT_ID_RE = re.compile(r"^G[A-Z2-7]{55}$")

DEFAULT_WALLET_TYPE = "stellar-wallet"


def is_valid_account_id(account: str) -> bool:
    return bool(account) and _ACCOUNT_ID_RE.match(account) is not None


class WalletSession:
    """
    SessionProvider backed by a SessionStore.

    Usage:
        session = WalletSession(FileSessionStore("data/session.json"), event_bus)
        await session.connect("GABC...")
        session.current_account()
        await session.disconnect()
    """

    def __init__(self, store: SessionStore, event_bus: Optional[EventBus] = None):
        self._store = store
        self._event_bus = event_bus
        self._listeners: List[SessionListener] = []

        state = store.load()
        account = state.get("account")
        if state.get("connected") and account and is_valid_account_id(account):
            self._account: Optional[str] = account
            self._wallet_type: Optional[str] = state.get("wallet_type") or DEFAULT_WALLET_TYPE
            logger.info(f"Restored wallet session for {self.format_account()}")
        else:
            self._account = None
            self._wallet_type = None

    # -------------------------------------------------------------------------
    # SessionProvider
    # -------------------------------------------------------------------------

    def current_account(self) -> Optional[str]:
        return self._account

    def is_active(self) -> bool:
        return self._account is not None

    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SessionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # -------------------------------------------------------------------------
    # Connect / disconnect
    # -------------------------------------------------------------------------

    def wallet_type(self) -> Optional[str]:
        return self._wallet_type

    async def connect(self, account: str, wallet_type: str = DEFAULT_WALLET_TYPE) -> None:
        """
        Record a connected account.

        Raises:
            ValueError: Not a valid Stellar account id.
        """
        if not is_valid_account_id(account):
            raise ValueError(f"Invalid Stellar account id: {account!r}")

        if account == self._account and wallet_type == self._wallet_type:
            return

        if self._account is not None and self._account != account:
            # Switching accounts: let listeners tear down the old one first
            await self.disconnect()

        self._account = account
        self._wallet_type = wallet_type
        self._store.save({"connected": True, "account": account, "wallet_type": wallet_type})
        logger.info(f"Wallet connected: {self.format_account()} ({wallet_type})")
        await self._notify()

    async def disconnect(self) -> None:
        if self._account is None:
            return

        previous = self.format_account()
        self._account = None
        self._wallet_type = None
        self._store.clear()
        logger.info(f"Wallet disconnected: {previous}")
        await self._notify()

    def format_account(self, account: Optional[str] = None) -> str:
        """Shorten an account id for display: GABC...WXYZ."""
        key = account or self._account
        if not key:
            return ""
        if len(key) <= 8:
            return key
        return f"{key[:4]}...{key[-4:]}"

    async def _notify(self) -> None:
        account, active = self._account, self.is_active()

        for listener in list(self._listeners):
            try:
                await listener(account, active)
            except Exception as e:
                logger.error(f"Session listener error: {e}", exc_info=True)

        if self._event_bus is not None:
            self._event_bus.publish(
                EventType.SESSION_CHANGED,
                SessionChanged(account=account, active=active, wallet_type=self._wallet_type),
            )
