"""Session and persistence ports."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, runtime_checkable

# Called with (account, active) whenever the session connects or disconnects
SessionListener = Callable[[Optional[str], bool], Awaitable[None]]


@runtime_checkable
class SessionProvider(Protocol):
    """
    The two capabilities the sync core needs from a wallet session, plus a
    push notification on connect/disconnect.

    The core never initiates wallet connection or signing.
    """

    def current_account(self) -> Optional[str]:
        """Connected account identifier, or None."""
        ...

    def is_active(self) -> bool:
        ...

    def add_listener(self, listener: SessionListener) -> None:
        """Register a coroutine called on every connect/disconnect."""
        ...

    def remove_listener(self, listener: SessionListener) -> None:
        ...


@runtime_checkable
class SessionStore(Protocol):
    """Read/write port for persisted session state."""

    def load(self) -> Dict[str, Any]:
        """Return the persisted state, or {} if nothing is stored."""
        ...

    def save(self, state: Dict[str, Any]) -> None:
        ...

    def clear(self) -> None:
        ...


@runtime_checkable
class CursorStore(Protocol):
    """One opaque cursor string per account, overwritten on each advance."""

    def get(self, account: str) -> Optional[str]:
        ...

    def set(self, account: str, cursor: str) -> None:
        ...

    def delete(self, account: str) -> None:
        ...
