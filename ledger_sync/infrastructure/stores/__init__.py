"""Persistence stores."""

from .cursor_store import FileCursorStore, InMemoryCursorStore

__all__ = ["InMemoryCursorStore", "FileCursorStore"]
