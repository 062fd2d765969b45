"""Session persistence ports: in-memory and JSON file."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

from ...utils.logging_setup import get_logger

logger = get_logger(__name__)


class InMemorySessionStore:
    def __init__(self, initial: Dict[str, Any] | None = None):
        self._state: Dict[str, Any] = dict(initial or {})

    def load(self) -> Dict[str, Any]:
        return dict(self._state)

    def save(self, state: Dict[str, Any]) -> None:
        self._state = dict(state)

    def clear(self) -> None:
        self._state = {}


class FileSessionStore:
    """Stores the session as a small JSON document."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable session file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def save(self, state: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(state, f, indent=2)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
