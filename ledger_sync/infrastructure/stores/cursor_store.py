"""
Cursor stores - where live sync records its resume position.

InMemoryCursorStore keeps cursors for the life of the process.
FileCursorStore keeps one JSON object {account: cursor} on disk, rewritten
atomically on every advance, so a restarted process can resume streams.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from threading import Lock
from typing import Dict, Optional

from ...utils.logging_setup import get_logger

logger = get_logger(__name__)


class InMemoryCursorStore:
    """Process-local cursor store."""

    def __init__(self) -> None:
        self._cursors: Dict[str, str] = {}
        self._lock = Lock()

    def get(self, account: str) -> Optional[str]:
        with self._lock:
            return self._cursors.get(account)

    def set(self, account: str, cursor: str) -> None:
        with self._lock:
            self._cursors[account] = cursor

    def delete(self, account: str) -> None:
        with self._lock:
            self._cursors.pop(account, None)


class FileCursorStore:
    """JSON-file cursor store."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = Lock()
        self._cursors: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable cursor file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring cursor file {self.path}: expected an object")
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".cursors-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._cursors, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, account: str) -> Optional[str]:
        with self._lock:
            return self._cursors.get(account)

    def set(self, account: str, cursor: str) -> None:
        with self._lock:
            if self._cursors.get(account) == cursor:
                return
            self._cursors[account] = cursor
            self._flush()

    def delete(self, account: str) -> None:
        with self._lock:
            if self._cursors.pop(account, None) is not None:
                self._flush()
