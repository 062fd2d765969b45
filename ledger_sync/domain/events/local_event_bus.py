"""In-process event bus with isolated subscribers."""

from __future__ import annotations

import asyncio
import inspect
from collections import defaultdict
from threading import Lock
from typing import Any, Callable, Dict, List, Set

from ...utils.logging_setup import get_logger
from ..interfaces.event_bus import EventBus
from .event_types import EventType

logger = get_logger(__name__)


class LocalEventBus(EventBus):
    """
    Synchronous, in-process publish/subscribe.

    - publish() dispatches in the caller's context, in subscription order
    - Subscriber exceptions are logged and counted, never re-raised
    - Coroutine subscribers are scheduled as tasks on the running loop;
      drain() awaits them
    - The subscriber table is guarded by a lock and snapshotted before
      dispatch, so unsubscribe() may race with an in-flight publish()
    """

    def __init__(self) -> None:
        self._subscribers: Dict[EventType, List[Callable[[Any], Any]]] = defaultdict(list)
        self._lock = Lock()
        self._pending: Set[asyncio.Task] = set()
        self._stats = {
            "published": 0,
            "dispatched": 0,
            "errors": 0,
        }

    def publish(self, event_type: EventType, payload: Any) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(event_type, ()))
            self._stats["published"] += 1

        for cb in callbacks:
            try:
                result = cb(payload)
                if inspect.isawaitable(result):
                    self._schedule(event_type, result)
                with self._lock:
                    self._stats["dispatched"] += 1
            except Exception as e:
                with self._lock:
                    self._stats["errors"] += 1
                logger.error(f"Subscriber error for {event_type.value}: {e}", exc_info=True)

    def _schedule(self, event_type: EventType, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise RuntimeError(
                f"Async subscriber for {event_type.value} needs a running event loop"
            )

        task = loop.create_task(awaitable)
        with self._lock:
            self._pending.add(task)
        task.add_done_callback(lambda t: self._on_task_done(event_type, t))

    def _on_task_done(self, event_type: EventType, task: asyncio.Task) -> None:
        with self._lock:
            self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            with self._lock:
                self._stats["errors"] += 1
            logger.error(
                f"Async subscriber error for {event_type.value}: {exc}",
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    async def drain(self) -> None:
        """Wait until every scheduled async subscriber has finished."""
        while True:
            with self._lock:
                pending = list(self._pending)
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def subscribe(self, event_type: EventType, callback: Callable[[Any], Any]) -> None:
        with self._lock:
            self._subscribers[event_type].append(callback)
        logger.debug(f"Subscribed to {event_type.value}")

    def unsubscribe(self, event_type: EventType, callback: Callable[[Any], Any]) -> None:
        with self._lock:
            if callback in self._subscribers.get(event_type, []):
                self._subscribers[event_type].remove(callback)
                logger.debug(f"Unsubscribed from {event_type.value}")

    def subscriber_count(self, event_type: EventType) -> int:
        with self._lock:
            return len(self._subscribers.get(event_type, ()))

    def get_stats(self) -> Dict[str, Any]:
        """Get bus statistics."""
        with self._lock:
            return {
                **self._stats,
                "pending_async": len(self._pending),
                "topics": {et.value: len(cbs) for et, cbs in self._subscribers.items() if cbs},
            }
