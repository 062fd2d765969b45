"""Minimal Server-Sent Events decoder for Horizon streams."""

from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator, List, Optional


@dataclass
class ServerSentEvent:
    data: str
    event: str = "message"
    id: Optional[str] = None
    retry: Optional[int] = None


async def iter_sse(lines: AsyncIterator[str]) -> AsyncIterator[ServerSentEvent]:
    """
    Decode an event stream from its lines.

    Events are dispatched on a blank line; comment lines (":...") are
    keep-alives and are skipped.
    """
    data: List[str] = []
    event = "message"
    event_id: Optional[str] = None
    retry: Optional[int] = None

    async for raw in lines:
        line = raw.rstrip("\r\n")

        if not line:
            if data:
                yield ServerSentEvent(data="\n".join(data), event=event, id=event_id, retry=retry)
            data = []
            event = "message"
            retry = None
            continue

        if line.startswith(":"):
            continue

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if name == "data":
            data.append(value)
        elif name == "event":
            event = value
        elif name == "id":
            event_id = value
        elif name == "retry":
            try:
                retry = int(value)
            except ValueError:
                pass

    if data:
        yield ServerSentEvent(data="\n".join(data), event=event, id=event_id, retry=retry)
