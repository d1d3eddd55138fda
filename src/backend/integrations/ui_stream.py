"""
Outbound UI message stream.

One ``UIMessageStreamWriter`` exists per chat turn. The orchestrator and every
sub-agent it invokes write parts into it; the HTTP layer drains it as
server-sent events. Writers only append, so no ordering exists between two
concurrently running tools beyond arrival order.
"""

from __future__ import annotations

import asyncio

from collections.abc import AsyncIterator
from typing import Any

from models.stream_events import ArtifactPartType, DataPart, StreamPart
from utils.logger import logger
from utils.metrics import stream_events_total

SSE_DONE = "data: [DONE]\n\n"

_CLOSED = object()


def encode_sse(part: StreamPart) -> str:
    """Frame one part as ``data: <json>\\n\\n``."""
    return f"data: {part.to_json()}\n\n"


class UIMessageStreamWriter:
    """Queue-backed, append-only writer shared by everything in one turn."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False
        self.written = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, part: StreamPart) -> None:
        if self._closed:
            # Client is gone; generation still finishes server-side
            logger.debug(f"Dropping {part.type} written after stream close")
            return
        stream_events_total.labels(part_type=part.type).inc()
        self.written += 1
        self._queue.put_nowait(part)

    def write_data(self, part_type: ArtifactPartType, data: Any = None) -> None:
        """Write a transient artifact part."""
        self.write(DataPart(type=part_type, data=data, transient=True))

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    async def parts(self) -> AsyncIterator[StreamPart]:
        """Yield parts in write order until the writer is closed."""
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item
