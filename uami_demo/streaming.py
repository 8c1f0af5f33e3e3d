"""
SSE transport — a single-reader event queue between a background producer
and the HTTP response writer.

The producer puts DiscoveryEvents and calls ``close()`` after its last one.
The consumer iterates the stream until it is closed and drained. Worker
threads (blocking SDK calls) hand events over with ``put_threadsafe``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from uami_demo.events import DiscoveryEvent

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # disable nginx buffering
}

_CLOSED = object()


class EventStream:
    """Unbounded FIFO of DiscoveryEvents with explicit close."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._loop = asyncio.get_running_loop()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def put(self, event: DiscoveryEvent) -> None:
        if self._closed:
            logger.debug("Dropping %s event on closed stream", event.type)
            return
        await self._queue.put(event)

    def put_threadsafe(self, event: DiscoveryEvent) -> None:
        """Enqueue from a thread other than the event loop's."""
        self._loop.call_soon_threadsafe(self._put_nowait, event)

    def _put_nowait(self, event: DiscoveryEvent) -> None:
        if self._closed:
            logger.debug("Dropping %s event on closed stream", event.type)
            return
        self._queue.put_nowait(event)

    def close(self) -> None:
        """Mark end of stream. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> AsyncIterator[DiscoveryEvent]:
        return self._drain()

    async def _drain(self) -> AsyncIterator[DiscoveryEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item


def format_sse(event: DiscoveryEvent) -> str:
    """Encode one event as an SSE frame."""
    return f"data: {json.dumps(event.to_payload())}\n\n"


async def sse_frames(stream: EventStream, producer: asyncio.Task[Any]) -> AsyncIterator[str]:
    """Yield SSE frames until the producer closes the stream.

    Each yielded chunk is sent and flushed by the ASGI server on its own, so
    the client sees events as they happen. If the response is torn down
    (client disconnected) the producer is cancelled so it does not outlive
    the request.
    """
    try:
        async for event in stream:
            yield format_sse(event)
        await producer
    except asyncio.CancelledError:
        logger.info("SSE client disconnected; cancelling producer")
        producer.cancel()
        raise
    finally:
        if not producer.done():
            producer.cancel()
