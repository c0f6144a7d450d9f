"""
Change-feed stream for the notifications collection.

Firestore delivers snapshot callbacks on a background thread. The stream
hands those events to the event loop through an asyncio queue so consumers
fold over `async for change in stream` instead of nesting callbacks.
"""

from app.models.notification import NotificationChange
from typing import Callable, Optional
import asyncio
import logging

logger = logging.getLogger(__name__)

_CLOSED = object()


class NotificationChangeStream:
    """
    Async iterator of NotificationChange events for one subscription.

    `publish` is safe to call from any thread. After `close` nothing more is
    yielded, including events still queued; closing twice is a no-op.
    """

    def __init__(self, on_close: Optional[Callable[[], None]] = None):
        self._loop = asyncio.get_event_loop()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def set_on_close(self, on_close: Callable[[], None]) -> None:
        self._on_close = on_close

    def publish(self, change: NotificationChange) -> None:
        if self._closed:
            return
        self._put(change)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        if self._on_close is not None:
            try:
                self._on_close()
            except Exception as e:
                logger.warning(f"⚠️ Change-feed unsubscribe failed: {e}")

        self._put(_CLOSED)

    def _put(self, item) -> None:
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)
        except RuntimeError:
            # Event loop already closed (process shutdown)
            logger.debug("Change-feed event dropped: event loop is closed")

    def __aiter__(self):
        return self

    async def __anext__(self) -> NotificationChange:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED or self._closed:
            raise StopAsyncIteration
        return item
