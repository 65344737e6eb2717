"""Event Inbox — loop-bound queue that accepts items from any thread.

Invariants:
    - put() never blocks and never raises into the caller
    - Items are delivered to get() in put() order (FIFO via call_soon_threadsafe)
    - Only coroutines on the owning loop read; producers never touch consumer state

Design Decisions:
    - call_soon_threadsafe for every put, even from the loop thread: one code path,
      one ordering guarantee, and the loop handoff is the visibility barrier
    - A closed loop means the consumer is gone: put() reports False instead of raising
"""

import asyncio
import logging
from typing import Any

logger = logging.getLogger(__name__)


class EventInbox:
    """Unbounded queue owned by the event loop that created it."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop or asyncio.get_running_loop()
        self._queue: asyncio.Queue[Any] = asyncio.Queue()

    def put(self, item: Any) -> bool:
        """Hand an item to the owning loop. Returns False if the loop is gone."""
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)
        except RuntimeError:
            logger.debug("Event loop closed, dropping %s", type(item).__name__)
            return False
        return True

    async def get(self) -> Any:
        return await self._queue.get()
