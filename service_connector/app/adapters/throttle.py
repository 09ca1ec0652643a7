"""
Connection throttle bounding concurrent calls to the remote store.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


DEFAULT_CAPACITY = 10


class ConnectionThrottle:
    """Counting permit of fixed capacity.

    Permits are only handed out through ``slot()``, so every acquisition is
    paired with exactly one release.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._semaphore = asyncio.Semaphore(capacity)
        self._in_use = 0

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def available(self) -> int:
        return self.capacity - self._in_use

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold one permit for the duration of the block."""
        await self._semaphore.acquire()
        self._in_use += 1
        try:
            yield
        finally:
            self._in_use -= 1
            self._semaphore.release()
