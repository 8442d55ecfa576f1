"""Fixed-capacity admission control for requests sharing one transport."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

logger = logging.getLogger(__name__)


class ConcurrencyGate:
    """Counting semaphore bounding in-flight requests of one client.

    Waiting in ``acquire`` is cancellable through normal asyncio task
    cancellation; a cancelled waiter never holds a slot.
    """

    def __init__(self, capacity: int):
        """Create a gate.

        Args:
            capacity: Maximum number of concurrently admitted callers.
        """
        if capacity < 1:
            raise ValueError("gate capacity must be >= 1")
        self._capacity = capacity
        self._sem = asyncio.Semaphore(capacity)
        self._in_flight = 0
        self._peak = 0

    @property
    def capacity(self) -> int:
        """Fixed number of slots."""
        return self._capacity

    @property
    def in_flight(self) -> int:
        """Number of slots currently held."""
        return self._in_flight

    @property
    def peak_in_flight(self) -> int:
        """Highest number of slots held at once since construction."""
        return self._peak

    async def acquire(self) -> None:
        """Wait for a free slot."""
        if self._sem.locked():
            logger.debug("Gate full (%s/%s); waiting", self._in_flight, self._capacity)
        await self._sem.acquire()
        self._in_flight += 1
        self._peak = max(self._peak, self._in_flight)

    def release(self) -> None:
        """Return a slot obtained from ``acquire``."""
        self._in_flight -= 1
        self._sem.release()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold one slot for the duration of the block."""
        await self.acquire()
        try:
            yield
        finally:
            self.release()
