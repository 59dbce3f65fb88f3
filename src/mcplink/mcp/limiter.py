"""
CallLimiter - FIFO bounded admission for tool calls on one client.

A counting semaphore whose waiters are released strictly in arrival order and
which can be reset on disconnect: queued callers are failed with the error the
owner supplies, and releases from calls admitted before the reset are ignored.
"""

from __future__ import annotations

import asyncio
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Deque

from loguru import logger


class CallLimiter:
    def __init__(self, limit: int) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self._limit = limit
        self._active = 0
        self._generation = 0
        self._waiters: Deque[asyncio.Future] = deque()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def in_flight(self) -> int:
        return self._active

    @property
    def queued(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    async def acquire(self) -> int:
        """Wait for a slot; returns the generation the slot belongs to."""
        if self._active < self._limit and not self._waiters:
            self._active += 1
            return self._generation

        generation = self._generation
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        logger.debug(f"Call queued ({self._active}/{self._limit} in flight, {len(self._waiters)} waiting)")
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter in self._waiters:
                self._waiters.remove(waiter)
            elif waiter.done() and not waiter.cancelled() and waiter.exception() is None:
                # The slot was handed to us just before the cancel landed.
                self.release(generation)
            raise
        return generation

    def release(self, generation: int) -> None:
        """Free a slot, handing it to the oldest waiter if there is one."""
        if generation != self._generation:
            return
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # Slot is transferred; the active count stays the same.
                waiter.set_result(None)
                return
        self._active = max(0, self._active - 1)

    def reset(self, error_factory: Callable[[], BaseException]) -> None:
        """Drop every queued caller with a fresh error and forget in-flight slots."""
        self._generation += 1
        self._active = 0
        waiters = list(self._waiters)
        self._waiters.clear()
        for waiter in waiters:
            if not waiter.done():
                waiter.set_exception(error_factory())

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        generation = await self.acquire()
        try:
            yield
        finally:
            self.release(generation)
