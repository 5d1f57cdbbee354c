"""Bounded concurrency gate for cooperative async tasks."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")


class ConcurrencyLimiter:
    """
    Caps how many tasks of one kind are in flight at once.

    ``run`` suspends the calling coroutine until a slot is free, then awaits
    the task and releases the slot whether it succeeded or failed. Waiters are
    admitted in FIFO order. Independent limiters share nothing, so nesting a
    product gate inside an order gate bounds each fan-out separately.
    """

    def __init__(self, max_concurrent: int):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._active = 0

    @property
    def active(self) -> int:
        """Tasks currently admitted."""
        return self._active

    async def run(self, task: Callable[[], Awaitable[T]]) -> T:
        async with self._semaphore:
            self._active += 1
            try:
                return await task()
            finally:
                self._active -= 1


def limiter(max_concurrent: int) -> ConcurrencyLimiter:
    """Create a gate admitting at most ``max_concurrent`` tasks."""
    return ConcurrencyLimiter(max_concurrent)
