import asyncio
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")


class ConcurrencyLimiter:
    """Admits at most ``capacity`` scheduled tasks at a time.

    Waiters are admitted in FIFO order (asyncio.Semaphore keeps its waiters in
    a deque). Each limiter instance owns its own counter, so independent runs
    never share slots.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._semaphore = asyncio.Semaphore(capacity)
        self.active = 0
        self.peak_active = 0

    async def schedule(self, task: Callable[[], Awaitable[T]]) -> T:
        async with self._semaphore:
            self.active += 1
            self.peak_active = max(self.peak_active, self.active)
            try:
                return await task()
            finally:
                self.active -= 1
