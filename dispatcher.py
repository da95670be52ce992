import asyncio
from typing import Awaitable, Callable, List

import aiohttp

from executor import execute
from limiter import ConcurrencyLimiter
from metrics import RequestOutcome

RequestFn = Callable[[aiohttp.ClientSession, str, float], Awaitable[RequestOutcome]]


class BatchDispatchError(Exception):
    """The fan-out/join of a batch failed as a whole (not a single request)."""


class BatchDispatcher:
    def __init__(self, session: aiohttp.ClientSession, limiter: ConcurrencyLimiter,
                 timeout_s: float, request_fn: RequestFn = execute):
        self.session = session
        self.limiter = limiter
        self.timeout_s = timeout_s
        self.request_fn = request_fn

    def _schedule_one(self, url: str) -> Awaitable[RequestOutcome]:
        return self.limiter.schedule(lambda: self.request_fn(self.session, url, self.timeout_s))

    async def dispatch_batch(self, size: int, url: str) -> List[RequestOutcome]:
        """Launch ``size`` requests and wait for all of them.

        Outcome ``i`` always belongs to the ``i``-th launched request.
        """
        tasks: List[asyncio.Task] = []
        try:
            for _ in range(size):
                tasks.append(asyncio.ensure_future(self._schedule_one(url)))
        except Exception as e:
            for t in tasks:
                t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise BatchDispatchError(f"could not launch request {len(tasks) + 1}/{size}: {e}") from e

        results = await asyncio.gather(*tasks, return_exceptions=True)
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            raise BatchDispatchError(f"{len(errors)}/{size} requests raised instead of settling: "
                                     f"{errors[0]!r}") from errors[0]
        return list(results)
