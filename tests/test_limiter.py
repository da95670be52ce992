import asyncio
import random

import pytest

from limiter import ConcurrencyLimiter


class TestLimiterConstruction:
    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            ConcurrencyLimiter(0)


@pytest.mark.asyncio
class TestConcurrencyLimiter:
    async def test_blocked_tasks_never_exceed_capacity(self):
        limiter = ConcurrencyLimiter(3)
        release = asyncio.Event()

        async def blocker():
            await release.wait()
            return limiter.active

        tasks = [asyncio.ensure_future(limiter.schedule(blocker)) for _ in range(10)]
        for _ in range(5):
            await asyncio.sleep(0)
        assert limiter.active == 3

        release.set()
        results = await asyncio.gather(*tasks)
        assert max(results) <= 3
        assert limiter.peak_active == 3
        assert limiter.active == 0

    async def test_random_latencies_stay_within_capacity(self):
        limiter = ConcurrencyLimiter(4)
        in_flight = 0
        max_in_flight = 0

        async def task():
            nonlocal in_flight, max_in_flight
            in_flight += 1
            max_in_flight = max(max_in_flight, in_flight)
            await asyncio.sleep(random.uniform(0, 0.01))
            in_flight -= 1

        await asyncio.gather(*(limiter.schedule(task) for _ in range(40)))
        assert max_in_flight <= 4
        assert limiter.peak_active <= 4

    async def test_admission_is_fifo(self):
        limiter = ConcurrencyLimiter(1)
        started = []

        def make(i):
            async def task():
                started.append(i)
                await asyncio.sleep(0.001)
            return task

        await asyncio.gather(*(limiter.schedule(make(i)) for i in range(6)))
        assert started == list(range(6))

    async def test_failing_task_releases_its_slot(self):
        limiter = ConcurrencyLimiter(1)

        async def fails():
            raise RuntimeError("task blew up")

        async def succeeds():
            return "ok"

        with pytest.raises(RuntimeError):
            await limiter.schedule(fails)
        assert limiter.active == 0
        assert await asyncio.wait_for(limiter.schedule(succeeds), timeout=1.0) == "ok"

    async def test_independent_limiters_do_not_share_slots(self):
        a = ConcurrencyLimiter(1)
        b = ConcurrencyLimiter(1)
        release = asyncio.Event()

        async def blocker():
            await release.wait()

        blocked = asyncio.ensure_future(a.schedule(blocker))
        await asyncio.sleep(0)

        async def quick():
            return "b ran"

        assert await asyncio.wait_for(b.schedule(quick), timeout=1.0) == "b ran"
        release.set()
        await blocked
