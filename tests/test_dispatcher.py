import asyncio
import itertools

import pytest

from dispatcher import BatchDispatcher, BatchDispatchError
from limiter import ConcurrencyLimiter
from metrics import RequestOutcome


def make_request_fn(size, fail_on=None):
    """Fake executor: later launches finish first, each outcome tagged with its launch index."""
    counter = itertools.count()
    calls = []

    async def request_fn(session, url, timeout_s):
        idx = next(counter)
        calls.append((url, timeout_s))
        await asyncio.sleep((size - idx) * 0.005)
        if fail_on is not None and idx == fail_on:
            raise RuntimeError("task could not settle")
        return RequestOutcome(200 + idx, float(idx))

    return request_fn, calls


@pytest.mark.asyncio
class TestBatchDispatcher:
    async def test_outcomes_keep_launch_order(self):
        request_fn, calls = make_request_fn(5)
        dispatcher = BatchDispatcher(None, ConcurrencyLimiter(5), 1.5, request_fn=request_fn)

        outcomes = await dispatcher.dispatch_batch(5, "http://target/")

        assert [o.status_code for o in outcomes] == [200, 201, 202, 203, 204]
        assert calls == [("http://target/", 1.5)] * 5

    async def test_batch_larger_than_limiter_still_returns_every_outcome(self):
        request_fn, _ = make_request_fn(6)
        limiter = ConcurrencyLimiter(2)
        dispatcher = BatchDispatcher(None, limiter, 1.0, request_fn=request_fn)

        outcomes = await dispatcher.dispatch_batch(6, "http://target/")

        assert len(outcomes) == 6
        assert limiter.peak_active == 2

    async def test_raising_task_becomes_batch_failure_after_all_settle(self):
        request_fn, calls = make_request_fn(4, fail_on=1)
        limiter = ConcurrencyLimiter(4)
        dispatcher = BatchDispatcher(None, limiter, 1.0, request_fn=request_fn)

        with pytest.raises(BatchDispatchError):
            await dispatcher.dispatch_batch(4, "http://target/")
        assert len(calls) == 4
        assert limiter.active == 0

    async def test_launch_failure_is_batch_failure(self):
        request_fn, _ = make_request_fn(3)

        class ExhaustedDispatcher(BatchDispatcher):
            launched = 0

            def _schedule_one(self, url):
                if self.launched == 2:
                    raise RuntimeError("can't start new task")
                self.launched += 1
                return super()._schedule_one(url)

        limiter = ConcurrencyLimiter(3)
        dispatcher = ExhaustedDispatcher(None, limiter, 1.0, request_fn=request_fn)

        with pytest.raises(BatchDispatchError):
            await dispatcher.dispatch_batch(3, "http://target/")
        assert limiter.active == 0
