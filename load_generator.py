import logging
import time
from enum import Enum
from typing import List, Optional

import aiohttp

from config import RunConfig
from dispatcher import BatchDispatcher, RequestFn
from executor import execute
from limiter import ConcurrencyLimiter
from metrics import BatchResult, RunSummary
from sinks import RunSink

logger = logging.getLogger(__name__)


class RunState(Enum):
    NOT_STARTED = "NOT_STARTED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"


def plan_batches(total_requests: int, concurrency: int) -> List[int]:
    """Batch sizes for a run; every batch is ``concurrency`` wide except possibly the last."""
    batch_count = -(-total_requests // concurrency)
    return [min(concurrency, total_requests - i * concurrency) for i in range(batch_count)]


class LoadGenerator:
    """Drives the batches of one run strictly one after another and aggregates their timings.

    A failed batch is recorded and the run moves on; the run itself always
    reaches COMPLETED and hands exactly one summary to the sink.
    """

    def __init__(self, config: RunConfig, sink: RunSink, dispatcher: BatchDispatcher):
        self.config = config
        self.sink = sink
        self.dispatcher = dispatcher
        self.state = RunState.NOT_STARTED
        self.current_batch: Optional[int] = None

    async def run(self) -> RunSummary:
        if self.state is not RunState.NOT_STARTED:
            raise RuntimeError(f"LoadGenerator already used (state={self.state.value})")
        self.state = RunState.RUNNING
        sizes = plan_batches(self.config.total_requests, self.config.concurrency)
        logger.info(f"Starting run: {self.config.total_requests} requests to {self.config.target_url} "
                    f"in {len(sizes)} batches of up to {self.config.concurrency}, "
                    f"timeout {self.config.timeout_seconds}s")

        run_start = time.perf_counter()
        batches: List[BatchResult] = []
        for batch_index, size in enumerate(sizes):
            self.current_batch = batch_index
            batch = await self._run_batch(batch_index, size)
            batches.append(batch)
            self.sink.on_batch_complete(batch)
        total_run_duration_ms = (time.perf_counter() - run_start) * 1000

        # Failed batches have no outcomes, so they drop out of the latency average entirely.
        latencies_ms = [o.elapsed_ms for b in batches for o in b.outcomes]
        avg_latency_ms = sum(latencies_ms) / len(latencies_ms) if latencies_ms else 0.0
        avg_batch_ms = sum(b.batch_duration_ms for b in batches) / len(batches)

        summary = RunSummary(
            total_run_duration_ms=total_run_duration_ms,
            average_request_latency_ms=avg_latency_ms,
            average_batch_duration_ms=avg_batch_ms,
            batches=tuple(batches),
        )
        self.state = RunState.COMPLETED
        self.current_batch = None
        logger.info(f"Run completed in {total_run_duration_ms / 1000:.2f}s.")
        self.sink.on_run_complete(summary)
        return summary

    async def _run_batch(self, batch_index: int, size: int) -> BatchResult:
        batch_start = time.perf_counter()
        try:
            outcomes = await self.dispatcher.dispatch_batch(size, self.config.target_url)
        except Exception as e:
            duration_ms = (time.perf_counter() - batch_start) * 1000
            logger.debug(f"Batch {batch_index + 1} dispatch failed: {e}", exc_info=True)
            return BatchResult(batch_index, (), duration_ms, failed=True, error=str(e) or type(e).__name__)
        duration_ms = (time.perf_counter() - batch_start) * 1000
        return BatchResult(batch_index, tuple(outcomes), duration_ms)


async def run(config: RunConfig, sink: RunSink, request_fn: RequestFn = execute) -> RunSummary:
    """Execute one full run of ``config`` against its target and return the summary."""
    config.validate()
    limiter = ConcurrencyLimiter(config.concurrency)
    # The limiter is the only concurrency gate; the deadline is enforced per request by the executor.
    connector = aiohttp.TCPConnector(limit=0)
    async with aiohttp.ClientSession(connector=connector, timeout=aiohttp.ClientTimeout(total=None)) as session:
        dispatcher = BatchDispatcher(session, limiter, config.timeout_seconds, request_fn=request_fn)
        return await LoadGenerator(config, sink, dispatcher).run()
