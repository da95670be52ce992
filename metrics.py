from typing import NamedTuple, Optional, Tuple, Dict, Any


class RequestOutcome(NamedTuple):
    status_code: int  # 0 means the request failed (timeout, transport or decode error)
    elapsed_ms: float
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status_code != 0


class BatchResult(NamedTuple):
    batch_index: int  # 0-based
    outcomes: Tuple[RequestOutcome, ...]
    batch_duration_ms: float
    failed: bool = False
    error: Optional[str] = None


class RunSummary(NamedTuple):
    total_run_duration_ms: float
    average_request_latency_ms: float
    average_batch_duration_ms: float
    batches: Tuple[BatchResult, ...]

    @property
    def request_count(self) -> int:
        return sum(len(b.outcomes) for b in self.batches)

    @property
    def successful_requests(self) -> int:
        return sum(1 for b in self.batches for o in b.outcomes if o.ok)

    @property
    def failed_requests(self) -> int:
        return self.request_count - self.successful_requests

    @property
    def failed_batches(self) -> int:
        return sum(1 for b in self.batches if b.failed)


def batch_to_record(batch: BatchResult) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "batchNumber": batch.batch_index + 1,
        "batchDuration": round(batch.batch_duration_ms, 3),
        "requestCount": len(batch.outcomes),
    }
    if batch.failed:
        record["error"] = True
    return record


def summary_to_record(summary: RunSummary) -> Dict[str, Any]:
    """Persisted layout of a run: aggregate timings plus one record per batch."""
    return {
        "totalRunDuration": round(summary.total_run_duration_ms, 3),
        "averageRequestLatency": round(summary.average_request_latency_ms, 3),
        "averageBatchDuration": round(summary.average_batch_duration_ms, 3),
        "logs": [batch_to_record(b) for b in summary.batches],
    }
