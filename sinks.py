import csv
import json
import logging
import os
import time
from abc import ABC, abstractmethod
from typing import Optional

from config import RunConfig
from metrics import BatchResult, RunSummary, summary_to_record

logger = logging.getLogger(__name__)


class RunSink(ABC):
    @abstractmethod
    def on_batch_complete(self, batch: BatchResult):
        pass

    @abstractmethod
    def on_run_complete(self, summary: RunSummary):
        pass


def _open_for_append(path: str):
    """Create the parent directory and make sure the file can be appended to; raises OSError otherwise."""
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, 'a'):
        pass


class LoggingSink(RunSink):
    """Progress lines for the console/log file: one per batch plus one per request."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.logger = log or logger

    def on_batch_complete(self, batch: BatchResult):
        batch_number = batch.batch_index + 1
        if batch.failed:
            self.logger.error(f"Batch {batch_number} failed: {batch.error} "
                              f"(after {batch.batch_duration_ms:.0f}ms)")
        else:
            self.logger.info(f"Batch {batch_number} finished in {batch.batch_duration_ms:.0f}ms")
            for i, outcome in enumerate(batch.outcomes):
                line = f"Request {i + 1}, Status:{outcome.status_code}, time:{outcome.elapsed_ms:.0f}ms"
                if outcome.error:
                    line += f", error:{outcome.error}"
                self.logger.info(line)
        self.logger.info("-" * 42)

    def on_run_complete(self, summary: RunSummary):
        self.logger.info(f"Run finished in {summary.total_run_duration_ms / 1000:.2f}s: "
                         f"{len(summary.batches)} batches ({summary.failed_batches} failed), "
                         f"{summary.successful_requests} ok / {summary.failed_requests} failed requests.")
        self.logger.info(f"Avg request latency: {summary.average_request_latency_ms:.2f} ms. "
                         f"Avg batch duration: {summary.average_batch_duration_ms:.2f} ms.")


class JsonSummarySink(RunSink):
    """Appends one JSON line per run (aggregates + per-batch records)."""

    def __init__(self, path: str):
        self.path = path
        _open_for_append(path)

    def on_batch_complete(self, batch: BatchResult):
        pass

    def on_run_complete(self, summary: RunSummary):
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(json.dumps(summary_to_record(summary)) + "\n")
        logger.info(f"Run summary appended to {self.path}")


class CsvSummarySink(RunSink):
    FIELDS = ["timestamp", "target_url", "total_requests", "concurrency", "timeout_seconds",
              "batch_count", "failed_batches", "successful_requests", "failed_requests",
              "total_run_duration_ms", "average_request_latency_ms", "average_batch_duration_ms"]

    def __init__(self, path: str, run_config: RunConfig):
        self.path = path
        self.run_config = run_config
        _open_for_append(path)

    def on_batch_complete(self, batch: BatchResult):
        pass

    def on_run_complete(self, summary: RunSummary):
        row = {
            "timestamp": time.strftime('%Y-%m-%d %H:%M:%S'),
            "target_url": self.run_config.target_url,
            "total_requests": self.run_config.total_requests,
            "concurrency": self.run_config.concurrency,
            "timeout_seconds": self.run_config.timeout_seconds,
            "batch_count": len(summary.batches),
            "failed_batches": summary.failed_batches,
            "successful_requests": summary.successful_requests,
            "failed_requests": summary.failed_requests,
            "total_run_duration_ms": round(summary.total_run_duration_ms, 2),
            "average_request_latency_ms": round(summary.average_request_latency_ms, 2),
            "average_batch_duration_ms": round(summary.average_batch_duration_ms, 2),
        }
        # created empty at startup
        needs_header = not os.path.isfile(self.path) or os.path.getsize(self.path) == 0
        with open(self.path, 'a', newline='') as f:
            csv_writer = csv.DictWriter(f, fieldnames=self.FIELDS)
            if needs_header: csv_writer.writeheader()
            csv_writer.writerow(row)
        logger.info(f"Run summary row appended to {self.path}")


class MultiSink(RunSink):
    def __init__(self, *sinks: RunSink):
        self.sinks = list(sinks)

    def on_batch_complete(self, batch: BatchResult):
        for sink in self.sinks:
            sink.on_batch_complete(batch)

    def on_run_complete(self, summary: RunSummary):
        for sink in self.sinks:
            sink.on_run_complete(summary)
