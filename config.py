import logging
import math
import os
from typing import NamedTuple
from urllib.parse import urlparse

# General
LOG_LEVEL = logging.INFO  # DEBUG for more verbosity
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(filename)s:%(lineno)d - %(message)s'
LOG_FILE = "load_generator.log" # Will be created in the project root
RESULTS_DIR = os.environ.get("LOADGEN_RESULTS_DIR", "results")  # For JSON/CSV run summaries
JSON_SUMMARY_FILE = "log.json"
CSV_SUMMARY_FILE = "run_summary.csv"

# Load Config (defaults, each overridable through the LOADGEN_* environment variables)
TARGET_URL = "https://collegebatch.in/api/listURL"
TOTAL_REQUESTS = 10000
CONCURRENCY = 100          # Max requests in flight, also the batch size
REQUEST_TIMEOUT_SECONDS = 10  # Hard deadline for a single request


class RunConfig(NamedTuple):
    target_url: str
    total_requests: int
    concurrency: int
    timeout_seconds: float = REQUEST_TIMEOUT_SECONDS

    def validate(self) -> "RunConfig":
        parsed = urlparse(self.target_url or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"target_url must be an absolute http(s) URL, got {self.target_url!r}")
        if self.total_requests < 1:
            raise ValueError(f"total_requests must be >= 1, got {self.total_requests}")
        if not 1 <= self.concurrency <= self.total_requests:
            raise ValueError(f"concurrency must be between 1 and total_requests ({self.total_requests}), "
                             f"got {self.concurrency}")
        if not (math.isfinite(self.timeout_seconds) and self.timeout_seconds > 0):
            raise ValueError(f"timeout_seconds must be a positive finite number, got {self.timeout_seconds}")
        return self


def _env_number(name: str, default, cast):
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def load_run_config() -> RunConfig:
    """Build the run configuration from the defaults above and any LOADGEN_* overrides."""
    return RunConfig(
        target_url=os.environ.get("LOADGEN_TARGET_URL", TARGET_URL),
        total_requests=_env_number("LOADGEN_TOTAL_REQUESTS", TOTAL_REQUESTS, int),
        concurrency=_env_number("LOADGEN_CONCURRENCY", CONCURRENCY, int),
        timeout_seconds=_env_number("LOADGEN_TIMEOUT_SECONDS", REQUEST_TIMEOUT_SECONDS, float),
    ).validate()
