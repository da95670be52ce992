import asyncio
import json
import time
from typing import Awaitable, Callable, Optional, TypeVar

import aiohttp

from metrics import RequestOutcome

T = TypeVar("T")

# Returned by with_deadline() when the deadline wins the race.
DEADLINE_EXCEEDED = object()


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _discard_result(task: asyncio.Future):
    if not task.cancelled():
        task.exception()


async def with_deadline(op: Callable[[], Awaitable[T]], timeout_s: float):
    """Race ``op()`` against a deadline.

    Returns the op's result (or raises its exception) if it settles first,
    otherwise cancels it and returns ``DEADLINE_EXCEEDED`` without waiting for
    the cancellation to be acknowledged.
    """
    task = asyncio.ensure_future(op())
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout_s)
    except asyncio.CancelledError:
        task.cancel()
        raise
    if task in done:
        return task.result()
    task.cancel()
    task.add_done_callback(_discard_result)
    return DEADLINE_EXCEEDED


async def execute(session: aiohttp.ClientSession, url: str, timeout_s: float) -> RequestOutcome:
    """One GET against ``url``; every failure is folded into a status 0 outcome."""
    start = time.perf_counter()
    headers_ms: Optional[float] = None

    async def fetch() -> RequestOutcome:
        nonlocal headers_ms
        async with session.get(url) as response:
            headers_ms = _elapsed_ms(start)
            body = await response.read()
            json.loads(body)
            return RequestOutcome(response.status, _elapsed_ms(start))

    try:
        outcome = await with_deadline(fetch, timeout_s)
    except asyncio.TimeoutError:
        return RequestOutcome(0, 0.0, "TIMEOUT")
    except (aiohttp.ClientError, OSError):
        return RequestOutcome(0, 0.0, "CONNECTION_ERROR")
    except ValueError:
        return RequestOutcome(0, headers_ms if headers_ms is not None else 0.0, "DECODE_ERROR")
    except Exception as e:
        return RequestOutcome(0, 0.0, f"CLIENT_EXCEPTION:{type(e).__name__}")

    if outcome is DEADLINE_EXCEEDED:
        return RequestOutcome(0, 0.0, "TIMEOUT")
    return outcome
