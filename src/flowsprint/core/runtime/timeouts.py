from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from typing import TypeVar

T = TypeVar("T")

ATTEMPT_WORKERS = 32

_executor = ThreadPoolExecutor(max_workers=ATTEMPT_WORKERS, thread_name_prefix="flowsprint-attempt")


def run_with_timeout_sync(fn: Callable[[], T], *, timeout_seconds: float) -> T:
    # A started worker is abandoned on timeout; the transport's own timeout reclaims it.
    future = _executor.submit(fn)
    try:
        return future.result(timeout=timeout_seconds)
    except FuturesTimeoutError as exc:
        future.cancel()
        raise TimeoutError(f"operation timed out after {timeout_seconds}s") from exc
