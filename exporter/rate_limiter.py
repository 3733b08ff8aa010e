"""
Purpose: Retry executor for remote API calls.
Description: Re-invokes a call that failed with a retryable RemoteError (429, 5xx,
reset or timed-out connection), waiting between attempts with exponential backoff or
the server's Retry-After hint. Long waits are reported every 10 seconds.
Key Functions/Classes: `RetryPolicy`, `with_retry`, `sleep_with_progress`.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, TypeVar

from .backoff import compute_delay, parse_retry_after
from .constants import PROGRESS_INTERVAL_MS
from .errors import RemoteError
from .exporter_logging import log_info


T = TypeVar("T")

Sleeper = Callable[[float], None]


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 5
    initial_ms: int = 500
    max_ms: int = 30_000

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


DEFAULT_RETRY = RetryPolicy()
# AIDEV-NOTE: Pagination runs are long-lived; tolerate sustained pressure.
PAGINATION_RETRY = RetryPolicy(max_retries=4, initial_ms=2000, max_ms=120_000)


def sleep_with_progress(ms: int, context: str = "Waiting", *, sleep: Sleeper = time.sleep) -> None:
    """Sleep for `ms`, logging a notice every 10 seconds when the wait is long."""
    if ms < PROGRESS_INTERVAL_MS:
        sleep(ms / 1000)
        return

    log_info(f"⏳ {context}. Waiting {round(ms / 1000)} seconds before retry...")
    remaining = ms
    while remaining > 0:
        chunk = min(PROGRESS_INTERVAL_MS, remaining)
        sleep(chunk / 1000)
        remaining -= chunk
        if remaining > 0:
            log_info(f"  ⏳ Still waiting... {round(remaining / 1000)} seconds remaining")
    log_info("  ✓ Wait complete, retrying now...")


def _next_delay(error: RemoteError, attempt: int, policy: RetryPolicy,
                rng: Optional[random.Random]) -> Tuple[int, bool]:
    if error.is_rate_limited:
        hinted = parse_retry_after(error.header("retry-after"))
        if hinted is not None:
            return hinted, True
    return compute_delay(attempt, policy.initial_ms, policy.max_ms, rng), False


def with_retry(
    call: Callable[[], T],
    policy: RetryPolicy = DEFAULT_RETRY,
    *,
    sleep: Sleeper = time.sleep,
    rng: Optional[random.Random] = None,
) -> T:
    """Run `call`, retrying retryable RemoteErrors up to `policy.max_retries` times.

    Non-retryable errors, and the error from the final attempt, propagate
    unchanged. Exceptions other than RemoteError are never retried.
    """
    for attempt in range(policy.max_attempts):
        try:
            return call()
        except RemoteError as exc:
            if not exc.retryable or attempt == policy.max_retries:
                raise
            delay_ms, hinted = _next_delay(exc, attempt, policy, rng)

        label = f"attempt {attempt + 1}/{policy.max_attempts}"
        if hinted:
            if delay_ms < PROGRESS_INTERVAL_MS:
                log_info(f"Rate limited ({label}). Retrying in {delay_ms / 1000:.1f}s...")
            sleep_with_progress(delay_ms, "Rate limited", sleep=sleep)
        elif delay_ms >= PROGRESS_INTERVAL_MS:
            sleep_with_progress(delay_ms, f"Request failed ({label})", sleep=sleep)
        else:
            log_info(f"Request failed ({label}). Retrying in {delay_ms / 1000:.1f}s...")
            sleep(delay_ms / 1000)

    # Unreachable: the last attempt either returns or re-raises.
    raise AssertionError("retry loop exited without a result")
