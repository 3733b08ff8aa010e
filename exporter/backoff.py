"""
Purpose: Backoff delay policy.
Description: Capped exponential delay with up to 25% additive jitter, and parsing of
server `Retry-After` hints into milliseconds.
Key Functions: compute_delay, parse_retry_after
"""

from __future__ import annotations

import math
import random
from typing import Any, Optional


JITTER_RATIO = 0.25


def compute_delay(attempt: int, initial_ms: int, max_ms: int, rng: Optional[random.Random] = None) -> int:
    """Return milliseconds to wait before retry number `attempt` (0-indexed).

    The base delay is ``min(2**attempt * initial_ms, max_ms)``; jitter drawn
    uniformly from ``[0, 0.25 * base]`` is added on top, so the result never
    exceeds ``1.25 * max_ms``. Pass a seeded ``random.Random`` for repeatable
    values.
    """
    source = rng if rng is not None else random
    capped = min((2 ** attempt) * initial_ms, max_ms)
    jitter = capped * JITTER_RATIO * source.random()
    return int(capped + jitter)


def parse_retry_after(value: Any) -> Optional[int]:
    """Convert a Retry-After value in (possibly fractional) seconds to ms.

    Returns None for anything that is not a finite number above zero; callers
    fall back to the exponential delay.
    """
    if value is None:
        return None
    try:
        seconds = float(str(value).strip())
    except ValueError:
        return None
    if not math.isfinite(seconds) or seconds <= 0:
        return None
    return math.ceil(seconds * 1000)
