"""
Purpose: Cursor-paginated fetching of entity records.
Description: Pulls pages through the retry executor, following the server cursor, and
yields one batch per non-empty page. After the first 1000 records a fixed delay is
inserted between pages to stay under the rate limit instead of bouncing off it.
Key Functions/Classes: `PaginationConfig`, `fetch_pages`.

AIDEV-NOTE: One page in flight at a time; the generator does nothing until pulled.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Iterator, List, Optional

from .constants import PAGE_LIMIT
from .exporter_logging import log_info, log_warning
from .models import Page, Record
from .rate_limiter import PAGINATION_RETRY, RetryPolicy, Sleeper, with_retry


IssuePage = Callable[[Optional[str]], Page]


@dataclass
class PaginationConfig:
    proactive_delay_ms: int = 3000
    throttle_after_records: int = 1000
    page_limit: int = PAGE_LIMIT
    # Guards against a server that keeps returning a cursor with records forever.
    max_pages: int = 10_000
    retry: RetryPolicy = field(default_factory=lambda: PAGINATION_RETRY)


def fetch_pages(
    issue_page: IssuePage,
    config: Optional[PaginationConfig] = None,
    *,
    sleep: Sleeper = time.sleep,
    rng: Optional[random.Random] = None,
    on_progress: Optional[Callable[[int], None]] = None,
) -> Iterator[List[Record]]:
    """Yield record batches until the collection is exhausted.

    `issue_page(cursor)` fetches one page; the first call gets ``None``.
    Iteration stops when a page comes back without a cursor or without
    records. Abandoning the generator simply stops issuing requests.
    """
    cfg = config or PaginationConfig()
    cursor: Optional[str] = None
    total = 0
    last_logged = 0
    pages = 0

    while pages < cfg.max_pages:
        if total and total != last_logged:
            log_info(f"  → Fetched {total} records...")
            last_logged = total

        page = with_retry(partial(issue_page, cursor), cfg.retry, sleep=sleep, rng=rng)
        pages += 1

        records = page.records
        if records:
            total += len(records)
            if on_progress:
                on_progress(total)
            yield list(records)

        if page.is_last:
            return
        cursor = page.cursor
        if pages >= cfg.max_pages:
            break

        if total >= cfg.throttle_after_records:
            sleep(cfg.proactive_delay_ms / 1000)

    log_warning(f"  ⚠ Stopped after {cfg.max_pages} pages ({total} records); the server was still returning a cursor")
