"""
Purpose: Tests for the cursor-paginated fetcher.
Description: Scripts page sequences to check termination rules, proactive throttling,
retry integration, laziness and the page cap.
Key Tests: test_empty_page_ends_iteration_even_with_cursor, test_throttles_after_threshold.
"""

from __future__ import annotations

from typing import List, Optional

import pytest

from exporter.errors import RemoteError
from exporter.models import Page
from exporter.pagination import PaginationConfig, fetch_pages
from exporter.rate_limiter import RetryPolicy


class _FixedRandom:
    def random(self) -> float:
        return 0.0


class _Pages:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.cursors: List[Optional[str]] = []

    def __call__(self, cursor: Optional[str]) -> Page:
        self.cursors.append(cursor)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def _records(n: int, start: int = 0):
    return [{"id": i} for i in range(start, start + n)]


def test_empty_page_ends_iteration_even_with_cursor():
    a, b = {"id": "a"}, {"id": "b"}
    pages = _Pages([Page(records=[a, b], cursor="x"), Page(records=[], cursor="x")])
    batches = list(fetch_pages(pages, sleep=lambda s: None))
    assert batches == [[a, b]]
    assert pages.cursors == [None, "x"]


def test_missing_cursor_ends_iteration():
    pages = _Pages([Page(records=_records(3), cursor=None)])
    batches = list(fetch_pages(pages, sleep=lambda s: None))
    assert len(batches) == 1
    assert pages.cursors == [None]


def test_follows_cursor_in_order():
    pages = _Pages([
        Page(records=_records(2), cursor="c1"),
        Page(records=_records(2, 2), cursor="c2"),
        Page(records=_records(1, 4)),
    ])
    batches = list(fetch_pages(pages, sleep=lambda s: None))
    assert [r["id"] for batch in batches for r in batch] == [0, 1, 2, 3, 4]
    assert pages.cursors == [None, "c1", "c2"]


def test_throttles_after_threshold():
    sleeps: List[float] = []
    pages = _Pages([
        Page(records=_records(600), cursor="c1"),
        Page(records=_records(600), cursor="c2"),
        Page(records=_records(600), cursor="c3"),
        Page(records=_records(10)),
    ])
    batches = list(fetch_pages(pages, sleep=sleeps.append))
    assert len(batches) == 4
    # No delay until 1000 records have been emitted; none after the last page.
    assert sleeps == [3.0, 3.0]


def test_custom_throttle_settings():
    sleeps: List[float] = []
    pages = _Pages([Page(records=_records(5), cursor="c1"), Page(records=_records(5))])
    cfg = PaginationConfig(proactive_delay_ms=250, throttle_after_records=5)
    list(fetch_pages(pages, cfg, sleep=sleeps.append))
    assert sleeps == [0.25]


def test_retries_transient_page_failure():
    sleeps: List[float] = []
    pages = _Pages([RemoteError("unavailable", status_code=503), Page(records=_records(2))])
    batches = list(fetch_pages(pages, sleep=sleeps.append, rng=_FixedRandom()))
    assert len(batches) == 1
    assert pages.cursors == [None, None]
    assert sleeps == [2.0]


def test_gives_up_after_pagination_retry_budget():
    pages = _Pages([RemoteError("down", status_code=500)] * 5)
    with pytest.raises(RemoteError):
        list(fetch_pages(pages, sleep=lambda s: None, rng=_FixedRandom()))
    assert len(pages.cursors) == 5


def test_permanent_failure_propagates():
    pages = _Pages([RemoteError("forbidden", status_code=403)])
    with pytest.raises(RemoteError):
        list(fetch_pages(pages, sleep=lambda s: None))
    assert len(pages.cursors) == 1


def test_is_lazy_and_can_be_abandoned():
    pages = _Pages([Page(records=_records(1), cursor=f"c{i}") for i in range(10)])
    gen = fetch_pages(pages, sleep=lambda s: None)
    assert pages.cursors == []
    next(gen)
    gen.close()
    assert len(pages.cursors) == 1


def test_page_cap_stops_runaway_cursor():
    pages = _Pages([Page(records=_records(1), cursor="again") for _ in range(20)])
    cfg = PaginationConfig(max_pages=5, retry=RetryPolicy(max_retries=0))
    batches = list(fetch_pages(pages, cfg, sleep=lambda s: None))
    assert len(batches) == 5
    assert len(pages.cursors) == 5


def test_reports_progress():
    seen: List[int] = []
    pages = _Pages([Page(records=_records(3), cursor="c"), Page(records=_records(4))])
    list(fetch_pages(pages, sleep=lambda s: None, on_progress=seen.append))
    assert seen == [3, 7]


def test_page_cap_does_not_sleep_before_stopping():
    sleeps: List[float] = []
    pages = _Pages([Page(records=_records(1000), cursor="again") for _ in range(3)])
    cfg = PaginationConfig(max_pages=2)
    batches = list(fetch_pages(pages, cfg, sleep=sleeps.append))
    assert len(batches) == 2
    # Throttle only between the two pages actually fetched.
    assert sleeps == [3.0]
