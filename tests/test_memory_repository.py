"""Behavioural tests for the storage gateway, run against the in-memory store.

Covers round-trip per kind, newest-first ordering, closed windows, project
isolation, the page stay average, and trace-id lookup.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from spectra.errors import StorageError
from spectra.schemas.records import (
    CustomEvent,
    ErrorLog,
    PageStay,
    PerformanceMetric,
    RecordKind,
    UserAction,
)
from spectra.services.normalization import normalize

SECOND = timedelta(seconds=1)


def _samples(now):
    return [
        ErrorLog(project_id="p1", trace_id="t-1", message="boom", extra={"stack": ["f", "g"]}),
        PerformanceMetric(project_id="p1", name="LCP", value=1200.0, extra={"rating": "poor"}),
        UserAction(project_id="p1", name="api_timing", method="POST", status=503, value=87.25),
        CustomEvent(project_id="p1", name="signup", extra={"plan": "pro", "seats": 3}),
        PageStay(project_id="p1", url="https://example.com/pricing", value=42.5, timestamp=now),
    ]


class TestRoundTrip:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("index", range(5))
    async def test_saved_record_reads_back_equal(self, memory_repo, now, index):
        record = normalize(_samples(now)[index], now=now)

        await memory_repo.save(record)
        found = await memory_repo.query_range(
            record.kind, record.project_id, record.timestamp - SECOND, record.timestamp + SECOND
        )

        assert found == [record]

    @pytest.mark.asyncio
    async def test_extra_copied_on_save(self, memory_repo, now):
        payload = {"items": [1, 2]}
        record = normalize(CustomEvent(project_id="p1", extra=payload), now=now)

        await memory_repo.save(record)
        payload["items"].append(3)

        found = await memory_repo.query_range(RecordKind.CUSTOM_EVENT, "p1", now - SECOND, now + SECOND)
        assert found[0].extra == {"items": [1, 2]}

    @pytest.mark.asyncio
    async def test_unnormalized_record_rejected(self, memory_repo):
        with pytest.raises(StorageError):
            await memory_repo.save(ErrorLog(project_id="p1", type="error"))
        assert memory_repo.count(RecordKind.ERROR_LOG) == 0


class TestRangeQueries:
    @pytest.mark.asyncio
    async def test_newest_first(self, memory_repo, now):
        older = normalize(ErrorLog(project_id="p1", trace_id="a", timestamp=now - timedelta(minutes=5)))
        newer = normalize(ErrorLog(project_id="p1", trace_id="b", timestamp=now))
        await memory_repo.save(older)
        await memory_repo.save(newer)

        found = await memory_repo.query_range(RecordKind.ERROR_LOG, "p1", now - timedelta(hours=1), now)

        assert [r.trace_id for r in found] == ["b", "a"]

    @pytest.mark.asyncio
    async def test_window_is_closed(self, memory_repo, now):
        start, end = now - timedelta(minutes=10), now
        for ts in (start - SECOND, start, end, end + SECOND):
            await memory_repo.save(normalize(PageStay(project_id="p1", timestamp=ts, value=1.0)))

        found = await memory_repo.query_range(RecordKind.PAGE_STAY, "p1", start, end)

        assert [r.timestamp for r in found] == [end, start]

    @pytest.mark.asyncio
    async def test_empty_window(self, memory_repo, now):
        await memory_repo.save(normalize(ErrorLog(project_id="p1"), now=now))

        found = await memory_repo.query_range(
            RecordKind.ERROR_LOG, "p1", now + timedelta(days=1), now + timedelta(days=2)
        )

        assert found == []

    @pytest.mark.asyncio
    async def test_reversed_window_matches_nothing(self, memory_repo, now):
        await memory_repo.save(normalize(ErrorLog(project_id="p1"), now=now))

        assert await memory_repo.query_range(RecordKind.ERROR_LOG, "p1", now + SECOND, now - SECOND) == []

    @pytest.mark.asyncio
    async def test_project_isolation(self, memory_repo, now):
        await memory_repo.save(normalize(ErrorLog(project_id="p1"), now=now))
        await memory_repo.save(normalize(ErrorLog(project_id="p2"), now=now))

        found = await memory_repo.query_range(RecordKind.ERROR_LOG, "p2", now - SECOND, now + SECOND)

        assert [r.project_id for r in found] == ["p2"]

    @pytest.mark.asyncio
    async def test_kinds_are_separate_tables(self, memory_repo, now):
        await memory_repo.save(normalize(PerformanceMetric(project_id="p1", value=1.0), now=now))

        assert await memory_repo.query_range(RecordKind.PAGE_STAY, "p1", now - SECOND, now + SECOND) == []

    @pytest.mark.asyncio
    async def test_by_name_lcp_scenario(self, memory_repo, now):
        for offset, value in ((3, 1200.0), (2, 800.0), (1, 1500.0)):
            await memory_repo.save(
                normalize(
                    PerformanceMetric(
                        project_id="p1", name="LCP", value=value, timestamp=now - timedelta(minutes=offset)
                    )
                )
            )
        await memory_repo.save(normalize(PerformanceMetric(project_id="p1", name="CLS", value=0.1), now=now))

        found = await memory_repo.query_range_by_name(
            RecordKind.PERFORMANCE_METRIC, "p1", "LCP", now - timedelta(hours=1), now
        )

        assert [r.value for r in found] == [1500.0, 800.0, 1200.0]
        assert all(r.name == "LCP" for r in found)


class TestTraceLookup:
    @pytest.mark.asyncio
    async def test_found_and_missing(self, memory_repo, now):
        await memory_repo.save(normalize(ErrorLog(project_id="p1", trace_id="t-1", message="boom"), now=now))

        log = await memory_repo.get_error_log_by_trace_id("t-1")

        assert log is not None
        assert log.message == "boom"
        assert await memory_repo.get_error_log_by_trace_id("t-missing") is None

    @pytest.mark.asyncio
    async def test_duplicate_trace_returns_latest(self, memory_repo, now):
        await memory_repo.save(normalize(ErrorLog(trace_id="t-1", message="new", timestamp=now)))
        await memory_repo.save(
            normalize(ErrorLog(trace_id="t-1", message="old", timestamp=now - timedelta(hours=1)))
        )

        log = await memory_repo.get_error_log_by_trace_id("t-1")

        assert log is not None
        assert log.message == "new"

    @pytest.mark.asyncio
    async def test_other_kinds_not_searched(self, memory_repo, now):
        await memory_repo.save(normalize(UserAction(trace_id="t-9"), now=now))

        assert await memory_repo.get_error_log_by_trace_id("t-9") is None


class TestAveragePageStay:
    @pytest.mark.asyncio
    async def test_no_rows_is_zero(self, memory_repo, now):
        assert await memory_repo.average_page_stay("p1", now - timedelta(days=1), now) == 0.0

    @pytest.mark.asyncio
    async def test_mean(self, memory_repo, now):
        for value in (10.0, 20.0, 30.0):
            await memory_repo.save(normalize(PageStay(project_id="p1", value=value), now=now))

        assert await memory_repo.average_page_stay("p1", now - SECOND, now + SECOND) == 20.0

    @pytest.mark.asyncio
    async def test_only_window_and_project_count(self, memory_repo, now):
        await memory_repo.save(normalize(PageStay(project_id="p1", value=10.0), now=now))
        await memory_repo.save(normalize(PageStay(project_id="p2", value=1000.0), now=now))
        await memory_repo.save(
            normalize(PageStay(project_id="p1", value=500.0, timestamp=now - timedelta(days=3)))
        )

        assert await memory_repo.average_page_stay("p1", now - timedelta(hours=1), now) == 10.0
