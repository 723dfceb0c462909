"""SQLTelemetryRepository against a real engine (in-memory SQLite via aiosqlite).

Checks column mapping end to end: what is inserted reads back equal, with
``extra`` decoded and ``timestamp`` restored as UTC.
"""

from __future__ import annotations

import contextlib
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from spectra.db.tables import metadata
from spectra.errors import StorageError
from spectra.repository.sql import SQLTelemetryRepository
from spectra.schemas.records import (
    CustomEvent,
    ErrorLog,
    PageStay,
    PerformanceMetric,
    RecordKind,
    UserAction,
)
from spectra.services.normalization import normalize

NOW = datetime(2026, 2, 16, 14, 30, 15, 250000, tzinfo=UTC)
SECOND = timedelta(seconds=1)


@contextlib.asynccontextmanager
async def sqlite_repository() -> AsyncGenerator[SQLTelemetryRepository, None]:
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    try:
        yield SQLTelemetryRepository(async_sessionmaker(engine, expire_on_commit=False), timeout=5.0)
    finally:
        await engine.dispose()


SAMPLES = [
    ErrorLog(project_id="p1", trace_id="t-1", message="boom", extra={"stack": ["f", "g"]}),
    PerformanceMetric(project_id="p1", name="LCP", value=1200.5, extra={"rating": "poor"}),
    UserAction(project_id="p1", type="api_timing", method="POST", status=503, value=87.25),
    CustomEvent(project_id="p1", name="signup", extra={"plan": "pro", "seats": 3}),
    PageStay(project_id="p1", url="https://example.com/pricing", value=42.5),
]


class TestRoundTrip:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("sample", SAMPLES, ids=lambda s: s.kind.value)
    async def test_saved_record_reads_back_equal(self, sample):
        record = normalize(sample, now=NOW)

        async with sqlite_repository() as repo:
            await repo.save(record)
            found = await repo.query_range(record.kind, "p1", NOW - SECOND, NOW + SECOND)

        assert found == [record]
        assert found[0].timestamp.tzinfo is not None

    @pytest.mark.asyncio
    async def test_null_extra_reads_back_empty(self):
        record = normalize(CustomEvent(project_id="p1", extra=None), now=NOW)

        async with sqlite_repository() as repo:
            await repo.save(record)
            [event] = await repo.query_range(RecordKind.CUSTOM_EVENT, "p1", NOW - SECOND, NOW + SECOND)

        assert event.extra == {}


class TestRangeQueries:
    @pytest.mark.asyncio
    async def test_newest_first_and_closed_window(self):
        start, end = NOW - timedelta(minutes=10), NOW

        async with sqlite_repository() as repo:
            for ts in (start - SECOND, start, NOW - timedelta(minutes=5), end, end + SECOND):
                await repo.save(normalize(PageStay(project_id="p1", value=1.0, timestamp=ts)))
            await repo.save(normalize(PageStay(project_id="p2", value=1.0, timestamp=NOW)))
            found = await repo.query_range(RecordKind.PAGE_STAY, "p1", start, end)

        assert [r.timestamp for r in found] == [end, NOW - timedelta(minutes=5), start]

    @pytest.mark.asyncio
    async def test_by_name(self):
        async with sqlite_repository() as repo:
            for name in ("LCP", "CLS", "LCP"):
                await repo.save(normalize(PerformanceMetric(project_id="p1", name=name, value=1.0), now=NOW))
            found = await repo.query_range_by_name(
                RecordKind.PERFORMANCE_METRIC, "p1", "LCP", NOW - SECOND, NOW + SECOND
            )

        assert [r.name for r in found] == ["LCP", "LCP"]


class TestTraceAndAverage:
    @pytest.mark.asyncio
    async def test_latest_trace_wins(self):
        async with sqlite_repository() as repo:
            await repo.save(normalize(ErrorLog(trace_id="t-1", message="old", timestamp=NOW - timedelta(hours=1))))
            await repo.save(normalize(ErrorLog(trace_id="t-1", message="new", timestamp=NOW)))
            log = await repo.get_error_log_by_trace_id("t-1")
            missing = await repo.get_error_log_by_trace_id("t-missing")

        assert log is not None
        assert log.message == "new"
        assert missing is None

    @pytest.mark.asyncio
    async def test_average(self):
        async with sqlite_repository() as repo:
            empty = await repo.average_page_stay("p1", NOW - SECOND, NOW + SECOND)
            for value in (10.0, 20.0, 30.0):
                await repo.save(normalize(PageStay(project_id="p1", value=value), now=NOW))
            mean = await repo.average_page_stay("p1", NOW - SECOND, NOW + SECOND)

        assert empty == 0.0
        assert mean == 20.0


class TestConstraints:
    @pytest.mark.asyncio
    async def test_missing_timestamp_is_storage_error(self):
        async with sqlite_repository() as repo:
            with pytest.raises(StorageError):
                await repo.save(ErrorLog(project_id="p1", type="error"))

    @pytest.mark.asyncio
    async def test_status_check_constraint(self):
        # model_copy skips validation, so only the table constraint stands in the way
        action = normalize(UserAction(project_id="p1"), now=NOW).model_copy(update={"status": 70000})

        async with sqlite_repository() as repo:
            with pytest.raises(StorageError):
                await repo.save(action)
