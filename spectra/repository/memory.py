"""In-process storage gateway for tests and local development.

Holds one list per record kind. ``extra`` goes through the same JSON text
codec as the SQL repository, so stored payloads never alias caller data.
"""

from __future__ import annotations

import logging
from datetime import datetime

from spectra.errors import StorageError
from spectra.repository.base import TelemetryRepository, deserialize_extra, serialize_extra
from spectra.schemas.query import TimeWindow
from spectra.schemas.records import ErrorLog, RecordKind, TelemetryRecord, is_zero_time

logger = logging.getLogger(__name__)


class InMemoryTelemetryRepository(TelemetryRepository):
    """Append-only lists standing in for the five tables."""

    def __init__(self) -> None:
        self._tables: dict[RecordKind, list[TelemetryRecord]] = {kind: [] for kind in RecordKind}

    def count(self, kind: RecordKind) -> int:
        return len(self._tables[kind])

    async def save(self, record: TelemetryRecord, *, timeout: float | None = None) -> None:
        # Mirrors the NOT NULL constraints on the SQL tables
        if is_zero_time(record.timestamp):
            raise StorageError(f"save {record.kind.label}", "timestamp is required")
        if not record.type:
            raise StorageError(f"save {record.kind.label}", "type is required")

        stored = record.model_copy(
            update={"extra": deserialize_extra(serialize_extra(record.extra))}
        )
        self._tables[record.kind].append(stored)

    def _scan(
        self,
        kind: RecordKind,
        project_id: str,
        start: datetime,
        end: datetime,
        name: str | None = None,
    ) -> list[TelemetryRecord]:
        window = TimeWindow(start=start, end=end)
        matches = [
            r
            for r in self._tables[kind]
            if r.project_id == project_id
            and (name is None or r.name == name)
            and window.contains(r.timestamp)  # type: ignore[arg-type]
        ]
        return sorted(matches, key=lambda r: r.timestamp, reverse=True)  # type: ignore[arg-type, return-value]

    async def query_range(
        self,
        kind: RecordKind,
        project_id: str,
        start: datetime,
        end: datetime,
        *,
        timeout: float | None = None,
    ) -> list[TelemetryRecord]:
        return self._scan(kind, project_id, start, end)

    async def query_range_by_name(
        self,
        kind: RecordKind,
        project_id: str,
        name: str,
        start: datetime,
        end: datetime,
        *,
        timeout: float | None = None,
    ) -> list[TelemetryRecord]:
        return self._scan(kind, project_id, start, end, name=name)

    async def get_error_log_by_trace_id(
        self, trace_id: str, *, timeout: float | None = None
    ) -> ErrorLog | None:
        matches = [r for r in self._tables[RecordKind.ERROR_LOG] if r.trace_id == trace_id]
        if not matches:
            return None
        return max(matches, key=lambda r: r.timestamp)  # type: ignore[arg-type, return-value]

    async def average_page_stay(
        self,
        project_id: str,
        start: datetime,
        end: datetime,
        *,
        timeout: float | None = None,
    ) -> float:
        values = [r.value for r in self._scan(RecordKind.PAGE_STAY, project_id, start, end)]  # type: ignore[union-attr]
        if not values:
            return 0.0
        return sum(values) / len(values)
