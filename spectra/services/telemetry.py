"""Telemetry service: record and read the five telemetry kinds.

Write path: normalize the record, then hand it to the repository.
Read path: enforce the query contract (``project_id`` is mandatory), then
delegate. Repository errors propagate unchanged; there is no retry here.
"""

from __future__ import annotations

import logging
from datetime import datetime

from spectra.repository.base import TelemetryRepository
from spectra.schemas.query import require_project_id
from spectra.schemas.records import (
    CustomEvent,
    ErrorLog,
    PageStay,
    PerformanceMetric,
    RecordKind,
    TelemetryRecord,
    UserAction,
)
from spectra.services.normalization import normalize

logger = logging.getLogger(__name__)


class TelemetryService:
    """Per-kind record/query operations on top of a ``TelemetryRepository``."""

    def __init__(self, repository: TelemetryRepository, *, timeout: float | None = None) -> None:
        self.repository = repository
        self._timeout = timeout

    # ── Generic paths ────────────────────────────────────────────────

    async def record(self, record: TelemetryRecord) -> TelemetryRecord:
        """Normalize and persist one record. Returns the stored form."""
        normalized = normalize(record)
        await self.repository.save(normalized, timeout=self._timeout)
        logger.debug(
            "Recorded %s: project=%s trace=%s type=%s name=%s",
            normalized.kind.label,
            normalized.project_id,
            normalized.trace_id,
            normalized.type,
            normalized.name,
        )
        return normalized

    async def query(
        self,
        kind: RecordKind,
        project_id: str | None,
        start: datetime,
        end: datetime,
        name: str | None = None,
    ) -> list[TelemetryRecord]:
        """Records of ``kind`` in ``[start, end]``, newest first.

        Raises:
            ValidationError: ``project_id`` is missing. No store call is made.
        """
        project_id = require_project_id(project_id)
        if name is None:
            return await self.repository.query_range(
                kind, project_id, start, end, timeout=self._timeout
            )
        return await self.repository.query_range_by_name(
            kind, project_id, name, start, end, timeout=self._timeout
        )

    # ── Error logs ───────────────────────────────────────────────────

    async def record_error_log(self, log: ErrorLog) -> ErrorLog:
        return await self.record(log)  # type: ignore[return-value]

    async def get_error_logs(
        self, project_id: str | None, start: datetime, end: datetime
    ) -> list[ErrorLog]:
        return await self.query(RecordKind.ERROR_LOG, project_id, start, end)  # type: ignore[return-value]

    async def get_error_log_by_trace_id(self, trace_id: str) -> ErrorLog | None:
        """Latest error log carrying ``trace_id``; ``None`` when there is none."""
        return await self.repository.get_error_log_by_trace_id(trace_id, timeout=self._timeout)

    # ── Performance metrics ──────────────────────────────────────────

    async def record_performance_metric(self, metric: PerformanceMetric) -> PerformanceMetric:
        return await self.record(metric)  # type: ignore[return-value]

    async def get_performance_metrics(
        self, project_id: str | None, start: datetime, end: datetime
    ) -> list[PerformanceMetric]:
        return await self.query(RecordKind.PERFORMANCE_METRIC, project_id, start, end)  # type: ignore[return-value]

    async def get_performance_metrics_by_name(
        self, project_id: str | None, metric_name: str, start: datetime, end: datetime
    ) -> list[PerformanceMetric]:
        return await self.query(  # type: ignore[return-value]
            RecordKind.PERFORMANCE_METRIC, project_id, start, end, name=metric_name
        )

    # ── User actions ─────────────────────────────────────────────────

    async def record_user_action(self, action: UserAction) -> UserAction:
        return await self.record(action)  # type: ignore[return-value]

    async def get_user_actions(
        self, project_id: str | None, start: datetime, end: datetime
    ) -> list[UserAction]:
        return await self.query(RecordKind.USER_ACTION, project_id, start, end)  # type: ignore[return-value]

    async def get_user_actions_by_name(
        self, project_id: str | None, action_name: str, start: datetime, end: datetime
    ) -> list[UserAction]:
        return await self.query(  # type: ignore[return-value]
            RecordKind.USER_ACTION, project_id, start, end, name=action_name
        )

    # ── Custom events ────────────────────────────────────────────────

    async def record_custom_event(self, event: CustomEvent) -> CustomEvent:
        return await self.record(event)  # type: ignore[return-value]

    async def get_custom_events(
        self, project_id: str | None, start: datetime, end: datetime
    ) -> list[CustomEvent]:
        return await self.query(RecordKind.CUSTOM_EVENT, project_id, start, end)  # type: ignore[return-value]

    async def get_custom_events_by_name(
        self, project_id: str | None, event_name: str, start: datetime, end: datetime
    ) -> list[CustomEvent]:
        return await self.query(  # type: ignore[return-value]
            RecordKind.CUSTOM_EVENT, project_id, start, end, name=event_name
        )

    # ── Page stays ───────────────────────────────────────────────────

    async def record_page_stay(self, page_stay: PageStay) -> PageStay:
        return await self.record(page_stay)  # type: ignore[return-value]

    async def get_page_stays(
        self, project_id: str | None, start: datetime, end: datetime
    ) -> list[PageStay]:
        return await self.query(RecordKind.PAGE_STAY, project_id, start, end)  # type: ignore[return-value]

    async def get_average_page_stay(
        self, project_id: str | None, start: datetime, end: datetime
    ) -> float:
        """Mean stay duration in the window. ``0.0`` also means "no data"."""
        project_id = require_project_id(project_id)
        return await self.repository.average_page_stay(
            project_id, start, end, timeout=self._timeout
        )
