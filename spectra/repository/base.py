"""Repository interface and the ``extra`` text codec shared by implementations."""

from __future__ import annotations

import abc
import json
from datetime import datetime
from typing import Any

from spectra.errors import StorageError, ValidationError
from spectra.schemas.records import ErrorLog, RecordKind, TelemetryRecord


def serialize_extra(extra: Any) -> str:
    """Encode an ``extra`` payload as JSON text; ``None`` becomes ``{}``."""
    if extra is None:
        return "{}"
    try:
        return json.dumps(extra, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"extra is not JSON serializable: {exc}") from exc


def deserialize_extra(raw: str | bytes | None) -> Any:
    """Decode stored ``extra`` text; empty values read back as ``{}``."""
    if raw is None or raw in ("", b""):
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StorageError("decode extra payload", str(exc)) from exc


class TelemetryRepository(abc.ABC):
    """Storage gateway for the five record kinds.

    Every method that touches the store may raise ``StorageError`` (never
    retried) or ``CanceledError`` (caller cancellation or an expired
    ``timeout``, in seconds). Range queries use the closed interval
    ``[start, end]`` and return records newest first.
    """

    @abc.abstractmethod
    async def save(self, record: TelemetryRecord, *, timeout: float | None = None) -> None:
        """Insert one normalized record into its kind's table."""

    @abc.abstractmethod
    async def query_range(
        self,
        kind: RecordKind,
        project_id: str,
        start: datetime,
        end: datetime,
        *,
        timeout: float | None = None,
    ) -> list[TelemetryRecord]:
        """All records of ``kind`` for the project within ``[start, end]``."""

    @abc.abstractmethod
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
        """As ``query_range``, restricted to records whose ``name`` equals ``name``."""

    @abc.abstractmethod
    async def get_error_log_by_trace_id(
        self, trace_id: str, *, timeout: float | None = None
    ) -> ErrorLog | None:
        """The latest error log with this trace id, or ``None``."""

    @abc.abstractmethod
    async def average_page_stay(
        self,
        project_id: str,
        start: datetime,
        end: datetime,
        *,
        timeout: float | None = None,
    ) -> float:
        """Mean page stay ``value`` within the window; ``0.0`` when empty."""
