"""SQLAlchemy implementation of the storage gateway.

One parameterized INSERT per record, one range SELECT per read, one
``avg(value)`` aggregate for page stays. Statements are built by the
``build_*`` functions below so they can be inspected without a database.

Store failures surface as ``StorageError`` with the driver message attached;
nothing is retried here.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator, Mapping
from datetime import datetime
from typing import Any

from sqlalchemy import Insert, Select, func, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from spectra.db.tables import TABLES
from spectra.errors import CanceledError, StorageError
from spectra.repository.base import TelemetryRepository, deserialize_extra, serialize_extra
from spectra.schemas.records import ErrorLog, RecordKind, TelemetryRecord

logger = logging.getLogger(__name__)


# ── Statement builders ───────────────────────────────────────────────


def build_insert(record: TelemetryRecord) -> Insert:
    """Single-row insert of the full column set for the record's kind."""
    values = record.model_dump(exclude={"extra"})
    values["extra"] = serialize_extra(record.extra)
    return insert(TABLES[record.kind]).values(**values)


def build_range_select(
    kind: RecordKind,
    project_id: str,
    start: datetime,
    end: datetime,
    name: str | None = None,
) -> Select:
    """``project_id`` / closed time window filter, newest first.

    With ``name`` the select also filters on the kind's discriminator column.
    """
    table = TABLES[kind]
    stmt = select(*table.c).where(table.c.project_id == project_id)
    if name is not None:
        stmt = stmt.where(table.c.name == name)
    return stmt.where(
        table.c.timestamp >= start,
        table.c.timestamp <= end,
    ).order_by(table.c.timestamp.desc())


def build_trace_select(trace_id: str) -> Select:
    """Error log lookup by trace id; ties go to the most recent record."""
    table = TABLES[RecordKind.ERROR_LOG]
    return (
        select(*table.c)
        .where(table.c.trace_id == trace_id)
        .order_by(table.c.timestamp.desc())
        .limit(1)
    )


def build_average_select(project_id: str, start: datetime, end: datetime) -> Select:
    table = TABLES[RecordKind.PAGE_STAY]
    return select(func.avg(table.c.value)).where(
        table.c.project_id == project_id,
        table.c.timestamp >= start,
        table.c.timestamp <= end,
    )


def row_to_record(kind: RecordKind, row: Mapping[str, Any]) -> TelemetryRecord:
    data = dict(row)
    data["extra"] = deserialize_extra(data.get("extra"))
    return kind.model.model_validate(data)


# ── Repository ───────────────────────────────────────────────────────


class SQLTelemetryRepository(TelemetryRepository):
    """Telemetry storage on any SQLAlchemy async engine."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        timeout: float | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._timeout = timeout

    @contextlib.asynccontextmanager
    async def _store_call(self, operation: str, timeout: float | None) -> AsyncGenerator[None, None]:
        """Apply the deadline and translate driver failures for one store call."""
        deadline = asyncio.timeout(timeout if timeout is not None else self._timeout)
        try:
            async with deadline:
                yield
        except TimeoutError as exc:
            if deadline.expired():
                logger.warning("Store call exceeded its deadline: %s", operation)
                raise CanceledError(operation, deadline_exceeded=True) from exc
            raise StorageError(operation, str(exc)) from exc
        except CanceledError:
            raise
        except asyncio.CancelledError as exc:
            logger.info("Store call canceled: %s", operation)
            raise CanceledError(operation) from exc
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError(operation, str(exc)) from exc

    async def save(self, record: TelemetryRecord, *, timeout: float | None = None) -> None:
        stmt = build_insert(record)
        async with self._store_call(f"save {record.kind.label}", timeout):
            async with self._session_factory() as session:
                await session.execute(stmt)
                await session.commit()

    async def _select_records(
        self,
        kind: RecordKind,
        stmt: Select,
        operation: str,
        timeout: float | None,
    ) -> list[TelemetryRecord]:
        async with self._store_call(operation, timeout):
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                rows = result.mappings().all()
        return [row_to_record(kind, row) for row in rows]

    async def query_range(
        self,
        kind: RecordKind,
        project_id: str,
        start: datetime,
        end: datetime,
        *,
        timeout: float | None = None,
    ) -> list[TelemetryRecord]:
        stmt = build_range_select(kind, project_id, start, end)
        return await self._select_records(kind, stmt, f"query {kind.label}s", timeout)

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
        stmt = build_range_select(kind, project_id, start, end, name=name)
        return await self._select_records(kind, stmt, f"query {kind.label}s by name", timeout)

    async def get_error_log_by_trace_id(
        self, trace_id: str, *, timeout: float | None = None
    ) -> ErrorLog | None:
        records = await self._select_records(
            RecordKind.ERROR_LOG,
            build_trace_select(trace_id),
            "query error log by trace id",
            timeout,
        )
        if not records:
            return None
        return records[0]  # type: ignore[return-value]

    async def average_page_stay(
        self,
        project_id: str,
        start: datetime,
        end: datetime,
        *,
        timeout: float | None = None,
    ) -> float:
        stmt = build_average_select(project_id, start, end)
        async with self._store_call("query average page stay", timeout):
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                avg = result.scalar()
        # avg() over zero rows is NULL
        return float(avg) if avg is not None else 0.0
