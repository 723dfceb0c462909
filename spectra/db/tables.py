"""Table definitions: one append-only table per record kind.

Each table carries the envelope columns, the kind's own columns, and ``extra``
as JSON text. The composite ``(project_id, timestamp)`` index backs the
newest-first range scans every read path performs.
"""

from __future__ import annotations

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Double,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)

from spectra.schemas.records import RecordKind

metadata = MetaData()


def _telemetry_table(kind: RecordKind, *columns: Column) -> Table:
    name = kind.table_name
    return Table(
        name,
        metadata,
        Column("timestamp", DateTime(timezone=True), nullable=False),
        Column("project_id", String, nullable=False),
        Column("session_id", String, nullable=False, server_default=""),
        Column("trace_id", String, nullable=False, server_default=""),
        Column("user_id", String, nullable=False, server_default=""),
        Column("url", String, nullable=False, server_default=""),
        Column("referrer", String, nullable=False, server_default=""),
        Column("type", String, nullable=False),
        Column("name", String, nullable=False, server_default=""),
        *columns,
        Column("extra", Text, nullable=False, server_default="{}"),
        Index(f"ix_{name}_project_id_timestamp", "project_id", "timestamp"),
    )


error_logs = _telemetry_table(
    RecordKind.ERROR_LOG,
    Column("message", String, nullable=False, server_default=""),
)
# trace_id lookups only ever target error logs
Index("ix_error_logs_trace_id", error_logs.c.trace_id)

performance_metrics = _telemetry_table(
    RecordKind.PERFORMANCE_METRIC,
    Column("value", Double, nullable=False, comment="ms or unitless score"),
)

user_actions = _telemetry_table(
    RecordKind.USER_ACTION,
    Column("message", String, nullable=False, server_default="", comment="element id / route"),
    Column("method", String, nullable=False, server_default="", comment="GET / POST (api_timing only)"),
    Column("status", Integer, nullable=False, server_default="0", comment="HTTP status (api_timing only)"),
    Column("value", Double, nullable=False, comment="API duration"),
    CheckConstraint("status >= 0 AND status <= 65535", name="ck_user_actions_status_uint16"),
)

custom_events = _telemetry_table(
    RecordKind.CUSTOM_EVENT,
    Column("message", String, nullable=False, server_default=""),
)

page_stay = _telemetry_table(
    RecordKind.PAGE_STAY,
    Column("value", Double, nullable=False, comment="stay duration"),
)

TABLES: dict[RecordKind, Table] = {
    RecordKind.ERROR_LOG: error_logs,
    RecordKind.PERFORMANCE_METRIC: performance_metrics,
    RecordKind.USER_ACTION: user_actions,
    RecordKind.CUSTOM_EVENT: custom_events,
    RecordKind.PAGE_STAY: page_stay,
}
