"""Default-value normalization applied to every record before it is stored.

Pure function of one record plus the current time. It performs no I/O and raises nothing.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from spectra.schemas.records import (
    CustomEvent,
    PageStay,
    TelemetryRecord,
    is_zero_time,
)

CUSTOM_EVENT_MESSAGE = "custom_event"
PAGE_STAY_NAME = "page_stay_time"


def normalize(record: TelemetryRecord, now: datetime | None = None) -> TelemetryRecord:
    """Return ``record`` with its defaults filled.

    - zero timestamp → ``now`` (current UTC time when not given)
    - empty ``type`` → the kind's default type
    - CustomEvent: empty ``message`` → ``custom_event``
    - PageStay: empty ``name`` → ``page_stay_time``

    An already-normalized record is returned unchanged.
    """
    updates: dict[str, Any] = {}

    if is_zero_time(record.timestamp):
        updates["timestamp"] = now or datetime.now(UTC)
    if not record.type:
        updates["type"] = record.kind.default_type
    if isinstance(record, CustomEvent) and not record.message:
        updates["message"] = CUSTOM_EVENT_MESSAGE
    if isinstance(record, PageStay) and not record.name:
        updates["name"] = PAGE_STAY_NAME

    if not updates:
        return record
    return record.model_copy(update=updates)
