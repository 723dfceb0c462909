"""Query contract shared by every read path.

- ``project_id`` is mandatory and checked before any store call
- ``start_time`` / ``end_time`` are RFC3339 strings, defaulting to the
  trailing 24 hours
- the window is closed on both ends and results come back newest first
"""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, ConfigDict

from spectra.errors import ValidationError

DEFAULT_WINDOW = timedelta(hours=24)

# YYYY-MM-DDTHH:MM:SS[.fraction](Z|+HH:MM|-HH:MM)
_RFC3339_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}[Tt]\d{2}:\d{2}:\d{2}(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$"
)


class TimeWindow(BaseModel):
    """Closed interval ``[start, end]`` over record timestamps."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    def contains(self, ts: datetime) -> bool:
        return self.start <= ts <= self.end


class AveragePageStay(BaseModel):
    average_page_stay: float


def require_project_id(project_id: str | None) -> str:
    """Return the project id, or raise when it is absent or blank."""
    if project_id is None or not project_id.strip():
        raise ValidationError("project_id is required")
    return project_id


def parse_rfc3339(raw: str, field: str = "timestamp") -> datetime:
    """Parse a fully-qualified RFC3339 timestamp with an explicit offset."""
    if not _RFC3339_RE.match(raw):
        raise ValidationError(f"invalid {field}: {raw!r} is not an RFC3339 timestamp")
    normalized = raw.upper().replace("Z", "+00:00")
    # fromisoformat accepts at most 6 fractional digits
    match = re.match(r"^(.*?\.\d{6})\d+(.*)$", normalized)
    if match:
        normalized = match.group(1) + match.group(2)
    try:
        return datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise ValidationError(f"invalid {field}: {exc}") from exc


def parse_time_window(
    start_raw: str | None,
    end_raw: str | None,
    now: datetime | None = None,
) -> TimeWindow:
    """Resolve the query window, defaulting to ``[now - 24h, now]``.

    Only an absent value takes the default; an empty string is malformed.

    ``start > end`` is accepted and simply matches nothing.
    """
    now = now or datetime.now(UTC)
    start = now - DEFAULT_WINDOW if start_raw is None else parse_rfc3339(start_raw, "start_time")
    end = now if end_raw is None else parse_rfc3339(end_raw, "end_time")
    return TimeWindow(start=start, end=end)
