"""Telemetry record schemas: the shared envelope and the five record kinds.

Every kind inherits ``TelemetryEnvelope``, so the JSON wire shape stays flat:
envelope fields and kind fields are siblings. Records are frozen once built;
defaults are filled by ``spectra.services.normalization`` via ``model_copy``.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from enum import Enum
from typing import Any, ClassVar, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, field_validator

from spectra.errors import ValidationError


class RecordKind(str, Enum):
    """The five telemetry categories, each stored in its own table."""

    ERROR_LOG = "error_log"
    PERFORMANCE_METRIC = "performance_metric"
    USER_ACTION = "user_action"
    CUSTOM_EVENT = "custom_event"
    PAGE_STAY = "page_stay"

    @property
    def table_name(self) -> str:
        return _TABLE_NAMES[self]

    @property
    def default_type(self) -> str:
        """Value written to ``type`` when the client leaves it empty."""
        return _DEFAULT_TYPES[self]

    @property
    def label(self) -> str:
        """Human readable name used in log lines and error messages."""
        return self.value.replace("_", " ")

    @property
    def model(self) -> type[TelemetryRecord]:
        return RECORD_MODELS[self]


_TABLE_NAMES: dict[RecordKind, str] = {
    RecordKind.ERROR_LOG: "error_logs",
    RecordKind.PERFORMANCE_METRIC: "performance_metrics",
    RecordKind.USER_ACTION: "user_actions",
    RecordKind.CUSTOM_EVENT: "custom_events",
    RecordKind.PAGE_STAY: "page_stay",
}

_DEFAULT_TYPES: dict[RecordKind, str] = {
    RecordKind.ERROR_LOG: "error",
    RecordKind.PERFORMANCE_METRIC: "performance",
    RecordKind.USER_ACTION: "user",
    RecordKind.CUSTOM_EVENT: "custom",
    RecordKind.PAGE_STAY: "page_stay",
}


_ISO_DATETIME_RE = re.compile(r"^\d{4}-\d{2}-\d{2}[Tt ]\d{2}:\d{2}")


def is_zero_time(ts: datetime | None) -> bool:
    """True for a missing timestamp or the zero instant ``0001-01-01T00:00:00``."""
    return ts is None or ts.replace(tzinfo=None) == datetime.min


class TelemetryEnvelope(BaseModel):
    """Fields common to every record kind.

    String fields default to ``""`` and ``timestamp`` to ``None``; both count as
    "empty" for normalization. ``extra`` is an opaque JSON value carried
    verbatim, and an absent or null payload becomes ``{}``.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    kind: ClassVar[RecordKind]

    timestamp: datetime | None = None
    project_id: str = ""
    session_id: str = ""
    trace_id: str = ""
    user_id: str = ""
    url: str = ""
    referrer: str = ""
    type: str = ""
    name: str = ""
    extra: Any = Field(default_factory=dict)

    @field_validator("timestamp", mode="before")
    @classmethod
    def require_iso_timestamp(cls, v: Any) -> Any:
        """Accept only datetimes and ISO 8601 strings; epoch numbers are rejected."""
        if v is None or isinstance(v, datetime):
            return v
        if isinstance(v, str) and _ISO_DATETIME_RE.match(v):
            return v
        msg = "timestamp must be an RFC3339 string"
        raise ValueError(msg)

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        """Interpret naive timestamps as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @field_validator("extra", mode="before")
    @classmethod
    def default_extra(cls, v: Any) -> Any:
        return {} if v is None else v


class ErrorLog(TelemetryEnvelope):
    """A client-side error. ``trace_id`` is its lookup key."""

    kind: ClassVar[RecordKind] = RecordKind.ERROR_LOG

    message: str = ""


class PerformanceMetric(TelemetryEnvelope):
    """A web-vital style measurement; ``name`` is the metric (FCP, LCP, CLS...)."""

    kind: ClassVar[RecordKind] = RecordKind.PERFORMANCE_METRIC

    value: StrictFloat = 0.0


class UserAction(TelemetryEnvelope):
    """A click, route change, or API timing captured in the browser."""

    kind: ClassVar[RecordKind] = RecordKind.USER_ACTION

    message: str = ""
    method: str = ""
    status: StrictInt = Field(default=0, ge=0, le=65535, description="HTTP status (api_timing only)")
    value: StrictFloat = 0.0


class CustomEvent(TelemetryEnvelope):
    kind: ClassVar[RecordKind] = RecordKind.CUSTOM_EVENT

    message: str = ""


class PageStay(TelemetryEnvelope):
    """Time spent on a page; ``value`` is the stay duration."""

    kind: ClassVar[RecordKind] = RecordKind.PAGE_STAY

    value: StrictFloat = 0.0


TelemetryRecord = Union[ErrorLog, PerformanceMetric, UserAction, CustomEvent, PageStay]

RECORD_MODELS: dict[RecordKind, type[TelemetryRecord]] = {
    RecordKind.ERROR_LOG: ErrorLog,
    RecordKind.PERFORMANCE_METRIC: PerformanceMetric,
    RecordKind.USER_ACTION: UserAction,
    RecordKind.CUSTOM_EVENT: CustomEvent,
    RecordKind.PAGE_STAY: PageStay,
}


def parse_record(kind: RecordKind, payload: Any) -> TelemetryRecord:
    """Build a record of ``kind`` from a mapping or raw JSON text.

    Raises:
        ValidationError: the payload is not a JSON object or a field has the
            wrong shape. Missing fields are never an error.
    """
    model = kind.model
    try:
        if isinstance(payload, (str, bytes, bytearray)):
            return model.model_validate_json(payload)
        return model.model_validate(payload)
    except pydantic.ValidationError as exc:
        raise ValidationError(
            f"invalid {kind.label}: {exc.error_count()} validation error(s)"
        ) from exc
