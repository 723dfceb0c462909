"""Telemetry ingest and query routes.

POST endpoints accept one flat JSON record and answer 201. GET endpoints take
``project_id`` (required), ``start_time`` / ``end_time`` (RFC3339, default the
last 24 hours) and, where the kind has a discriminator, an optional ``name``.
"""
# ruff: noqa: B008  — Depends() in function defaults is standard FastAPI

from __future__ import annotations

import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any, TypeVar

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from spectra.api.errors import INVALID_BODY, TIMED_OUT, error_response
from spectra.errors import CanceledError, ValidationError
from spectra.schemas.query import (
    AveragePageStay,
    TimeWindow,
    parse_time_window,
    require_project_id,
)
from spectra.schemas.records import (
    CustomEvent,
    ErrorLog,
    PageStay,
    PerformanceMetric,
    RecordKind,
    TelemetryRecord,
    UserAction,
    parse_record,
)
from spectra.services.telemetry import TelemetryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["telemetry"])

T = TypeVar("T")


# ── Dependencies ─────────────────────────────────────────────────────


def get_service(request: Request) -> TelemetryService:
    """The service built during application startup."""
    return request.app.state.telemetry_service


@dataclass(frozen=True)
class RangeParams:
    project_id: str
    window: TimeWindow


def range_params(
    project_id: str | None = Query(default=None),
    start_time: str | None = Query(default=None, description="RFC3339, default now - 24h"),
    end_time: str | None = Query(default=None, description="RFC3339, default now"),
) -> RangeParams:
    """Resolve the shared query contract; raises ValidationError on bad input."""
    project_id = require_project_id(project_id)
    window = parse_time_window(start_time, end_time)
    return RangeParams(project_id=project_id, window=window)


# ── Helpers ──────────────────────────────────────────────────────────


async def _read_record(request: Request, kind: RecordKind) -> TelemetryRecord:
    body = await request.body()
    try:
        return parse_record(kind, body)
    except ValidationError as exc:
        logger.error("Failed to bind %s: %s", kind.label, exc.__cause__ or exc)
        raise ValidationError(INVALID_BODY) from exc


async def _run(call: Awaitable[T]) -> T | JSONResponse:
    """Await a service call, answering 504 when its deadline expired."""
    try:
        return await call
    except CanceledError as exc:
        if not exc.deadline_exceeded:
            raise
        logger.warning("Request timed out during %s", exc.operation)
        return error_response(504, TIMED_OUT)


def _query_extra(request: Request) -> dict[str, str]:
    """Query parameters other than ``parse_extra``, first value of each."""
    params = request.query_params
    return {key: params.getlist(key)[0] for key in params.keys() if key != "parse_extra"}


async def _record(
    request: Request,
    service: TelemetryService,
    kind: RecordKind,
    extra: dict[str, Any] | None = None,
) -> Any:
    record = await _read_record(request, kind)
    if extra:
        record = record.model_copy(update={"extra": extra})
    logger.debug(
        "Recording %s: project=%s session=%s trace=%s type=%s name=%s",
        kind.label,
        record.project_id,
        record.session_id,
        record.trace_id,
        record.type,
        record.name,
    )
    result = await _run(service.record(record))
    if isinstance(result, JSONResponse):
        return result
    label = kind.label.capitalize()
    return JSONResponse(status_code=201, content={"message": f"{label} recorded successfully"})


async def _list(
    service: TelemetryService,
    kind: RecordKind,
    params: RangeParams,
    name: str | None = None,
) -> Any:
    records = await _run(
        service.query(kind, params.project_id, params.window.start, params.window.end, name=name or None)
    )
    if isinstance(records, JSONResponse):
        return records
    logger.debug(
        "Fetched %d %ss: project=%s start=%s end=%s name=%s",
        len(records),
        kind.label,
        params.project_id,
        params.window.start.isoformat(),
        params.window.end.isoformat(),
        name,
    )
    return records


# ── Error logs ───────────────────────────────────────────────────────


@router.post("/error-logs", status_code=201)
async def record_error_log(request: Request, service: TelemetryService = Depends(get_service)) -> Any:
    return await _record(request, service, RecordKind.ERROR_LOG)


@router.get("/error-logs", response_model=list[ErrorLog])
async def get_error_logs(
    params: RangeParams = Depends(range_params),
    service: TelemetryService = Depends(get_service),
) -> Any:
    return await _list(service, RecordKind.ERROR_LOG, params)


@router.get("/error-logs/{trace_id}", response_model=ErrorLog)
async def get_error_log_by_trace_id(
    trace_id: str,
    service: TelemetryService = Depends(get_service),
) -> Any:
    log = await _run(service.get_error_log_by_trace_id(trace_id))
    if log is None:
        return error_response(404, "Error log not found")
    return log


# ── Performance metrics ──────────────────────────────────────────────


@router.post("/performance-metrics", status_code=201)
async def record_performance_metric(
    request: Request, service: TelemetryService = Depends(get_service)
) -> Any:
    return await _record(request, service, RecordKind.PERFORMANCE_METRIC)


@router.get("/performance-metrics", response_model=list[PerformanceMetric])
async def get_performance_metrics(
    name: str | None = Query(default=None, description="Metric name, e.g. LCP"),
    params: RangeParams = Depends(range_params),
    service: TelemetryService = Depends(get_service),
) -> Any:
    return await _list(service, RecordKind.PERFORMANCE_METRIC, params, name)


# ── User actions ─────────────────────────────────────────────────────


@router.post("/user-actions", status_code=201)
async def record_user_action(request: Request, service: TelemetryService = Depends(get_service)) -> Any:
    return await _record(request, service, RecordKind.USER_ACTION)


@router.get("/user-actions", response_model=list[UserAction])
async def get_user_actions(
    name: str | None = Query(default=None, description="Action name, e.g. click"),
    params: RangeParams = Depends(range_params),
    service: TelemetryService = Depends(get_service),
) -> Any:
    return await _list(service, RecordKind.USER_ACTION, params, name)


# ── Custom events ────────────────────────────────────────────────────


@router.post("/custom-events", status_code=201)
async def record_custom_event(
    request: Request,
    parse_extra: str | None = Query(default=None, description="'true' copies other query params into extra"),
    service: TelemetryService = Depends(get_service),
) -> Any:
    extra = _query_extra(request) if parse_extra == "true" else None
    return await _record(request, service, RecordKind.CUSTOM_EVENT, extra)


@router.get("/custom-events", response_model=list[CustomEvent])
async def get_custom_events(
    name: str | None = Query(default=None, description="Event name"),
    params: RangeParams = Depends(range_params),
    service: TelemetryService = Depends(get_service),
) -> Any:
    return await _list(service, RecordKind.CUSTOM_EVENT, params, name)


# ── Page stays ───────────────────────────────────────────────────────


@router.post("/page-stays", status_code=201)
async def record_page_stay(request: Request, service: TelemetryService = Depends(get_service)) -> Any:
    return await _record(request, service, RecordKind.PAGE_STAY)


@router.get("/page-stays", response_model=list[PageStay])
async def get_page_stays(
    params: RangeParams = Depends(range_params),
    service: TelemetryService = Depends(get_service),
) -> Any:
    return await _list(service, RecordKind.PAGE_STAY, params)


@router.get("/page-stays/average", response_model=AveragePageStay)
async def get_average_page_stay(
    params: RangeParams = Depends(range_params),
    service: TelemetryService = Depends(get_service),
) -> Any:
    avg = await _run(
        service.get_average_page_stay(params.project_id, params.window.start, params.window.end)
    )
    if isinstance(avg, JSONResponse):
        return avg
    return AveragePageStay(average_page_stay=avg)
