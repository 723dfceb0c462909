"""HTTP access logging."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

import structlog
from fastapi import FastAPI, Request, Response

access_log = structlog.get_logger("spectra.access")


def install_access_log(app: FastAPI) -> None:
    """Log one ``http_request`` event per request with status and latency."""

    @app.middleware("http")
    async def log_requests(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        latency_ms = (time.perf_counter() - start) * 1000
        access_log.info(
            "http_request",
            status=response.status_code,
            method=request.method,
            path=request.url.path,
            ip=request.client.host if request.client else None,
            latency_ms=round(latency_ms, 2),
        )
        return response
