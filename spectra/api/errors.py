"""Map application errors onto HTTP responses.

- ValidationError → 400 ``{"error": <message>}``
- malformed JSON body → 400 ``{"error": "Invalid request body"}``
- StorageError → 500 ``{"error": "Failed to <operation>"}``

Deadline expiry (``CanceledError``) is a ``BaseException`` and is turned into
a 504 by the route layer instead.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from spectra.errors import StorageError, ValidationError

logger = logging.getLogger(__name__)

INVALID_BODY = "Invalid request body"
TIMED_OUT = "Request timed out"


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
    return error_response(400, str(exc))


async def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("Rejected %s %s: %d error(s)", request.method, request.url.path, len(exc.errors()))
    return error_response(400, INVALID_BODY)


async def _storage_error(request: Request, exc: StorageError) -> JSONResponse:
    logger.error(
        "Store failure on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=exc,
    )
    return error_response(500, f"Failed to {exc.operation}")


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, _validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _request_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(StorageError, _storage_error)  # type: ignore[arg-type]
