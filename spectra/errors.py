"""Error taxonomy shared by the service, storage, and HTTP layers.

- ValidationError: malformed or missing caller input (client error, never retried)
- StorageError: the store failed (connectivity, bad statement, constraint)
- CanceledError: the caller cancelled or the deadline expired mid-operation

Errors raised by the repository propagate unchanged to the HTTP boundary.
"""

from __future__ import annotations

import asyncio


class TelemetryError(Exception):
    """Base class for all application errors."""


class ValidationError(TelemetryError):
    """Inbound record or query parameters failed structural validation."""


class StorageError(TelemetryError):
    """A store operation failed.

    Attributes:
        operation: Short verb phrase describing the failed call, e.g.
            ``"save error log"``. Used for logs and client error messages.
    """

    def __init__(self, operation: str, detail: str = "") -> None:
        self.operation = operation
        self.detail = detail
        message = f"failed to {operation}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class CanceledError(asyncio.CancelledError):
    """A store call was aborted before it completed.

    Subclasses ``asyncio.CancelledError`` so task cancellation keeps working,
    while staying distinct from ``StorageError``.
    """

    def __init__(self, operation: str, *, deadline_exceeded: bool = False) -> None:
        self.operation = operation
        self.deadline_exceeded = deadline_exceeded
        reason = "deadline exceeded" if deadline_exceeded else "canceled"
        super().__init__(f"{operation}: {reason}")
