"""Storage gateway: persists normalized records and answers range queries."""

from __future__ import annotations

from spectra.repository.base import TelemetryRepository
from spectra.repository.memory import InMemoryTelemetryRepository
from spectra.repository.sql import SQLTelemetryRepository

__all__ = [
    "TelemetryRepository",
    "InMemoryTelemetryRepository",
    "SQLTelemetryRepository",
]
