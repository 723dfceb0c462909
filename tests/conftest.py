"""Shared fixtures. Environment defaults are set before ``spectra.config`` loads."""

from __future__ import annotations

import os
from datetime import UTC, datetime

import pytest

os.environ.setdefault("LOG_PATH", "")
os.environ.setdefault("STORAGE_BACKEND", "memory")

from spectra.repository.memory import InMemoryTelemetryRepository  # noqa: E402


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 2, 16, 14, 30, tzinfo=UTC)


@pytest.fixture
def memory_repo() -> InMemoryTelemetryRepository:
    return InMemoryTelemetryRepository()
