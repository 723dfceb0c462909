"""Spectra: client telemetry ingestion and query backend."""

__version__ = "1.0.0"
