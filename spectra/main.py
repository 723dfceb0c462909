"""FastAPI application entry point — wires everything together.

Usage:
    python -m spectra.main

``create_app`` builds the store handle during the lifespan and stores the
service on ``app.state``. Passing a repository skips the database entirely,
which is how the tests run against the in-memory store.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from spectra.api.errors import install_exception_handlers
from spectra.api.middleware import install_access_log
from spectra.api.routes import router as telemetry_router
from spectra.config import Settings, settings
from spectra.db.engine import db_lifespan
from spectra.logging_setup import configure_logging
from spectra.repository import InMemoryTelemetryRepository, SQLTelemetryRepository
from spectra.repository.base import TelemetryRepository
from spectra.services.telemetry import TelemetryService

# ── Logging setup ────────────────────────────────────────────────────

configure_logging(settings)

logger = logging.getLogger(__name__)


def create_app(
    app_settings: Settings | None = None,
    repository: TelemetryRepository | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        app_settings: Settings to use; the module singleton by default.
        repository: A ready repository. When omitted, one is created at
            startup according to ``storage_backend``.
    """
    cfg = app_settings or settings
    timeout = cfg.db.db_statement_timeout

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application startup and shutdown lifecycle."""
        logger.info("Starting %s %s (env=%s)", cfg.app_name, cfg.app_version, cfg.environment)

        if repository is not None:
            app.state.telemetry_service = TelemetryService(repository, timeout=timeout)
            yield
        elif cfg.storage.storage_backend == "memory":
            logger.warning("Using in-memory storage; data is lost on restart")
            app.state.telemetry_service = TelemetryService(
                InMemoryTelemetryRepository(), timeout=timeout
            )
            yield
        else:
            async with db_lifespan(cfg.db) as database:
                repo = SQLTelemetryRepository(database.session_factory, timeout=timeout)
                app.state.database = database
                app.state.telemetry_service = TelemetryService(repo, timeout=timeout)
                yield

        logger.info("%s shutdown complete", cfg.app_name)

    app = FastAPI(
        title="Spectra Telemetry API",
        description="Ingest and query client error logs, metrics, actions, events, and page stays",
        version=cfg.app_version,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.server.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_access_log(app)
    install_exception_handlers(app)
    app.include_router(telemetry_router)

    @app.get("/ping")
    async def ping() -> dict[str, str]:
        return {"message": "pong"}

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "environment": cfg.environment}

    return app


app = create_app()


# ── Entry point ──────────────────────────────────────────────────────

if __name__ == "__main__":
    uvicorn.run(
        "spectra.main:app",
        host=settings.server.server_host,
        port=settings.server.server_port,
        reload=settings.environment == "development",
        log_level=settings.log.log_level.lower(),
    )
