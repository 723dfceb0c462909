"""Async database engine, session factory, and lifespan management.

Uses SQLAlchemy 2.0 async. The pooled engine lives on an explicitly
constructed ``Database`` handle that the application passes to the
repository, so tests can swap in another store.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from spectra.config import DatabaseSettings
from spectra.db.tables import metadata
from spectra.errors import StorageError

logger = logging.getLogger(__name__)


class Database:
    """Owns the connection pool for the analytical store.

    Pool discipline: at most ``pool_size + max_overflow`` open connections,
    connections are recycled after ``pool_recycle`` seconds and pinged before
    reuse.
    """

    def __init__(self, db_settings: DatabaseSettings) -> None:
        self.settings = db_settings
        self.engine: AsyncEngine = create_async_engine(
            db_settings.database_url,
            echo=db_settings.db_echo,
            pool_size=db_settings.db_pool_size,
            max_overflow=db_settings.db_max_overflow,
            pool_pre_ping=True,
            pool_recycle=db_settings.db_pool_recycle,
        )
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def ping(self) -> None:
        """Verify connectivity with a trivial round-trip."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError("ping database", str(exc)) from exc

    async def create_tables(self) -> None:
        """Create any missing telemetry tables and indexes."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(metadata.create_all)
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError("create tables", str(exc)) from exc

    async def dispose(self) -> None:
        """Close every pooled connection."""
        await self.engine.dispose()


@contextlib.asynccontextmanager
async def db_lifespan(db_settings: DatabaseSettings) -> AsyncGenerator[Database, None]:
    """Context manager for the database lifecycle.

    Usage in FastAPI lifespan:
        async with db_lifespan(settings.db) as database:
            app.state.database = database
            yield
    """
    logger.info("Initializing database connection: %s", db_settings.masked_url)
    database = Database(db_settings)
    try:
        logger.info("Testing database connection...")
        await database.ping()
        if db_settings.db_create_tables:
            await database.create_tables()
            logger.info("Telemetry tables verified")
        logger.info("Successfully connected to database")
        yield database
    finally:
        await database.dispose()
        logger.info("Database connections closed")
