"""Create the telemetry tables in the configured database.

Usage:
    python -m spectra.db.schema
"""

from __future__ import annotations

import asyncio
import logging
import sys

from spectra.config import settings
from spectra.db.engine import Database
from spectra.db.tables import TABLES
from spectra.errors import StorageError

logger = logging.getLogger(__name__)


async def init_schema() -> None:
    database = Database(settings.db)
    try:
        await database.ping()
        await database.create_tables()
    finally:
        await database.dispose()
    logger.info("Created tables: %s", ", ".join(t.name for t in TABLES.values()))


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)-8s %(message)s")
    logger.info("Initializing schema at %s", settings.db.masked_url)
    try:
        asyncio.run(init_schema())
    except StorageError:
        logger.exception("Schema initialization failed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
