"""Script to initialize the database."""

import asyncio

import structlog
from sqlalchemy import text

from app.database import engine
from app.middleware.logging import configure_logging
from app.models import metadata

configure_logging()
logger = structlog.get_logger()


async def init_db() -> None:
    """Initialize the database by creating all tables."""
    async with engine.begin() as conn:
        if conn.dialect.name == "postgresql":
            await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))

        # Create all tables
        await conn.run_sync(metadata.create_all)

    logger.info("database_initialized", tables=sorted(metadata.tables))
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init_db())
