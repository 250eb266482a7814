#!/usr/bin/env python3
"""
Initialize database tables.

Creates any missing table from the models. Production deployments should
prefer ``alembic upgrade head``; this is for local development.
"""

import asyncio
import sys

from loguru import logger

from app.config.database import create_engine
from app.models import Base


# Configure logger for script
logger.remove()
logger.add(sys.stderr, level="INFO")


async def init_database() -> None:
    """Create all database tables."""
    logger.info("Connecting to database...")
    engine = create_engine(echo=False)

    async with engine.begin() as conn:
        logger.info("Creating tables (checkfirst=True)...")
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)

    await engine.dispose()
    logger.success("Database tables created successfully!")


if __name__ == "__main__":
    asyncio.run(init_database())
