"""
Bot Initialization - Shutdown Module.

Module: shutdown.py
Handles graceful shutdown of the bot.
Stops scheduler, closes vendor clients and database connections.
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from app.services.container import ServiceContainer


async def shutdown_handler(
    services: ServiceContainer | None = None,
    scheduler: AsyncIOScheduler | None = None,
) -> None:
    """Handle graceful shutdown."""
    logger.info("Graceful shutdown initiated...")

    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")

    if services is not None:
        try:
            await services.close()
        except Exception as e:
            logger.warning(f"Error closing service clients: {e}")

    try:
        from app.config.database import engine
        await engine.dispose()
        logger.info("Database connections closed")
    except Exception as e:
        logger.warning(f"Error closing database: {e}")

    logger.info("Graceful shutdown complete")
