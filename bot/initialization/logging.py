"""
Bot Initialization - Logging Module.

Module: logging.py
Configures loguru logger for the bot.
Sets up log rotation and retention policies.
"""

from loguru import logger

from app.config.settings import settings


def setup_logging() -> None:
    """Configure logger with file rotation."""
    logger.add(
        "logs/bot.log",
        rotation="1 day",
        retention="7 days",
        level=settings.log_level.upper(),
        encoding="utf-8",
    )

    logger.info(f"Starting Hedwig ({settings.network_mode})...")
