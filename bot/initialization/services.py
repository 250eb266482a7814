"""
Bot Initialization - Services Module.

Module: services.py
Validates environment variables and builds the service container.
"""

from aiogram import Bot
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config.settings import settings
from app.services.container import ServiceContainer


def validate_environment() -> None:
    """Warn about placeholder or missing optional configuration."""
    if "your_" in settings.telegram_bot_token.lower():
        logger.error("TELEGRAM_BOT_TOKEN is not properly configured")
    if "your_" in settings.database_url.lower():
        logger.error("DATABASE_URL is not properly configured")
    if "your_" in settings.privy_app_id.lower():
        logger.error("PRIVY_APP_ID is not properly configured")
    if not settings.get_admin_ids():
        logger.warning("ADMIN_TELEGRAM_IDS not set, error alerts disabled")


def initialize_all_services(
    session_maker: async_sessionmaker[AsyncSession], bot: Bot
) -> ServiceContainer:
    """
    Validate configuration and build all clients.

    Args:
        session_maker: Session factory
        bot: Bot used for notifications

    Returns:
        ServiceContainer
    """
    validate_environment()
    return ServiceContainer.from_settings(settings, session_maker, bot=bot)
