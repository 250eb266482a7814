"""
Bot Initialization - Middlewares Module.

Module: middlewares.py
Registers all bot middlewares in the correct order.
Order is critical for proper request processing.
"""

from aiogram import Dispatcher
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bot.middlewares import (
    DatabaseMiddleware,
    ErrorHandlerMiddleware,
    MarkdownErrorHandlerMiddleware,
    UserMiddleware,
)


def register_middlewares(
    dp: Dispatcher, session_maker: async_sessionmaker[AsyncSession]
) -> None:
    """
    Register all middlewares.

    Middleware order is critical:
    1. Error handler (outermost, sees every failure)
    2. Markdown fallback (resends unparseable Markdown as plain text)
    3. Database (one session per update)
    4. User (needs the session)

    Args:
        dp: Dispatcher instance
        session_maker: Session factory for DatabaseMiddleware
    """
    dp.update.middleware(ErrorHandlerMiddleware())
    dp.update.middleware(MarkdownErrorHandlerMiddleware())
    dp.update.middleware(DatabaseMiddleware(session_pool=session_maker))
    dp.update.middleware(UserMiddleware())

    logger.info("Middlewares registered successfully")
