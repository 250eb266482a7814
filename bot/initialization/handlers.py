"""
Bot Initialization - Handlers Module.

Module: handlers.py
Registers all bot handlers.
Handler order matters for proper routing.
"""

from aiogram import Dispatcher
from loguru import logger


def register_all_handlers(dp: Dispatcher) -> None:
    """Register all handlers in the correct order."""
    from bot.handlers import common, documents, help, offramp, start, wallet

    dp.include_router(start.router)
    dp.include_router(help.router)
    dp.include_router(wallet.router)
    dp.include_router(offramp.router)
    dp.include_router(documents.router)

    # Free-text catch-all, MUST BE LAST
    dp.include_router(common.router)

    logger.info("Handlers registered successfully")
