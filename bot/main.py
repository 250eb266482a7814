"""
Bot main entry point (long polling).

Initializes and runs the Telegram bot with aiogram 3.x. Initialization is
delegated to the modules in bot/initialization/. For production behind a
public URL use ``python -m bot.webhook_main`` instead.
"""

import asyncio
import sys
import warnings


# eth_utils warns about unknown ChainIds at import time
warnings.filterwarnings(
    "ignore",
    message=".*does not have a valid ChainId.*",
    category=UserWarning,
)

from aiogram import Bot, Dispatcher  # noqa: E402
from aiogram.client.default import DefaultBotProperties  # noqa: E402
from aiogram.exceptions import TelegramAPIError  # noqa: E402
from aiogram.types import ErrorEvent  # noqa: E402
from loguru import logger  # noqa: E402

from app.config.database import async_session_maker  # noqa: E402
from app.config.settings import settings  # noqa: E402
from app.services.container import ServiceContainer  # noqa: E402
from bot.initialization.handlers import register_all_handlers  # noqa: E402
from bot.initialization.logging import setup_logging  # noqa: E402
from bot.initialization.middlewares import register_middlewares  # noqa: E402
from bot.initialization.services import initialize_all_services  # noqa: E402
from bot.initialization.shutdown import shutdown_handler  # noqa: E402
from bot.messages import GENERIC_ERROR  # noqa: E402
from jobs.scheduler import create_scheduler  # noqa: E402


def create_dispatcher(services: ServiceContainer) -> Dispatcher:
    """
    Build the dispatcher with middlewares, handlers and the error hook.

    Args:
        services: Service container exposed to handlers as ``services``

    Returns:
        Dispatcher
    """
    dp = Dispatcher()
    dp["services"] = services

    register_middlewares(dp, services.session_maker)

    @dp.error()
    async def error_handler(event: ErrorEvent) -> bool:
        """Global error handler for unhandled exceptions."""
        logger.exception(
            f"Unhandled error in bot: {event.exception.__class__.__name__}: {event.exception}"
        )
        try:
            if event.update and event.update.message:
                await event.update.message.answer(GENERIC_ERROR)
        except TelegramAPIError as send_error:
            logger.error(f"Failed to send error message: {send_error}")
        return True

    register_all_handlers(dp)
    return dp


async def main() -> None:
    """Initialize and run the bot."""
    setup_logging()

    bot = Bot(token=settings.telegram_bot_token, default=DefaultBotProperties())
    services = initialize_all_services(async_session_maker, bot)
    dp = create_dispatcher(services)

    try:
        bot_info = await bot.get_me()
        logger.info(f"Bot connected: @{bot_info.username} (ID: {bot_info.id})")
    except TelegramAPIError as e:
        logger.error(f"Failed to connect to Telegram API: {e}")
        await shutdown_handler(services)
        await bot.session.close()
        raise

    scheduler = None
    if settings.reconcile_enabled:
        scheduler = create_scheduler(services)
        scheduler.start()
        logger.info("Scheduler started")

    try:
        # Polling and webhooks are mutually exclusive
        await bot.delete_webhook(drop_pending_updates=False)
        logger.info("Starting polling...")
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    except Exception as e:
        logger.exception(f"Polling error: {e}")
        raise
    finally:
        await shutdown_handler(services, scheduler)
        await bot.session.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped by user (KeyboardInterrupt)")
    except Exception as e:
        logger.exception(f"Bot crashed: {e}")
        sys.exit(1)
