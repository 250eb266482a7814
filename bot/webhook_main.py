"""
Webhook entry point.

Serves Telegram, custody and off-ramp webhooks plus health checks from one
aiohttp server, with the reconciler scheduled in the same event loop.
Register the Telegram webhook with ``python -m scripts.set_webhook``.
"""

import asyncio
import sys

from aiogram import Bot
from aiogram.client.default import DefaultBotProperties
from aiohttp import web
from loguru import logger

from app.config.database import async_session_maker
from app.config.settings import settings
from bot.initialization.logging import setup_logging
from bot.initialization.services import initialize_all_services
from bot.initialization.shutdown import shutdown_handler
from bot.main import create_dispatcher
from bot.web import create_web_app
from jobs.scheduler import create_scheduler


async def main() -> None:
    """Run the webhook server until cancelled."""
    setup_logging()

    bot = Bot(token=settings.telegram_bot_token, default=DefaultBotProperties())
    services = initialize_all_services(async_session_maker, bot)
    dp = create_dispatcher(services)

    scheduler = None
    if settings.reconcile_enabled:
        scheduler = create_scheduler(services)
        scheduler.start()
        logger.info("Scheduler started")

    app = create_web_app(
        dp,
        bot,
        services,
        scheduler=scheduler,
        webhook_secret=settings.telegram_webhook_secret,
        paycrest_secret=settings.paycrest_api_secret,
    )
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host=settings.web_host, port=settings.web_port)

    try:
        await site.start()
        logger.info(f"Webhook server listening on {settings.web_host}:{settings.web_port}")
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()
        await shutdown_handler(services, scheduler)
        await bot.session.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Webhook server stopped (KeyboardInterrupt)")
    except Exception as e:
        logger.exception(f"Webhook server crashed: {e}")
        sys.exit(1)
