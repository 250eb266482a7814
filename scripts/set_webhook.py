#!/usr/bin/env python3
"""
Register (or remove) the Telegram webhook.

Usage:
    python -m scripts.set_webhook               # APP_URL + /api/telegram/webhook
    python -m scripts.set_webhook --url https://example.com
    python -m scripts.set_webhook --delete
"""

import argparse
import asyncio
import sys

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError
from loguru import logger

from app.config.constants import TELEGRAM_WEBHOOK_PATH
from app.config.settings import settings


logger.remove()
logger.add(sys.stderr, level="INFO")


def webhook_url(base_url: str) -> str:
    """Full webhook URL for a public base URL."""
    return base_url.rstrip("/") + TELEGRAM_WEBHOOK_PATH


async def set_webhook(base_url: str | None, delete: bool) -> int:
    """Call setWebhook or deleteWebhook and print the resulting info."""
    bot = Bot(token=settings.telegram_bot_token)
    try:
        if delete:
            await bot.delete_webhook(drop_pending_updates=False)
            logger.success("Webhook removed")
        else:
            if not base_url:
                logger.error("No URL given and APP_URL is not set")
                return 1
            url = webhook_url(base_url)
            await bot.set_webhook(
                url,
                secret_token=settings.telegram_webhook_secret,
                allowed_updates=["message", "callback_query"],
            )
            logger.success(f"Webhook set to {url}")

        info = await bot.get_webhook_info()
        logger.info(
            f"url={info.url or '-'} pending={info.pending_update_count} "
            f"last_error={info.last_error_message or '-'}"
        )
        return 0
    except TelegramAPIError as e:
        logger.error(f"Telegram API error: {e}")
        return 1
    finally:
        await bot.session.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Register the Telegram webhook")
    parser.add_argument("--url", default=settings.app_url, help="Public base URL")
    parser.add_argument("--delete", action="store_true", help="Remove the webhook")
    args = parser.parse_args()
    sys.exit(asyncio.run(set_webhook(args.url, args.delete)))


if __name__ == "__main__":
    main()
