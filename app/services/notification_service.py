"""
Notification service.

Sends out-of-band Telegram messages (deposits, reconciled transactions,
off-ramp order updates). A user who blocked the bot is logged and skipped.
"""

import asyncio

from aiogram import Bot
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError, TelegramForbiddenError
from aiogram.types import InlineKeyboardMarkup
from loguru import logger

from app.config.constants import TELEGRAM_TIMEOUT


class NotificationService:
    """Telegram notifier shared by webhooks and scheduled jobs."""

    def __init__(self, bot: Bot) -> None:
        """
        Initialize notification service.

        Args:
            bot: Bot instance
        """
        self.bot = bot

    async def send_notification(
        self,
        chat_id: int,
        message: str,
        reply_markup: InlineKeyboardMarkup | None = None,
        parse_mode: str | None = ParseMode.MARKDOWN,
    ) -> bool:
        """
        Send text notification.

        Args:
            chat_id: Telegram chat ID
            message: Message text
            reply_markup: Optional inline keyboard
            parse_mode: Telegram parse mode

        Returns:
            True if delivered
        """
        try:
            await asyncio.wait_for(
                self.bot.send_message(
                    chat_id=chat_id,
                    text=message,
                    reply_markup=reply_markup,
                    parse_mode=parse_mode,
                    disable_web_page_preview=True,
                ),
                timeout=TELEGRAM_TIMEOUT,
            )
            return True
        except TelegramForbiddenError:
            logger.warning(f"Bot blocked by user {chat_id}")
            return False
        except TelegramAPIError as e:
            logger.error(f"Failed to send notification to {chat_id}: {e}")
            return False
        except TimeoutError:
            logger.error(f"Timed out sending notification to {chat_id}")
            return False

    async def notify_admins(self, admin_ids: list[int], message: str) -> int:
        """
        Send a plain-text alert to admins.

        Returns:
            Number of admins reached
        """
        delivered = 0
        for admin_id in admin_ids:
            if await self.send_notification(admin_id, message, parse_mode=None):
                delivered += 1
        return delivered
