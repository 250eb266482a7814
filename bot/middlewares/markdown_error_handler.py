"""
Markdown Error Handler Middleware.

Catches TelegramBadRequest errors caused by Markdown parsing and tells
the user instead of failing the update.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from aiogram import BaseMiddleware
from aiogram.exceptions import TelegramAPIError, TelegramBadRequest
from aiogram.types import Message, TelegramObject, Update
from loguru import logger


class MarkdownErrorHandlerMiddleware(BaseMiddleware):
    """Safety net for messages that ``escape_md`` did not fully sanitize."""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        """Process update with Markdown error handling."""
        try:
            return await handler(event, data)
        except TelegramBadRequest as e:
            if "can't parse entities" not in str(e):
                raise
            logger.warning(f"Markdown parse error caught by middleware: {e}")

            message = event.message if isinstance(event, Update) else event
            if isinstance(message, Message):
                try:
                    await message.answer(
                        "⚠️ I couldn't format that reply. Please try again."
                    )
                except TelegramAPIError as send_error:
                    logger.warning(f"Failed to send formatting notice: {send_error}")
            return None
