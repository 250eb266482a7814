"""
Help command handler.

/help plus the support and feedback buttons.
"""

from typing import Any

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import CallbackQuery, Message

from app.config.settings import settings
from bot.messages.user_messages import HELP_MESSAGE, RATE_THANKS, SUPPORT_MESSAGE


router = Router(name="help")


@router.message(Command("help"))
async def cmd_help(message: Message, **data: Any) -> None:
    """Handle /help command."""
    await message.answer(HELP_MESSAGE, parse_mode="Markdown")


@router.callback_query(F.data == "contact_support")
async def handle_contact_support(callback: CallbackQuery, **data: Any) -> None:
    """Show the support contact."""
    await callback.answer()
    if isinstance(callback.message, Message):
        await callback.message.answer(
            SUPPORT_MESSAGE.format(username=settings.support_username)
        )


@router.callback_query(F.data == "rate_offramp")
async def handle_rate_offramp(callback: CallbackQuery, **data: Any) -> None:
    """Thank the user for rating a completed withdrawal."""
    await callback.answer(RATE_THANKS, show_alert=False)
