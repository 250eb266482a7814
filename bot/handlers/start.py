"""
Start handler.

/start greets the user (registering them on first contact via
UserMiddleware); the ``create_wallets`` button creates both wallets.
"""

from typing import Any

from aiogram import F, Router
from aiogram.filters import CommandStart
from aiogram.types import CallbackQuery, Message
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.services.container import ServiceContainer
from app.services.intent.parser import ParsedIntent
from bot.utils.replies import send_callback_reply, send_reply


router = Router(name="start")


@router.message(CommandStart())
async def cmd_start(
    message: Message,
    session: AsyncSession,
    services: ServiceContainer,
    user: User,
    **data: Any,
) -> None:
    """
    Handle /start command.

    New users get the welcome text; the create-wallets prompt follows
    when they have no wallets yet.

    Args:
        message: Telegram message
        session: Database session
        services: Service container
        user: Current user
        **data: Additional handler data
    """
    if data.get("is_new_user"):
        logger.info(f"New user registered: {user.id} (telegram {user.telegram_id})")

    conversation = services.conversation_service(session)
    await send_reply(message, await conversation.handle_intent(user, ParsedIntent("welcome")))

    wallets = await services.wallet_service(session).list_wallets(user.id)
    if not wallets:
        await send_reply(message, await conversation.show_wallets(user))


@router.callback_query(F.data == "create_wallets")
async def handle_create_wallets(
    callback: CallbackQuery,
    session: AsyncSession,
    services: ServiceContainer,
    user: User,
    **data: Any,
) -> None:
    """Create the user's EVM and Solana wallets."""
    conversation = services.conversation_service(session)
    await send_callback_reply(callback, await conversation.create_wallets(user))
