"""
Wallet handlers: /wallet, /balance and the ``check_balance`` button.
"""

from typing import Any

from aiogram import F, Router
from aiogram.filters import Command, CommandObject
from aiogram.types import CallbackQuery, Message
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.services.container import ServiceContainer
from app.services.intent.parser import find_network, find_token
from bot.utils.replies import send_callback_reply, send_reply


router = Router(name="wallet")


@router.message(Command("wallet"))
async def cmd_wallet(
    message: Message,
    session: AsyncSession,
    services: ServiceContainer,
    user: User,
    **data: Any,
) -> None:
    """Show wallet addresses."""
    conversation = services.conversation_service(session)
    await send_reply(message, await conversation.show_wallets(user))


@router.message(Command("balance"))
async def cmd_balance(
    message: Message,
    command: CommandObject,
    session: AsyncSession,
    services: ServiceContainer,
    user: User,
    **data: Any,
) -> None:
    """
    Show balances, optionally filtered: ``/balance usdc base``.

    Args:
        message: Telegram message
        command: Parsed command with arguments
        session: Database session
        services: Service container
        user: Current user
        **data: Additional handler data
    """
    args = command.args or ""
    conversation = services.conversation_service(session)
    reply = await conversation.show_balance(
        user, chain=find_network(args), token=find_token(args)
    )
    await send_reply(message, reply)


@router.callback_query(F.data == "check_balance")
async def handle_check_balance(
    callback: CallbackQuery,
    session: AsyncSession,
    services: ServiceContainer,
    user: User,
    **data: Any,
) -> None:
    """Show balances from a button."""
    conversation = services.conversation_service(session)
    await send_callback_reply(callback, await conversation.show_balance(user))
