"""
Off-ramp handlers.

/offramp and the ``action_offramp`` button start the withdrawal flow in
the conversation layer. Order buttons carry the Paycrest order id.
"""

from typing import Any

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import CallbackQuery, Message
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.services.container import ServiceContainer
from app.services.intent.parser import ParsedIntent
from bot.utils.callback_parsers import parse_callback_suffix
from bot.utils.replies import send_callback_reply, send_reply


router = Router(name="offramp")

CONFIRM_PREFIX = "offramp_confirm_"
CANCEL_PREFIX = "offramp_cancel_"
STATUS_PREFIX = "check_offramp_status_"


@router.message(Command("offramp"))
async def cmd_offramp(
    message: Message,
    session: AsyncSession,
    services: ServiceContainer,
    user: User,
    **data: Any,
) -> None:
    """Start a withdrawal."""
    conversation = services.conversation_service(session)
    await send_reply(message, await conversation.handle_intent(user, ParsedIntent("offramp")))


@router.callback_query(F.data == "action_offramp")
async def handle_action_offramp(
    callback: CallbackQuery,
    session: AsyncSession,
    services: ServiceContainer,
    user: User,
    **data: Any,
) -> None:
    """Start a withdrawal from a button."""
    conversation = services.conversation_service(session)
    reply = await conversation.handle_intent(user, ParsedIntent("offramp"))
    await send_callback_reply(callback, reply)


@router.callback_query(F.data == "offramp_history")
async def handle_offramp_history(
    callback: CallbackQuery,
    session: AsyncSession,
    services: ServiceContainer,
    user: User,
    **data: Any,
) -> None:
    """Show recent withdrawals."""
    conversation = services.conversation_service(session)
    await send_callback_reply(callback, await conversation.offramp_history(user))


@router.callback_query(F.data.startswith(STATUS_PREFIX))
async def handle_offramp_status(
    callback: CallbackQuery,
    session: AsyncSession,
    services: ServiceContainer,
    user: User,
    **data: Any,
) -> None:
    """Refresh and show one withdrawal."""
    order_id = parse_callback_suffix(callback.data, STATUS_PREFIX)
    if order_id is None:
        await callback.answer("Invalid order", show_alert=True)
        return
    conversation = services.conversation_service(session)
    await send_callback_reply(callback, await conversation.offramp_status(user, order_id))


@router.callback_query(F.data.startswith(CONFIRM_PREFIX))
async def handle_offramp_confirm(
    callback: CallbackQuery,
    session: AsyncSession,
    services: ServiceContainer,
    user: User,
    **data: Any,
) -> None:
    """
    Confirm a withdrawal and send its tokens.

    The buttons are removed first so a double tap cannot send twice; the
    order row lock in OfframpService refuses a second confirmation anyway.

    Args:
        callback: Button press
        session: Database session
        services: Service container
        user: Current user
        **data: Additional handler data
    """
    order_id = parse_callback_suffix(callback.data, CONFIRM_PREFIX)
    if order_id is None:
        await callback.answer("Invalid order", show_alert=True)
        return
    if isinstance(callback.message, Message):
        await callback.message.edit_reply_markup(reply_markup=None)

    logger.info(f"User {user.id} confirmed off-ramp order {order_id}")
    conversation = services.conversation_service(session)
    await send_callback_reply(callback, await conversation.confirm_offramp(user, order_id))


@router.callback_query(F.data.startswith(CANCEL_PREFIX))
async def handle_offramp_cancel(
    callback: CallbackQuery,
    session: AsyncSession,
    services: ServiceContainer,
    user: User,
    **data: Any,
) -> None:
    """Cancel a withdrawal before its tokens are sent."""
    order_id = parse_callback_suffix(callback.data, CANCEL_PREFIX)
    if order_id is None:
        await callback.answer("Invalid order", show_alert=True)
        return
    if isinstance(callback.message, Message):
        await callback.message.edit_reply_markup(reply_markup=None)
    conversation = services.conversation_service(session)
    await send_callback_reply(callback, await conversation.cancel_offramp(user, order_id))
