"""
Common handlers.

/cancel and /send, unknown commands, and free text. This router is
registered last so commands handled elsewhere take priority.
"""

from typing import Any

from aiogram import F, Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.services.container import ServiceContainer
from app.services.intent.parser import ParsedIntent, extract_send_params
from bot.messages.user_messages import UNKNOWN_COMMAND
from bot.utils.replies import send_reply


router = Router(name="common")


@router.message(Command("cancel"))
async def cmd_cancel(
    message: Message,
    session: AsyncSession,
    services: ServiceContainer,
    user: User,
    **data: Any,
) -> None:
    """Drop the pending action."""
    conversation = services.conversation_service(session)
    await send_reply(message, await conversation.handle_intent(user, ParsedIntent("cancel")))


@router.message(Command("send"))
async def cmd_send(
    message: Message,
    command: CommandObject,
    session: AsyncSession,
    services: ServiceContainer,
    user: User,
    **data: Any,
) -> None:
    """
    Start a transfer: ``/send 10 USDC 0x...`` or bare ``/send``.

    Missing details are asked for one at a time.
    """
    params = extract_send_params(command.args or "")
    conversation = services.conversation_service(session)
    await send_reply(message, await conversation.handle_intent(user, ParsedIntent("send", params)))


@router.message(F.text.startswith("/"))
async def handle_unknown_command(message: Message, **data: Any) -> None:
    """Reply to commands no router handled."""
    await message.answer(UNKNOWN_COMMAND)


@router.message(F.text)
async def handle_text(
    message: Message,
    session: AsyncSession,
    services: ServiceContainer,
    user: User,
    **data: Any,
) -> None:
    """Free text goes to the conversation layer."""
    conversation = services.conversation_service(session)
    await send_reply(message, await conversation.handle_text(user, message.text))
