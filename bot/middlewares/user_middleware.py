"""
User middleware.

Resolves the Telegram sender to a ``User`` row, creating it on first
contact, and passes it to handlers as ``user``.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from aiogram import BaseMiddleware
from aiogram.types import Chat, TelegramObject
from aiogram.types import User as TelegramUser
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.user_repository import UserRepository


class UserMiddleware(BaseMiddleware):
    """Load or register the sending user. Requires DatabaseMiddleware."""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        """Inject ``user`` into handler data."""
        telegram_user: TelegramUser | None = data.get("event_from_user")
        session: AsyncSession | None = data.get("session")
        if telegram_user is None or session is None or telegram_user.is_bot:
            return await handler(event, data)

        chat: Chat | None = data.get("event_chat")
        user, created = await UserRepository(session).get_or_create(
            telegram_id=telegram_user.id,
            chat_id=chat.id if chat else telegram_user.id,
            username=telegram_user.username,
            first_name=telegram_user.first_name,
        )
        data["user"] = user
        data["is_new_user"] = created
        return await handler(event, data)
