"""
Database middleware.

Opens one session per update and hands it to handlers as ``session``.
The session is committed when the handler returns and rolled back when
it raises.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from aiogram import BaseMiddleware
from aiogram.exceptions import TelegramAPIError
from aiogram.types import CallbackQuery, Message, TelegramObject, Update
from loguru import logger
from sqlalchemy.exc import DatabaseError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import async_sessionmaker


DATABASE_UNAVAILABLE = (
    "⚠️ I'm having trouble reaching my database right now. "
    "Please try again in a minute."
)


class DatabaseMiddleware(BaseMiddleware):
    """Session-per-update middleware."""

    def __init__(self, session_pool: async_sessionmaker) -> None:
        """
        Initialize database middleware.

        Args:
            session_pool: SQLAlchemy async session maker
        """
        super().__init__()
        self.session_pool = session_pool

    async def _send_database_error_message(self, event: TelegramObject) -> None:
        message: Message | None = None
        if isinstance(event, Update):
            message = event.message or (
                event.callback_query.message if event.callback_query else None
            )
        elif isinstance(event, Message):
            message = event
        elif isinstance(event, CallbackQuery):
            message = event.message
        if not isinstance(message, Message):
            return
        try:
            await message.answer(DATABASE_UNAVAILABLE)
        except TelegramAPIError as e:
            logger.warning(f"Failed to send database error message: {e}")

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        """
        Run the handler inside a session.

        Args:
            handler: Next handler
            event: Telegram event
            data: Handler data

        Returns:
            Handler result, or None after a database failure
        """
        try:
            async with self.session_pool() as session:
                data["session"] = session
                try:
                    result = await handler(event, data)
                    await session.commit()
                    return result
                except Exception:
                    await session.rollback()
                    raise
        except (OperationalError, InterfaceError, DatabaseError) as e:
            logger.error(
                f"Database error in handler: {e}",
                extra={"error_type": type(e).__name__},
            )
            await self._send_database_error_message(event)
            return None
