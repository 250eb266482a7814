"""
User repository.

Data access layer for User model.
"""

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """User repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize user repository."""
        super().__init__(User, session)

    async def get_by_telegram_id(self, telegram_id: int) -> User | None:
        """
        Get user by Telegram ID.

        Args:
            telegram_id: Telegram user ID

        Returns:
            User or None
        """
        return await self.get_by(telegram_id=telegram_id)

    async def get_or_create(
        self,
        telegram_id: int,
        chat_id: int | None = None,
        username: str | None = None,
        first_name: str | None = None,
    ) -> tuple[User, bool]:
        """
        Get user by Telegram ID, creating the row on first contact.

        Uses INSERT ... ON CONFLICT DO NOTHING so two simultaneous first
        messages cannot create duplicate users.

        Args:
            telegram_id: Telegram user ID
            chat_id: Private chat ID
            username: Telegram username
            first_name: Telegram first name

        Returns:
            Tuple of (user, created)
        """
        stmt = (
            insert(User)
            .values(
                telegram_id=telegram_id,
                chat_id=chat_id,
                username=username,
                first_name=first_name,
            )
            .on_conflict_do_nothing(index_elements=[User.telegram_id])
            .returning(User.id)
        )
        result = await self.session.execute(stmt)
        created = result.scalar_one_or_none() is not None

        user = (
            await self.session.execute(
                select(User).where(User.telegram_id == telegram_id)
            )
        ).scalar_one()

        if not created:
            # Keep contact details fresh
            if chat_id and user.chat_id != chat_id:
                user.chat_id = chat_id
            if username and user.username != username:
                user.username = username
            if first_name and user.first_name != first_name:
                user.first_name = first_name
            await self.session.flush()

        return user, created
