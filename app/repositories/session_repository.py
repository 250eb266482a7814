"""
Session context repository.

Data access layer for SessionContext model.
"""

from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.session_context import SessionContext
from app.repositories.base import BaseRepository


class SessionRepository(BaseRepository[SessionContext]):
    """Session context repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize session repository."""
        super().__init__(SessionContext, session)

    async def get_for_user(self, user_id: int) -> SessionContext | None:
        """Get session context without locking."""
        return await self.get_by(user_id=user_id)

    async def lock_for_user(self, user_id: int) -> SessionContext:
        """
        Get the user's session row locked for update, creating it if absent.

        Two messages from the same user are serialized on this row lock for
        the rest of the surrounding transaction.

        Args:
            user_id: User ID

        Returns:
            Locked SessionContext
        """
        await self.session.execute(
            insert(SessionContext)
            .values(
                user_id=user_id,
                collected_params={},
                history=[],
                last_active=datetime.now(UTC),
            )
            .on_conflict_do_nothing(index_elements=[SessionContext.user_id])
        )
        stmt = (
            select(SessionContext)
            .where(SessionContext.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()
