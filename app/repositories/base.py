"""
Base repository.

Typed lookups and writes shared by the model repositories.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Repository bound to one model and one session.

    Writes are flushed, never committed: the session owner (DatabaseMiddleware
    for bot updates, the webhook handler or job otherwise) decides the
    transaction boundary.

    Example:
        class WalletRepository(BaseRepository[Wallet]):
            def __init__(self, session: AsyncSession):
                super().__init__(Wallet, session)
    """

    def __init__(self, model: type[ModelType], session: AsyncSession) -> None:
        """
        Initialize repository.

        Args:
            model: Mapped model class
            session: Async database session
        """
        self.model = model
        self.session = session

    def _select(self, for_update: bool = False, **filters: Any) -> Select:
        stmt = select(self.model).filter_by(**filters)
        if for_update:
            stmt = stmt.with_for_update()
        return stmt

    async def get_by_id(self, id: int) -> ModelType | None:
        """Get row by primary key (identity map first)."""
        return await self.session.get(self.model, id)

    async def get_by(self, for_update: bool = False, **filters: Any) -> ModelType | None:
        """
        Get the single row matching column filters.

        Args:
            for_update: Take a row lock (SELECT ... FOR UPDATE)
            **filters: Column equality filters

        Returns:
            Row or None
        """
        result = await self.session.execute(self._select(for_update, **filters))
        return result.scalar_one_or_none()

    async def find_by(
        self, limit: int | None = None, order_by: Any = None, **filters: Any
    ) -> list[ModelType]:
        """
        List rows matching column filters.

        Args:
            limit: Maximum number of rows
            order_by: ORDER BY clause
            **filters: Column equality filters

        Returns:
            Matching rows
        """
        stmt = self._select(**filters)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create(self, **data: Any) -> ModelType:
        """Insert a row and load server defaults (id, timestamps)."""
        entity = self.model(**data)
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def update(self, id: int, **data: Any) -> ModelType | None:
        """
        Set attributes on a row found by primary key.

        Returns:
            Updated row or None if not found
        """
        entity = await self.get_by_id(id)
        if entity is None:
            return None
        for key, value in data.items():
            setattr(entity, key, value)
        await self.session.flush()
        return entity
