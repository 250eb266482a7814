"""
Off-ramp order repository.

Data access layer for OfframpOrder model.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import OfframpOrderStatus
from app.models.offramp_order import OfframpOrder
from app.repositories.base import BaseRepository


class OfframpOrderRepository(BaseRepository[OfframpOrder]):
    """Off-ramp order repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize off-ramp order repository."""
        super().__init__(OfframpOrder, session)

    async def get_by_order_id(
        self, order_id: str, for_update: bool = False
    ) -> OfframpOrder | None:
        """
        Get order by Paycrest order ID.

        Args:
            order_id: Vendor order ID
            for_update: Lock the row

        Returns:
            Order or None
        """
        return await self.get_by(for_update=for_update, order_id=order_id)

    async def list_for_user(
        self, user_id: int, limit: int = 5
    ) -> list[OfframpOrder]:
        """Get latest orders of a user, newest first."""
        return await self.find_by(
            limit=limit,
            order_by=OfframpOrder.created_at.desc(),
            user_id=user_id,
        )

    async def list_open(self, limit: int = 50) -> list[OfframpOrder]:
        """Get orders whose tokens were sent but that are not final yet."""
        stmt = (
            select(OfframpOrder)
            .where(
                OfframpOrder.status == OfframpOrderStatus.PROCESSING.value,
                OfframpOrder.tx_hash.is_not(None),
            )
            .order_by(OfframpOrder.created_at)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
