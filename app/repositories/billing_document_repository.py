"""
Billing document repository.

Data access layer for BillingDocument model.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.billing_document import BillingDocument
from app.repositories.base import BaseRepository


class BillingDocumentRepository(BaseRepository[BillingDocument]):
    """Invoice and proposal repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize billing document repository."""
        super().__init__(BillingDocument, session)

    async def get_by_number(
        self, number: str, for_update: bool = False
    ) -> BillingDocument | None:
        """Get document by its human reference."""
        return await self.get_by(for_update=for_update, number=number)

    async def get_for_user(
        self, user_id: int, number: str, for_update: bool = False
    ) -> BillingDocument | None:
        """Get a document only if it belongs to the user."""
        return await self.get_by(for_update=for_update, user_id=user_id, number=number)

    async def list_for_user(
        self, user_id: int, kind: str | None = None, limit: int = 10
    ) -> list[BillingDocument]:
        """Get latest documents of a user, newest first."""
        filters = {"user_id": user_id}
        if kind:
            filters["kind"] = kind
        return await self.find_by(
            limit=limit,
            order_by=BillingDocument.created_at.desc(),
            **filters,
        )
