"""
Transaction repository.

Data access layer for TransactionRecord model.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import TransactionAction, TransactionStatus
from app.models.transaction import TransactionRecord
from app.repositories.base import BaseRepository


class TransactionRepository(BaseRepository[TransactionRecord]):
    """Transaction record repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize transaction repository."""
        super().__init__(TransactionRecord, session)

    async def create_pending(
        self,
        user_id: int,
        wallet_id: int | None,
        chain: str,
        network: str | None,
        action: TransactionAction,
        from_address: str | None,
        to_address: str | None,
        amount: Decimal | None,
        asset: str | None,
        extra: dict[str, Any] | None = None,
    ) -> TransactionRecord:
        """
        Create a pending record before broadcast (hash unknown yet).

        Returns:
            Created record
        """
        return await self.create(
            user_id=user_id,
            wallet_id=wallet_id,
            chain=chain,
            network=network,
            action=action.value,
            status=TransactionStatus.PENDING.value,
            from_address=from_address,
            to_address=to_address,
            amount=amount,
            asset=asset,
            extra=extra or {},
        )

    async def set_hash_once(self, record_id: int, tx_hash: str) -> bool:
        """
        Attach a transaction hash to a record that has none.

        A hash that is already set is never overwritten.

        Args:
            record_id: Record ID
            tx_hash: Transaction hash or Solana signature

        Returns:
            True if the hash was written, False if one was already present
        """
        stmt = (
            update(TransactionRecord)
            .where(
                TransactionRecord.id == record_id,
                TransactionRecord.tx_hash.is_(None),
            )
            .values(tx_hash=tx_hash)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount > 0

    async def mark_status(
        self,
        record_id: int,
        status: TransactionStatus,
        error: str | None = None,
        attempts: int | None = None,
    ) -> TransactionRecord | None:
        """
        Move a record to a new status.

        Args:
            record_id: Record ID
            status: New status
            error: Failure description (for FAILED)
            attempts: Number of broadcast attempts made

        Returns:
            Updated record or None if not found
        """
        data: dict[str, Any] = {"status": status.value}
        if error is not None:
            data["error"] = error[:2000]
        if attempts is not None:
            data["attempts"] = attempts
        if status == TransactionStatus.CONFIRMED:
            data["confirmed_at"] = datetime.now(UTC)
        return await self.update(record_id, **data)

    async def get_by_hash(self, tx_hash: str) -> TransactionRecord | None:
        """Get record by transaction hash."""
        return await self.get_by(tx_hash=tx_hash)

    async def upsert_deposit(
        self,
        tx_hash: str,
        user_id: int,
        wallet_id: int,
        chain: str,
        network: str | None,
        from_address: str | None,
        to_address: str,
        amount: Decimal | None,
        asset: str | None,
        status: TransactionStatus,
    ) -> tuple[TransactionRecord, bool]:
        """
        Insert or update a deposit keyed by transaction hash.

        Args:
            tx_hash: Transaction hash (conflict key)
            user_id: Receiving user
            wallet_id: Receiving wallet
            chain: Internal chain label
            network: Vendor network id
            from_address: Sender
            to_address: Receiving wallet address
            amount: Amount in token units
            asset: Token symbol
            status: Status reported by the custody webhook

        Returns:
            Tuple of (record, newly_confirmed). ``newly_confirmed`` is True only
            the first time this hash reaches CONFIRMED, so replays never
            trigger a second notification.
        """
        now = datetime.now(UTC)
        stmt = (
            insert(TransactionRecord)
            .values(
                tx_hash=tx_hash,
                user_id=user_id,
                wallet_id=wallet_id,
                chain=chain,
                network=network,
                action=TransactionAction.DEPOSIT.value,
                status=status.value,
                from_address=from_address,
                to_address=to_address,
                amount=amount,
                asset=asset,
                extra={},
                attempts=0,
                created_at=now,
                updated_at=now,
                confirmed_at=now if status == TransactionStatus.CONFIRMED else None,
            )
            .on_conflict_do_nothing(index_elements=[TransactionRecord.tx_hash])
            .returning(TransactionRecord.id)
        )
        inserted_id = (await self.session.execute(stmt)).scalar_one_or_none()

        record = (
            await self.session.execute(
                select(TransactionRecord)
                .where(TransactionRecord.tx_hash == tx_hash)
                .with_for_update()
            )
        ).scalar_one()

        if inserted_id is not None:
            return record, status == TransactionStatus.CONFIRMED

        newly_confirmed = (
            status == TransactionStatus.CONFIRMED
            and record.status != TransactionStatus.CONFIRMED.value
        )
        if newly_confirmed:
            record.status = TransactionStatus.CONFIRMED.value
            record.confirmed_at = now
            await self.session.flush()
        return record, newly_confirmed

    async def list_pending_with_hash(
        self, created_before: datetime, limit: int
    ) -> list[TransactionRecord]:
        """
        Get pending outbound records that were broadcast but not finalized.

        Args:
            created_before: Only records created before this instant
            limit: Max rows

        Returns:
            Oldest first
        """
        stmt = (
            select(TransactionRecord)
            .where(
                TransactionRecord.status == TransactionStatus.PENDING.value,
                TransactionRecord.tx_hash.is_not(None),
                TransactionRecord.created_at < created_before,
            )
            .order_by(TransactionRecord.created_at)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_pending_older_than(
        self, cutoff: datetime, limit: int
    ) -> list[TransactionRecord]:
        """Get pending records (with or without hash) created before cutoff."""
        stmt = (
            select(TransactionRecord)
            .where(
                TransactionRecord.status == TransactionStatus.PENDING.value,
                TransactionRecord.created_at < cutoff,
            )
            .order_by(TransactionRecord.created_at)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_recent_for_user(
        self, user_id: int, limit: int = 10
    ) -> list[TransactionRecord]:
        """Get latest records of a user, newest first."""
        return await self.find_by(
            limit=limit,
            order_by=TransactionRecord.created_at.desc(),
            user_id=user_id,
        )
