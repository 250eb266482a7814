"""
Transaction record model.

Tracks outbound sends/swaps dispatched through the custody vendor and
inbound deposits reported by the custody webhook.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import TransactionStatus
from app.models.types import JSONType, TokenAmountType


class TransactionRecord(Base):
    """
    Transaction record.

    Outbound records are created in ``pending`` state before the first
    broadcast attempt with ``tx_hash`` unset. The hash is written once,
    by the dispatcher, and never overwritten afterwards. Deposit records
    are upserted by ``tx_hash``.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_status_created", "status", "created_at"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    wallet_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("wallets.id", ondelete="SET NULL"), nullable=True
    )

    # Chain info
    chain: Mapped[str] = mapped_column(String(32), nullable=False)  # base/ethereum/solana
    network: Mapped[str | None] = mapped_column(String(64), nullable=True)  # vendor network id

    # Transaction identification (EVM hash or Solana signature)
    tx_hash: Mapped[str | None] = mapped_column(
        String(128), nullable=True, unique=True, index=True
    )

    action: Mapped[str] = mapped_column(String(16), nullable=False)  # TransactionAction
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=TransactionStatus.PENDING.value
    )  # TransactionStatus

    # Transfer details
    from_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    to_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(TokenAmountType, nullable=True)
    asset: Mapped[str | None] = mapped_column(String(16), nullable=True)
    extra: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSONType, nullable=False, default=dict
    )

    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        """String representation."""
        tx = f"{self.tx_hash[:16]}..." if self.tx_hash else None
        return (
            f"<TransactionRecord(id={self.id}, action={self.action}, "
            f"chain={self.chain}, status={self.status}, tx_hash={tx})>"
        )

    @property
    def is_final(self) -> bool:
        """Check if record reached a terminal status."""
        return self.status in (
            TransactionStatus.CONFIRMED.value,
            TransactionStatus.FAILED.value,
        )
