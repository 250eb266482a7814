"""
Off-ramp order model.

Mirrors a Paycrest sender order created for a user's crypto-to-bank withdrawal.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import OfframpOrderStatus
from app.models.types import FiatAmountType, TokenAmountType


class OfframpOrder(Base):
    """Off-ramp order - token transfer to a Paycrest receive address for bank payout."""

    __tablename__ = "offramp_orders"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Vendor order identification
    order_id: Mapped[str] = mapped_column(
        String(128), nullable=False, unique=True, index=True
    )
    reference: Mapped[str] = mapped_column(String(64), nullable=False)

    # Amounts
    amount: Mapped[Decimal] = mapped_column(TokenAmountType, nullable=False)
    token: Mapped[str] = mapped_column(String(16), nullable=False)
    network: Mapped[str] = mapped_column(String(32), nullable=False)
    fiat_currency: Mapped[str] = mapped_column(String(8), nullable=False)
    rate: Mapped[Decimal] = mapped_column(FiatAmountType, nullable=False)
    expected_amount: Mapped[Decimal | None] = mapped_column(FiatAmountType, nullable=True)
    receive_address: Mapped[str] = mapped_column(String(64), nullable=False)

    # Recipient bank account
    institution: Mapped[str] = mapped_column(String(64), nullable=False)
    account_identifier: Mapped[str] = mapped_column(String(64), nullable=False)
    account_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Status: local lifecycle plus raw vendor status string
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=OfframpOrderStatus.CREATED.value
    )
    vendor_status: Mapped[str | None] = mapped_column(String(64), nullable=True)
    tx_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
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

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<OfframpOrder(order_id={self.order_id}, amount={self.amount} "
            f"{self.token}, status={self.status})>"
        )
