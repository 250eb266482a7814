"""
Billing document model.

Invoices and proposals a user drafts in chat and receives as PDF.
"""

from datetime import UTC, date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import DocumentKind, DocumentStatus
from app.models.types import FiatAmountType


class BillingDocument(Base):
    """
    Invoice or proposal.

    Attributes:
        kind: invoice or proposal
        number: Human reference (INV-20260101-0042, PROP-20260101-0042)
        amount: Total in ``currency``
        due_date: Payment due date (invoices)
        scope: Deliverables (proposals)
        timeline: Delivery timeline (proposals)
        pay_to_address: Owner's EVM wallet shown as the payment address
    """

    __tablename__ = "billing_documents"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    kind: Mapped[str] = mapped_column(String(16), nullable=False)  # DocumentKind
    number: Mapped[str] = mapped_column(
        String(32), nullable=False, unique=True, index=True
    )
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=DocumentStatus.DRAFT.value
    )

    # Parties
    issuer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_email: Mapped[str] = mapped_column(String(255), nullable=False)

    # Work and price
    description: Mapped[str] = mapped_column(Text, nullable=False)
    scope: Mapped[str | None] = mapped_column(Text, nullable=True)
    timeline: Mapped[str | None] = mapped_column(String(255), nullable=True)
    amount: Mapped[Decimal] = mapped_column(FiatAmountType, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Payment
    pay_to_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    network: Mapped[str | None] = mapped_column(String(32), nullable=True)

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
            f"<BillingDocument(number={self.number}, kind={self.kind}, "
            f"amount={self.amount} {self.currency}, status={self.status})>"
        )

    @property
    def is_invoice(self) -> bool:
        """True for invoices."""
        return self.kind == DocumentKind.INVOICE.value
