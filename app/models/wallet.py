"""
Wallet model.

A custodial wallet held by the custody vendor on behalf of one user.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base
from app.models.enums import ChainFamily


if TYPE_CHECKING:
    from app.models.user import User


class Wallet(Base):
    """
    Custodial wallet.

    At most one wallet exists per (user_id, chain); the unique constraint
    is what makes concurrent creation safe. Rows are never updated after
    insert: there is no key rotation.

    Attributes:
        id: Primary key
        user_id: Owning user
        chain: Chain family (evm/solana)
        address: On-chain address
        vendor_wallet_id: Custody vendor's wallet identifier
        created_at: Creation timestamp
    """

    __tablename__ = "wallets"
    __table_args__ = (
        UniqueConstraint("user_id", "chain", name="uq_wallets_user_chain"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    chain: Mapped[str] = mapped_column(
        String(16), nullable=False
    )  # ChainFamily value
    address: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True
    )
    vendor_wallet_id: Mapped[str] = mapped_column(
        String(128), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    user: Mapped["User"] = relationship("User", back_populates="wallets")

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Wallet(id={self.id}, user_id={self.user_id}, "
            f"chain={self.chain}, address={self.address[:10]}...)>"
        )

    @property
    def family(self) -> ChainFamily:
        """Chain family as enum."""
        return ChainFamily(self.chain)
