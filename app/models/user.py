"""
User model.

Represents a Telegram user known to the bot.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base


if TYPE_CHECKING:
    from app.models.wallet import Wallet


class User(Base):
    """User model - Telegram users of the wallet assistant."""

    __tablename__ = "users"

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # Telegram data
    telegram_id: Mapped[int] = mapped_column(
        BigInteger, unique=True, index=True, nullable=False
    )
    chat_id: Mapped[int | None] = mapped_column(
        BigInteger, nullable=True
    )
    username: Mapped[str | None] = mapped_column(
        String(255), nullable=True, index=True
    )
    first_name: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )

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

    wallets: Mapped[list["Wallet"]] = relationship(
        "Wallet", back_populates="user", lazy="selectin"
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<User(id={self.id}, telegram_id={self.telegram_id})>"

    @property
    def notify_chat_id(self) -> int:
        """Chat to deliver notifications to (private chat id equals user id)."""
        return self.chat_id or self.telegram_id

    @property
    def display_name(self) -> str:
        """Name used in greetings."""
        return self.first_name or self.username or "there"
