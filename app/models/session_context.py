"""
Session context model.

Conversational state for multi-turn slot-filling, one row per user.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.types import JSONType


class SessionContext(Base):
    """
    Per-user conversation state.

    Attributes:
        user_id: Owning user (primary key)
        pending_intent: Intent waiting for more parameters, if any
        awaiting_param: Parameter the bot last asked for
        collected_params: Parameters gathered so far
        history: Recent chat turns passed to the intent parser
        last_active: Last update time
    """

    __tablename__ = "session_contexts"

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    pending_intent: Mapped[str | None] = mapped_column(String(64), nullable=True)
    awaiting_param: Mapped[str | None] = mapped_column(String(64), nullable=True)
    collected_params: Mapped[dict[str, Any]] = mapped_column(
        JSONType, nullable=False, default=dict
    )
    history: Mapped[list[dict[str, str]]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    last_active: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<SessionContext(user_id={self.user_id}, "
            f"pending_intent={self.pending_intent}, "
            f"params={sorted(self.collected_params or {})})>"
        )
