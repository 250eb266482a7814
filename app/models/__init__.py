"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from app.models.base import Base
from app.models.billing_document import BillingDocument
from app.models.enums import (
    ChainFamily,
    DocumentKind,
    DocumentStatus,
    OfframpOrderStatus,
    TransactionAction,
    TransactionStatus,
)
from app.models.offramp_order import OfframpOrder
from app.models.session_context import SessionContext
from app.models.transaction import TransactionRecord
from app.models.user import User
from app.models.wallet import Wallet


__all__ = [
    "Base",
    "BillingDocument",
    "ChainFamily",
    "DocumentKind",
    "DocumentStatus",
    "OfframpOrder",
    "OfframpOrderStatus",
    "SessionContext",
    "TransactionAction",
    "TransactionRecord",
    "TransactionStatus",
    "User",
    "Wallet",
]
