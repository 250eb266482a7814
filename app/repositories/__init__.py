"""Data access repositories."""

from app.repositories.billing_document_repository import BillingDocumentRepository
from app.repositories.offramp_order_repository import OfframpOrderRepository
from app.repositories.session_repository import SessionRepository
from app.repositories.transaction_repository import TransactionRepository
from app.repositories.user_repository import UserRepository
from app.repositories.wallet_repository import WalletRepository


__all__ = [
    "BillingDocumentRepository",
    "OfframpOrderRepository",
    "SessionRepository",
    "TransactionRepository",
    "UserRepository",
    "WalletRepository",
]
