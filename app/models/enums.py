"""
Enumerations shared by models and services.
"""

from enum import StrEnum


class ChainFamily(StrEnum):
    """Wallet chain family. One custodial wallet per family per user."""

    EVM = "evm"
    SOLANA = "solana"


class TransactionAction(StrEnum):
    """What a transaction record represents."""

    SEND = "send"
    SWAP = "swap"
    BRIDGE = "bridge"
    DEPOSIT = "deposit"


class TransactionStatus(StrEnum):
    """Lifecycle of a transaction record."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class OfframpOrderStatus(StrEnum):
    """Locally tracked off-ramp order status (vendor status is kept raw)."""

    CREATED = "created"
    AWAITING_TRANSFER = "awaiting_transfer"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    EXPIRED = "expired"


class DocumentKind(StrEnum):
    """Billing document type."""

    INVOICE = "invoice"
    PROPOSAL = "proposal"


class DocumentStatus(StrEnum):
    """Lifecycle of an invoice or proposal."""

    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    CANCELLED = "cancelled"
