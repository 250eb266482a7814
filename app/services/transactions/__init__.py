"""Outbound transaction pipeline: request types, formatting, dispatch, normalization."""

from app.services.transactions.dispatcher import (
    DispatchResult,
    DispatchState,
    TransactionDispatcher,
)
from app.services.transactions.fees import FeeEstimate, FeeEstimator, FeeKind
from app.services.transactions.formatter import TransactionFormatter
from app.services.transactions.normalizer import NormalizedTransaction, normalize
from app.services.transactions.requests import (
    EvmTransferRequest,
    FormattedTransaction,
    PendingTransactionRequest,
    SolanaTransferRequest,
    TransferRequest,
    build_transfer_request,
)


__all__ = [
    "DispatchResult",
    "DispatchState",
    "EvmTransferRequest",
    "FeeEstimate",
    "FeeEstimator",
    "FeeKind",
    "FormattedTransaction",
    "NormalizedTransaction",
    "PendingTransactionRequest",
    "SolanaTransferRequest",
    "TransactionDispatcher",
    "TransactionFormatter",
    "TransferRequest",
    "build_transfer_request",
    "normalize",
]
