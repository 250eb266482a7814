"""
Transfer request types.

The chain family is an explicit tag chosen by the caller when the request
is built; nothing downstream infers it from which fields are present.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar

from app.models.enums import ChainFamily
from app.services.chains.networks import get_network
from app.utils.exceptions import UnsupportedChainError


@dataclass(frozen=True)
class TransferRequest:
    """
    User-level transfer intent in human units.

    Attributes:
        chain: Internal chain label ("base", "ethereum", "solana")
        recipient: Destination address
        amount: Amount in token units (e.g. 10.5 USDC)
        asset: Token symbol
    """

    family: ClassVar[ChainFamily]

    chain: str
    recipient: str
    amount: Decimal
    asset: str


@dataclass(frozen=True)
class EvmTransferRequest(TransferRequest):
    """Transfer on an EVM chain."""

    family: ClassVar[ChainFamily] = ChainFamily.EVM


@dataclass(frozen=True)
class SolanaTransferRequest(TransferRequest):
    """Transfer on Solana."""

    family: ClassVar[ChainFamily] = ChainFamily.SOLANA


@dataclass(frozen=True)
class PendingTransactionRequest:
    """
    Wire-level transfer built for one dispatch attempt. Never persisted.

    Attributes:
        from_address: Sending wallet
        to_address: Transaction ``to`` (recipient, or token contract for ERC-20)
        amount_minor_units: Amount in wei / lamports / token base units
        asset_symbol: Token symbol
        chain: Internal chain label
        vendor_method: Custody RPC method
    """

    from_address: str
    to_address: str
    amount_minor_units: int
    asset_symbol: str
    chain: str
    vendor_method: str


@dataclass(frozen=True)
class FormattedTransaction:
    """Pending request plus the custody RPC body that carries it."""

    pending: PendingTransactionRequest
    rpc_body: dict


_REQUEST_TYPES: dict[ChainFamily, type[TransferRequest]] = {
    ChainFamily.EVM: EvmTransferRequest,
    ChainFamily.SOLANA: SolanaTransferRequest,
}


def build_transfer_request(
    chain: str, recipient: str, amount: Decimal, asset: str
) -> TransferRequest:
    """
    Build the tagged request for a chain label.

    Args:
        chain: Chain label (aliases accepted)
        recipient: Destination address
        amount: Amount in token units
        asset: Token symbol

    Returns:
        EvmTransferRequest or SolanaTransferRequest

    Raises:
        UnsupportedChainError: Unknown chain label
    """
    network = get_network(chain)
    if network is None:
        raise UnsupportedChainError(f"Unsupported chain: {chain}")
    request_type = _REQUEST_TYPES[network.family]
    return request_type(
        chain=network.chain,
        recipient=recipient.strip(),
        amount=amount,
        asset=asset.upper(),
    )
