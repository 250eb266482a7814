"""
Transaction formatter.

Turns a tagged transfer request into the payload the custody RPC proxy
signs and broadcasts:

- EVM: ``eth_sendTransaction`` with ``{to, value, data, from}``, value as
  hex wei. Native ETH uses 18 decimals; known ERC-20 tokens use their own
  decimals and ``transfer(address,uint256)`` calldata.
- Solana: ``signAndSendTransaction`` with a base64 unsigned transaction
  built on a freshly fetched blockhash, fee payer set to the sender.
"""

import asyncio
import base64
from decimal import ROUND_DOWN, Decimal, InvalidOperation

from eth_abi import encode
from loguru import logger
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solders.hash import Hash
from solders.instruction import Instruction
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import (
    TransferCheckedParams,
    create_idempotent_associated_token_account,
    get_associated_token_address,
    transfer_checked,
)

from app.config.constants import BLOCKCHAIN_TIMEOUT, EVM_NATIVE_DECIMALS
from app.models.enums import ChainFamily
from app.services.chains.networks import NetworkInfo, get_network
from app.services.transactions.requests import (
    FormattedTransaction,
    PendingTransactionRequest,
    TransferRequest,
)
from app.utils.exceptions import (
    InvalidTransactionError,
    TransientNetworkError,
    UnsupportedChainError,
)
from app.utils.validation import is_evm_address, is_solana_address, normalize_evm_address


# keccak("transfer(address,uint256)")[:4]
ERC20_TRANSFER_SELECTOR = "a9059cbb"

EVM_RPC_METHOD = "eth_sendTransaction"
SOLANA_RPC_METHOD = "signAndSendTransaction"


def to_minor_units(amount: Decimal, decimals: int) -> int:
    """
    Convert a token amount to integer base units, rounding down.

    Args:
        amount: Amount in token units
        decimals: Token decimals

    Returns:
        Integer amount (wei, lamports, ...)

    Raises:
        InvalidTransactionError: Amount does not fit the decimal context

    Examples:
        >>> to_minor_units(Decimal("1.5"), 18)
        1500000000000000000
        >>> to_minor_units(Decimal("10"), 6)
        10000000
    """
    try:
        scaled = amount.scaleb(decimals).quantize(Decimal(1), rounding=ROUND_DOWN)
    except InvalidOperation as e:
        raise InvalidTransactionError("Amount is too large to send.") from e
    return int(scaled)


def encode_erc20_transfer(recipient: str, amount_units: int) -> str:
    """Build ``transfer(address,uint256)`` calldata as 0x-hex."""
    args = encode(["address", "uint256"], [normalize_evm_address(recipient), amount_units])
    return "0x" + ERC20_TRANSFER_SELECTOR + args.hex()


class TransactionFormatter:
    """
    Builds vendor payloads for EVM and Solana transfers.

    Holds the Solana RPC client used for blockhash lookups.
    """

    def __init__(self, solana_client: AsyncClient) -> None:
        """
        Initialize formatter.

        Args:
            solana_client: Async Solana RPC client
        """
        self.solana = solana_client

    def validate(self, request: TransferRequest) -> NetworkInfo:
        """
        Validate a request before any record is written or vendor is called.

        Args:
            request: Tagged transfer request

        Returns:
            Network of the request

        Raises:
            UnsupportedChainError: Unknown chain
            InvalidTransactionError: Bad amount, address, asset or tag mismatch
        """
        network = get_network(request.chain)
        if network is None:
            raise UnsupportedChainError(f"Unsupported chain: {request.chain}")
        if network.family != request.family:
            raise InvalidTransactionError(
                f"{type(request).__name__} cannot target {network.name}"
            )
        if request.amount <= 0:
            raise InvalidTransactionError("Amount must be greater than zero.")
        if (
            network.family == ChainFamily.SOLANA
            and not network.is_native(request.asset)
            and network.token(request.asset) is None
        ):
            raise InvalidTransactionError(
                f"{request.asset} is not supported on {network.name}."
            )

        if request.family == ChainFamily.EVM:
            if not is_evm_address(request.recipient):
                raise InvalidTransactionError("Recipient is not a valid EVM address.")
        elif not is_solana_address(request.recipient):
            raise InvalidTransactionError("Recipient is not a valid Solana address.")
        return network

    async def format_transaction(
        self, request: TransferRequest, wallet_address: str
    ) -> FormattedTransaction:
        """
        Build the custody RPC payload for one dispatch attempt.

        Solana payloads embed a blockhash fetched on every call, so calling
        this again after a blockhash expiry yields a fresh transaction.

        Args:
            request: Tagged transfer request
            wallet_address: Sending custodial wallet address

        Returns:
            FormattedTransaction

        Raises:
            InvalidTransactionError: Request fails validation
            TransientNetworkError: Blockhash lookup failed
        """
        network = self.validate(request)
        if request.family == ChainFamily.EVM:
            return self._format_evm(request, network, wallet_address)
        return await self._format_solana(request, network, wallet_address)

    def _format_evm(
        self, request: TransferRequest, network: NetworkInfo, wallet_address: str
    ) -> FormattedTransaction:
        token = network.token(request.asset)
        if token is None:
            if not network.is_native(request.asset):
                logger.warning(
                    f"Unknown asset {request.asset} on {network.chain}, "
                    f"sending as native value with {EVM_NATIVE_DECIMALS} decimals"
                )
            units = to_minor_units(request.amount, EVM_NATIVE_DECIMALS)
            to_address = normalize_evm_address(request.recipient)
            value = hex(units)
            data = "0x"
        else:
            units = to_minor_units(request.amount, token.decimals)
            to_address = normalize_evm_address(token.address)
            value = "0x0"
            data = encode_erc20_transfer(request.recipient, units)

        if units <= 0:
            raise InvalidTransactionError("Amount is too small to send.")

        transaction = {
            "to": to_address,
            "value": value,
            "data": data,
            "from": wallet_address,
        }
        pending = PendingTransactionRequest(
            from_address=wallet_address,
            to_address=to_address,
            amount_minor_units=units,
            asset_symbol=request.asset,
            chain=network.chain,
            vendor_method=EVM_RPC_METHOD,
        )
        rpc_body = {
            "method": EVM_RPC_METHOD,
            "caip2": network.caip2,
            "chain_type": "ethereum",
            "params": {"transaction": transaction},
        }
        return FormattedTransaction(pending=pending, rpc_body=rpc_body)

    async def _format_solana(
        self, request: TransferRequest, network: NetworkInfo, wallet_address: str
    ) -> FormattedTransaction:
        payer = Pubkey.from_string(wallet_address)
        recipient = Pubkey.from_string(request.recipient)
        instructions: list[Instruction]

        if network.is_native(request.asset):
            units = to_minor_units(request.amount, network.native_decimals)
            instructions = [
                transfer(TransferParams(from_pubkey=payer, to_pubkey=recipient, lamports=units))
            ]
        else:
            token = network.token(request.asset)
            mint = Pubkey.from_string(token.address)
            units = to_minor_units(request.amount, token.decimals)
            source = get_associated_token_address(payer, mint)
            destination = get_associated_token_address(recipient, mint)
            instructions = [
                create_idempotent_associated_token_account(payer, recipient, mint),
                transfer_checked(
                    TransferCheckedParams(
                        program_id=TOKEN_PROGRAM_ID,
                        source=source,
                        mint=mint,
                        dest=destination,
                        owner=payer,
                        amount=units,
                        decimals=token.decimals,
                    )
                ),
            ]

        if units <= 0:
            raise InvalidTransactionError("Amount is too small to send.")

        blockhash = await self.latest_blockhash()
        message = Message.new_with_blockhash(instructions, payer, blockhash)
        unsigned = Transaction.new_unsigned(message)
        serialized = base64.b64encode(bytes(unsigned)).decode()

        pending = PendingTransactionRequest(
            from_address=wallet_address,
            to_address=request.recipient,
            amount_minor_units=units,
            asset_symbol=request.asset,
            chain=network.chain,
            vendor_method=SOLANA_RPC_METHOD,
        )
        rpc_body = {
            "method": SOLANA_RPC_METHOD,
            "caip2": network.caip2,
            "params": {"transaction": serialized, "encoding": "base64"},
        }
        return FormattedTransaction(pending=pending, rpc_body=rpc_body)

    async def latest_blockhash(self) -> Hash:
        """
        Fetch the latest Solana blockhash.

        Raises:
            TransientNetworkError: RPC unavailable or timed out
        """
        try:
            response = await asyncio.wait_for(
                self.solana.get_latest_blockhash(), timeout=BLOCKCHAIN_TIMEOUT
            )
        except TimeoutError as e:
            raise TransientNetworkError("Solana RPC timed out", vendor="rpc") from e
        except SolanaRpcException as e:
            logger.warning(f"Solana blockhash lookup failed: {e}")
            raise TransientNetworkError(
                f"Solana RPC error: {e}", vendor="rpc"
            ) from e
        return response.value.blockhash
