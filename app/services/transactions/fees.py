"""
Network fee estimation.

EVM: current gas price times a fixed gas limit (native or ERC-20 transfer).
Solana: ``getFeeForMessage`` on a dummy transfer, 5000 lamports if the
cluster cannot price it.
"""

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum

from loguru import logger
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from web3 import AsyncWeb3
from web3.exceptions import Web3Exception

from app.config.constants import (
    BLOCKCHAIN_TIMEOUT,
    EVM_NATIVE_TRANSFER_GAS,
    EVM_TOKEN_TRANSFER_GAS,
    SOLANA_DEFAULT_SIGNATURE_FEE,
)
from app.models.enums import ChainFamily
from app.services.chains.networks import get_network
from app.utils.exceptions import UnsupportedChainError
from app.utils.formatters import format_amount


# Shown when the RPC cannot be reached
FALLBACK_FEE = Decimal("0.001")


class FeeKind(StrEnum):
    """Transfer kind being priced."""

    NATIVE = "native"
    TOKEN = "token"


@dataclass(frozen=True)
class FeeEstimate:
    """Estimated network fee in the chain's native asset."""

    chain: str
    amount: Decimal
    symbol: str
    is_fallback: bool = False

    def __str__(self) -> str:
        return f"~{format_amount(self.amount, max_decimals=8)} {self.symbol}"


class FeeEstimator:
    """Prices transfers using live RPC data."""

    def __init__(
        self, evm_clients: dict[str, AsyncWeb3], solana_client: AsyncClient
    ) -> None:
        """
        Initialize estimator.

        Args:
            evm_clients: AsyncWeb3 per internal chain label
            solana_client: Solana RPC client
        """
        self.evm_clients = evm_clients
        self.solana = solana_client

    async def estimate(self, chain: str, kind: FeeKind = FeeKind.NATIVE) -> FeeEstimate:
        """
        Estimate the fee of one transfer.

        Args:
            chain: Chain label
            kind: Native or token transfer

        Returns:
            FeeEstimate; the conservative fallback when the RPC fails

        Raises:
            UnsupportedChainError: Unknown chain label
        """
        network = get_network(chain)
        if network is None:
            raise UnsupportedChainError(f"Unsupported chain: {chain}")

        try:
            if network.family == ChainFamily.EVM:
                amount = await self._estimate_evm(network.chain, kind)
            else:
                amount = await self._estimate_solana()
        except (Web3Exception, SolanaRpcException, OSError, TimeoutError) as e:
            logger.warning(f"Fee estimation failed for {network.chain}: {e}")
            return FeeEstimate(
                chain=network.chain,
                amount=FALLBACK_FEE,
                symbol=network.native_symbol,
                is_fallback=True,
            )
        return FeeEstimate(chain=network.chain, amount=amount, symbol=network.native_symbol)

    async def _estimate_evm(self, chain: str, kind: FeeKind) -> Decimal:
        w3 = self.evm_clients[chain]
        gas_price = await asyncio.wait_for(w3.eth.gas_price, timeout=BLOCKCHAIN_TIMEOUT)
        gas_limit = EVM_TOKEN_TRANSFER_GAS if kind == FeeKind.TOKEN else EVM_NATIVE_TRANSFER_GAS
        return Decimal(gas_price * gas_limit) / Decimal(10**18)

    async def _estimate_solana(self) -> Decimal:
        blockhash = (
            await asyncio.wait_for(self.solana.get_latest_blockhash(), timeout=BLOCKCHAIN_TIMEOUT)
        ).value.blockhash
        payer = Pubkey.new_unique()
        ix = transfer(TransferParams(from_pubkey=payer, to_pubkey=Pubkey.new_unique(), lamports=1))
        message = Message.new_with_blockhash([ix], payer, blockhash)
        response = await asyncio.wait_for(
            self.solana.get_fee_for_message(message), timeout=BLOCKCHAIN_TIMEOUT
        )
        lamports = response.value if response.value is not None else SOLANA_DEFAULT_SIGNATURE_FEE
        return Decimal(lamports) / Decimal(10**9)
