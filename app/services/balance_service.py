"""
Balance service.

Reads wallet balances straight from chain RPCs: native and ERC-20 balances
through AsyncWeb3, SOL and SPL balances through the Solana RPC client.
"""

import asyncio
from dataclasses import dataclass, field
from decimal import Decimal

from eth_utils import to_checksum_address
from loguru import logger
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.core import RPCException
from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address
from web3 import AsyncWeb3
from web3.exceptions import Web3Exception

from app.config.constants import BLOCKCHAIN_TIMEOUT
from app.models.enums import ChainFamily
from app.models.wallet import Wallet
from app.services.chains.networks import NetworkInfo, get_network, supported_chains
from app.utils.security import mask_address


# balanceOf only
ERC20_BALANCE_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "type": "function",
    },
]


@dataclass
class NetworkBalances:
    """Balances of one address on one network."""

    chain: str
    network_name: str
    address: str
    balances: dict[str, Decimal] = field(default_factory=dict)
    error: str | None = None


class BalanceService:
    """On-chain balance reader."""

    def __init__(
        self, evm_clients: dict[str, AsyncWeb3], solana_client: AsyncClient
    ) -> None:
        """
        Initialize balance service.

        Args:
            evm_clients: AsyncWeb3 per internal chain label
            solana_client: Solana RPC client
        """
        self.evm_clients = evm_clients
        self.solana = solana_client

    async def get_wallet_balances(
        self, wallet: Wallet, chain: str | None = None
    ) -> list[NetworkBalances]:
        """
        Get balances of a wallet on every chain of its family.

        Args:
            wallet: Wallet row
            chain: Restrict to one chain label

        Returns:
            One NetworkBalances per chain; RPC failures are reported in ``error``
        """
        networks = [
            network
            for label in supported_chains()
            if (network := get_network(label)) is not None
            and network.family == wallet.family
            and (chain is None or network.chain == chain)
        ]
        return list(
            await asyncio.gather(
                *(self.get_network_balances(network, wallet.address) for network in networks)
            )
        )

    async def get_network_balances(
        self, network: NetworkInfo, address: str
    ) -> NetworkBalances:
        """
        Get native and known-token balances of an address on one network.

        Args:
            network: Network description
            address: Wallet address

        Returns:
            NetworkBalances
        """
        result = NetworkBalances(
            chain=network.chain, network_name=network.name, address=address
        )
        try:
            if network.family == ChainFamily.EVM:
                result.balances = await self._evm_balances(network, address)
            else:
                result.balances = await self._solana_balances(network, address)
        except (Web3Exception, SolanaRpcException, OSError, TimeoutError) as e:
            logger.warning(
                f"Balance lookup failed for {mask_address(address)} on {network.chain}: {e}"
            )
            result.error = "unavailable"
        return result

    async def get_balance(self, chain: str, address: str, symbol: str) -> Decimal:
        """
        Get balance of a single asset.

        Args:
            chain: Chain label
            address: Wallet address
            symbol: Native or known token symbol

        Returns:
            Balance in token units (0 for unknown tokens)
        """
        network = get_network(chain)
        if network is None:
            return Decimal(0)
        if network.family == ChainFamily.EVM:
            return await self._evm_asset_balance(network, address, symbol)
        return await self._solana_asset_balance(network, address, symbol)

    async def _evm_balances(self, network: NetworkInfo, address: str) -> dict[str, Decimal]:
        balances = {
            network.native_symbol: await self._evm_asset_balance(
                network, address, network.native_symbol
            )
        }
        for symbol in network.tokens:
            balances[symbol] = await self._evm_asset_balance(network, address, symbol)
        return balances

    async def _evm_asset_balance(
        self, network: NetworkInfo, address: str, symbol: str
    ) -> Decimal:
        w3 = self.evm_clients[network.chain]
        owner = to_checksum_address(address)
        if network.is_native(symbol):
            wei = await asyncio.wait_for(w3.eth.get_balance(owner), timeout=BLOCKCHAIN_TIMEOUT)
            return Decimal(wei) / Decimal(10**network.native_decimals)

        token = network.token(symbol)
        if token is None:
            return Decimal(0)
        contract = w3.eth.contract(
            address=to_checksum_address(token.address), abi=ERC20_BALANCE_ABI
        )
        raw = await asyncio.wait_for(
            contract.functions.balanceOf(owner).call(), timeout=BLOCKCHAIN_TIMEOUT
        )
        return Decimal(raw) / Decimal(10**token.decimals)

    async def _solana_balances(self, network: NetworkInfo, address: str) -> dict[str, Decimal]:
        balances = {
            network.native_symbol: await self._solana_asset_balance(
                network, address, network.native_symbol
            )
        }
        for symbol in network.tokens:
            balances[symbol] = await self._solana_asset_balance(network, address, symbol)
        return balances

    async def _solana_asset_balance(
        self, network: NetworkInfo, address: str, symbol: str
    ) -> Decimal:
        owner = Pubkey.from_string(address)
        if network.is_native(symbol):
            response = await asyncio.wait_for(
                self.solana.get_balance(owner), timeout=BLOCKCHAIN_TIMEOUT
            )
            return Decimal(response.value) / Decimal(10**network.native_decimals)

        token = network.token(symbol)
        if token is None:
            return Decimal(0)
        ata = get_associated_token_address(owner, Pubkey.from_string(token.address))
        try:
            response = await asyncio.wait_for(
                self.solana.get_token_account_balance(ata), timeout=BLOCKCHAIN_TIMEOUT
            )
        except RPCException:
            # No associated token account yet
            return Decimal(0)
        return Decimal(response.value.amount) / Decimal(10**token.decimals)
