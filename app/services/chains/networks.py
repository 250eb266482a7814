"""
Network/chain mapper.

Pure lookups from internal chain labels ("base", "ethereum", "solana") to
vendor network identifiers, CAIP-2 ids, explorers and token metadata.
Unknown chains map to an empty value instead of raising.
"""

from dataclasses import dataclass, field

from app.config.settings import settings
from app.models.enums import ChainFamily


@dataclass(frozen=True)
class TokenInfo:
    """Token deployed on a network."""

    symbol: str
    address: str  # ERC-20 contract or SPL mint
    decimals: int


@dataclass(frozen=True)
class NetworkInfo:
    """Static description of one chain in one network mode."""

    chain: str
    family: ChainFamily
    vendor_network: str
    caip2: str
    name: str
    native_symbol: str
    native_decimals: int
    explorer_tx_template: str
    chain_id: int | None = None
    tokens: dict[str, TokenInfo] = field(default_factory=dict)

    def token(self, symbol: str) -> TokenInfo | None:
        """Get token metadata by symbol (case-insensitive)."""
        return self.tokens.get(symbol.upper())

    def is_native(self, symbol: str) -> bool:
        """Check if symbol is the chain's native asset."""
        return symbol.upper() == self.native_symbol


_TESTNET: dict[str, NetworkInfo] = {
    "base": NetworkInfo(
        chain="base",
        family=ChainFamily.EVM,
        vendor_network="base-sepolia",
        caip2="eip155:84532",
        name="Base Sepolia",
        native_symbol="ETH",
        native_decimals=18,
        explorer_tx_template="https://sepolia.basescan.org/tx/{hash}",
        chain_id=84532,
        tokens={
            "USDC": TokenInfo("USDC", "0x036CbD53842c5426634e7929541eC2318f3dCF7e", 6),
        },
    ),
    "ethereum": NetworkInfo(
        chain="ethereum",
        family=ChainFamily.EVM,
        vendor_network="ethereum-sepolia",
        caip2="eip155:11155111",
        name="Ethereum Sepolia",
        native_symbol="ETH",
        native_decimals=18,
        explorer_tx_template="https://sepolia.etherscan.io/tx/{hash}",
        chain_id=11155111,
        tokens={
            "USDC": TokenInfo("USDC", "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238", 6),
        },
    ),
    "solana": NetworkInfo(
        chain="solana",
        family=ChainFamily.SOLANA,
        vendor_network="solana-devnet",
        caip2="solana:EtWTRABZaYq6iMfeYKouRu166VU2xqa1",
        name="Solana Devnet",
        native_symbol="SOL",
        native_decimals=9,
        explorer_tx_template="https://explorer.solana.com/tx/{hash}?cluster=devnet",
        tokens={
            "USDC": TokenInfo("USDC", "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU", 6),
        },
    ),
}

_MAINNET: dict[str, NetworkInfo] = {
    "base": NetworkInfo(
        chain="base",
        family=ChainFamily.EVM,
        vendor_network="base-mainnet",
        caip2="eip155:8453",
        name="Base",
        native_symbol="ETH",
        native_decimals=18,
        explorer_tx_template="https://basescan.org/tx/{hash}",
        chain_id=8453,
        tokens={
            "USDC": TokenInfo("USDC", "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913", 6),
            "USDT": TokenInfo("USDT", "0xfde4C96c8593536E31F229EA8f37b2ADa2699bb2", 6),
        },
    ),
    "ethereum": NetworkInfo(
        chain="ethereum",
        family=ChainFamily.EVM,
        vendor_network="ethereum-mainnet",
        caip2="eip155:1",
        name="Ethereum",
        native_symbol="ETH",
        native_decimals=18,
        explorer_tx_template="https://etherscan.io/tx/{hash}",
        chain_id=1,
        tokens={
            "USDC": TokenInfo("USDC", "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", 6),
            "USDT": TokenInfo("USDT", "0xdAC17F958D2ee523a2206206994597C13D831ec7", 6),
        },
    ),
    "solana": NetworkInfo(
        chain="solana",
        family=ChainFamily.SOLANA,
        vendor_network="solana-mainnet",
        caip2="solana:5eykt4UsFv8P8NJdTREpY1vzqKqZKvdp",
        name="Solana",
        native_symbol="SOL",
        native_decimals=9,
        explorer_tx_template="https://explorer.solana.com/tx/{hash}",
        tokens={
            "USDC": TokenInfo("USDC", "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v", 6),
            "USDT": TokenInfo("USDT", "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB", 6),
        },
    ),
}

# Free-form labels users and the LLM produce
_ALIASES = {
    "base": "base",
    "base-sepolia": "base",
    "base-mainnet": "base",
    "evm": "base",
    "ethereum": "ethereum",
    "eth": "ethereum",
    "ethereum-sepolia": "ethereum",
    "ethereum-mainnet": "ethereum",
    "sepolia": "ethereum",
    "solana": "solana",
    "sol": "solana",
    "solana-devnet": "solana",
    "solana-mainnet": "solana",
}

# Vendor network ids seen in webhooks -> display names
_DISPLAY_NAMES = {
    "base-mainnet": "Base",
    "base-sepolia": "Base Sepolia",
    "ethereum-mainnet": "Ethereum",
    "ethereum-sepolia": "Ethereum Sepolia",
    "polygon-mainnet": "Polygon",
    "optimism-mainnet": "Optimism",
    "optimism-sepolia": "Optimism Sepolia",
    "solana-devnet": "Solana Devnet",
    "solana-mainnet": "Solana",
}

# Default chain per wallet family
DEFAULT_CHAIN = {
    ChainFamily.EVM: "base",
    ChainFamily.SOLANA: "solana",
}


def _table(testnet: bool | None) -> dict[str, NetworkInfo]:
    use_testnet = settings.is_testnet if testnet is None else testnet
    return _TESTNET if use_testnet else _MAINNET


def resolve_chain(label: str | None) -> str:
    """
    Normalize a free-form chain label.

    Args:
        label: e.g. "Base", "SOL", "ethereum-sepolia"

    Returns:
        Internal chain label or "" when unknown
    """
    if not label:
        return ""
    return _ALIASES.get(str(label).strip().lower().replace(" ", "-"), "")


def get_network(chain: str | None, testnet: bool | None = None) -> NetworkInfo | None:
    """
    Get network description for a chain label.

    Args:
        chain: Chain label (aliases accepted)
        testnet: Override configured network mode

    Returns:
        NetworkInfo or None for unknown chains
    """
    return _table(testnet).get(resolve_chain(chain))


def to_vendor_network(chain: str | None, testnet: bool | None = None) -> str:
    """
    Map chain label to the custody vendor's network id.

    Returns:
        e.g. "base-sepolia"; "" for unknown chains
    """
    network = get_network(chain, testnet)
    return network.vendor_network if network else ""


def to_caip2(chain: str | None, testnet: bool | None = None) -> str:
    """Map chain label to CAIP-2 id; "" for unknown chains."""
    network = get_network(chain, testnet)
    return network.caip2 if network else ""


def explorer_url(chain: str | None, tx_hash: str | None, testnet: bool | None = None) -> str:
    """
    Build block explorer URL for a transaction.

    Args:
        chain: Chain label or vendor network id
        tx_hash: Transaction hash or signature

    Returns:
        URL, or "" when chain is unknown or hash is empty
    """
    if not tx_hash:
        return ""
    network = get_network(chain, testnet)
    if network is None:
        return ""
    return network.explorer_tx_template.format(hash=tx_hash)


def chain_family(chain: str | None) -> ChainFamily | None:
    """Get wallet family for a chain label; None when unknown."""
    network = get_network(chain)
    return network.family if network else None


def display_name(network_id: str | None) -> str:
    """
    Human-readable name for a vendor network id or chain label.

    Unknown ids are passed through unchanged.
    """
    if not network_id:
        return "unknown"
    if network_id in _DISPLAY_NAMES:
        return _DISPLAY_NAMES[network_id]
    network = get_network(network_id)
    return network.name if network else network_id


def supported_chains() -> list[str]:
    """Internal labels of all supported chains."""
    return list(_table(None))
