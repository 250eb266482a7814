"""
Vendor response normalizer.

Custody and swap vendors report the broadcast hash under different keys.
Lookup order is fixed; an unrecognized shape yields an empty hash.
"""

from dataclasses import dataclass
from typing import Any

from app.services.chains.networks import explorer_url


# Checked in order inside the response's ``data`` object
HASH_KEYS = (
    "hash",
    "transaction_hash",
    "signature",
    "txHash",
    "transactionHash",
)


@dataclass(frozen=True)
class NormalizedTransaction:
    """Hash and explorer link of a broadcast transaction."""

    hash: str
    explorer_url: str

    @property
    def found(self) -> bool:
        """True when a hash was recovered."""
        return bool(self.hash)


def extract_hash(response: Any) -> str:
    """
    Recover a transaction hash from a vendor response.

    Args:
        response: Decoded vendor response. The payload is read from its
            ``data`` key when present, else from the response itself.

    Returns:
        Hash/signature string, or "" when no known shape matches
    """
    if not isinstance(response, dict):
        return ""

    data = response.get("data", response)

    if isinstance(data, dict):
        for key in HASH_KEYS:
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
        return ""

    if isinstance(data, str):
        return data.strip()

    return ""


def normalize(response: Any, chain: str) -> NormalizedTransaction:
    """
    Normalize a vendor acknowledgement into hash + explorer URL.

    Args:
        response: Decoded vendor response
        chain: Chain label used for the explorer link

    Returns:
        NormalizedTransaction; both fields empty for unrecognized shapes
    """
    tx_hash = extract_hash(response)
    return NormalizedTransaction(
        hash=tx_hash,
        explorer_url=explorer_url(chain, tx_hash),
    )
