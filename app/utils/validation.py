"""
Validation utilities.

Address and amount validation for the chains the bot supports.
"""

import re
from decimal import Decimal, InvalidOperation

from solders.pubkey import Pubkey
from web3 import Web3


EVM_ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
SOLANA_ADDRESS_PATTERN = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


def is_evm_address(address: str | None) -> bool:
    """
    Check EVM address format (checksum not enforced).

    Args:
        address: Candidate address

    Returns:
        True if 0x-prefixed 40-hex-char address
    """
    if not address:
        return False
    return bool(EVM_ADDRESS_PATTERN.match(address.strip()))


def is_solana_address(address: str | None) -> bool:
    """
    Check Solana address (base58 public key of 32 bytes).

    Args:
        address: Candidate address

    Returns:
        True if decodes to a valid public key
    """
    if not address or not SOLANA_ADDRESS_PATTERN.match(address.strip()):
        return False
    try:
        Pubkey.from_string(address.strip())
    except ValueError:
        return False
    return True


def normalize_evm_address(address: str) -> str:
    """
    Normalize EVM address to checksum format.

    Args:
        address: Wallet address

    Returns:
        Checksummed address

    Raises:
        ValueError: If invalid address
    """
    if not is_evm_address(address):
        raise ValueError(f"Invalid EVM address: {address}")
    return Web3.to_checksum_address(address.strip())


def parse_amount(value: object) -> Decimal | None:
    """
    Parse a user or LLM supplied amount.

    Accepts numbers and strings like "10", "0.5", "1,000.25", "$20".

    Args:
        value: Raw amount

    Returns:
        Positive Decimal or None if not parseable / not positive
    """
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip().replace(",", "").lstrip("$")
    if not text:
        return None
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    return amount


def sanitize_input(text: str, max_length: int = 500) -> str:
    """
    Sanitize user input.

    Args:
        text: User input
        max_length: Maximum length

    Returns:
        Sanitized text
    """
    if not text:
        return ""

    text = text.strip()
    if len(text) > max_length:
        text = text[:max_length]

    return text.replace("\x00", "")
