"""
Formatters utility.

Utility functions for formatting data in the app layer.
"""

from decimal import Decimal


def escape_md(text: str | None) -> str:
    """
    Escape special characters for Markdown V1.

    Escapes: _ * ` [

    Args:
        text: Input text

    Returns:
        Escaped text safe for Markdown
    """
    if not text:
        return ""
    return str(text).replace("_", "\\_").replace("*", "\\*").replace("`", "\\`").replace("[", "\\[")


def format_amount(amount: Decimal | float | int | str | None, max_decimals: int = 6) -> str:
    """
    Format a token amount without trailing zeros.

    Examples:
        >>> format_amount(Decimal("10.500000"))
        '10.5'
        >>> format_amount(Decimal("0.0000001"), max_decimals=6)
        '0'
    """
    if amount is None:
        return "0"
    value = Decimal(str(amount)).quantize(Decimal(1).scaleb(-max_decimals))
    text = f"{value:f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def short_hash(tx_hash: str | None) -> str:
    """Shorten a transaction hash for display."""
    if not tx_hash:
        return "-"
    if len(tx_hash) <= 20:
        return tx_hash
    return f"{tx_hash[:10]}...{tx_hash[-8:]}"


def format_money(amount: Decimal | int | str | None, currency: str) -> str:
    """
    Format a fiat amount with thousands separators and two decimals.

    Examples:
        >>> format_money(Decimal("1500"), "USD")
        '1,500.00 USD'
    """
    value = Decimal(str(amount or 0))
    return f"{value:,.2f} {currency}"
