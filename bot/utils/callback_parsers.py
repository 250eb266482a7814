"""
Utilities for safe callback data parsing.
"""

import re


# Paycrest order ids: UUIDs or similar opaque tokens
_ORDER_ID = re.compile(r"^[A-Za-z0-9-]{1,64}$")


def parse_callback_suffix(callback_data: str | None, prefix: str) -> str | None:
    """
    Safely extract the identifier after a callback prefix.

    Args:
        callback_data: Callback data (e.g. "offramp_confirm_3f2a-...")
        prefix: Expected prefix (e.g. "offramp_confirm_")

    Returns:
        Identifier or None when the prefix or identifier is invalid

    Examples:
        >>> parse_callback_suffix("offramp_confirm_abc-123", "offramp_confirm_")
        'abc-123'
        >>> parse_callback_suffix("offramp_confirm_", "offramp_confirm_")
        >>> parse_callback_suffix("other_abc", "offramp_confirm_")
    """
    if not callback_data or not isinstance(callback_data, str):
        return None
    if not callback_data.startswith(prefix):
        return None
    value = callback_data[len(prefix):]
    if not _ORDER_ID.match(value):
        return None
    return value
