"""
Bot Messages Module
Contains all message templates and formatting functions for the bot
"""

from bot.messages.user_messages import (
    GENERIC_ERROR,
    HELP_MESSAGE,
    NO_WALLET_PROMPT,
    SLOT_PROMPTS,
    UNKNOWN_COMMAND,
    UNKNOWN_INTENT,
    format_balances,
    format_deposit_received,
    format_offramp_confirmation,
    format_transfer_failed,
    format_transfer_success,
    format_welcome,
)


__all__ = [
    "GENERIC_ERROR",
    "HELP_MESSAGE",
    "NO_WALLET_PROMPT",
    "SLOT_PROMPTS",
    "UNKNOWN_COMMAND",
    "UNKNOWN_INTENT",
    "format_balances",
    "format_deposit_received",
    "format_offramp_confirmation",
    "format_transfer_failed",
    "format_transfer_success",
    "format_welcome",
]
