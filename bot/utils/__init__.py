"""Bot utilities."""

from bot.utils.callback_parsers import parse_callback_suffix
from bot.utils.replies import send_callback_reply, send_reply


__all__ = ["parse_callback_suffix", "send_callback_reply", "send_reply"]
