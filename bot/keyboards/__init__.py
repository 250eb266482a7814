"""
Keyboards.

Telegram inline keyboards.
"""

from bot.keyboards.inline import (
    create_wallets_keyboard,
    explorer_keyboard,
    main_menu_keyboard,
    offramp_confirm_keyboard,
    status_template_keyboard,
    transfer_result_keyboard,
)


__all__ = [
    "create_wallets_keyboard",
    "explorer_keyboard",
    "main_menu_keyboard",
    "offramp_confirm_keyboard",
    "status_template_keyboard",
    "transfer_result_keyboard",
]
