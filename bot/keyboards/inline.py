"""
Inline keyboards for transaction results, wallets and off-ramp orders.
"""

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from app.services.offramp.status_templates import StatusTemplate, TemplateButton


def explorer_keyboard(
    url: str, text: str = "🔍 View on Block Explorer"
) -> InlineKeyboardMarkup | None:
    """
    Single URL button pointing at a block explorer.

    Args:
        url: Explorer URL
        text: Button text

    Returns:
        InlineKeyboardMarkup, or None when the URL is empty
    """
    if not url:
        return None
    builder = InlineKeyboardBuilder()
    builder.row(InlineKeyboardButton(text=text, url=url))
    return builder.as_markup()


def transfer_result_keyboard(url: str) -> InlineKeyboardMarkup:
    """Keyboard under a sent transfer."""
    builder = InlineKeyboardBuilder()
    if url:
        builder.add(InlineKeyboardButton(text="🔗 View Transaction", url=url))
    builder.add(InlineKeyboardButton(text="💰 Check Balance", callback_data="check_balance"))
    return builder.as_markup()


def create_wallets_keyboard() -> InlineKeyboardMarkup:
    """Prompt to create wallets."""
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(text="👛 Create Wallets", callback_data="create_wallets")
    )
    return builder.as_markup()


def main_menu_keyboard() -> InlineKeyboardMarkup:
    """Shortcuts shown after /start and wallet creation."""
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(text="💰 Check Balance", callback_data="check_balance"),
        InlineKeyboardButton(text="💸 Withdraw to Bank", callback_data="action_offramp"),
    )
    builder.row(
        InlineKeyboardButton(text="📄 New Invoice", callback_data="action_invoice"),
        InlineKeyboardButton(text="📝 New Proposal", callback_data="action_proposal"),
    )
    builder.row(
        InlineKeyboardButton(text="💬 Contact Support", callback_data="contact_support")
    )
    return builder.as_markup()


def offramp_confirm_keyboard(order_id: str) -> InlineKeyboardMarkup:
    """
    Confirm/cancel buttons for a created off-ramp order.

    Args:
        order_id: Paycrest order ID

    Returns:
        InlineKeyboardMarkup
    """
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(
            text="✅ Confirm & Send", callback_data=f"offramp_confirm_{order_id}"
        ),
        InlineKeyboardButton(
            text="❌ Cancel", callback_data=f"offramp_cancel_{order_id}"
        ),
    )
    return builder.as_markup()


def document_keyboard(
    number: str, is_invoice: bool, pdf_ready: bool = True
) -> InlineKeyboardMarkup:
    """
    Buttons under an invoice or proposal.

    Args:
        number: Document number
        is_invoice: Show "Mark Paid" for invoices
        pdf_ready: Label the PDF button as a retry when the PDF is missing

    Returns:
        InlineKeyboardMarkup
    """
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(
            text="📄 Get PDF" if pdf_ready else "🔁 Retry PDF",
            callback_data=f"document_pdf_{number}",
        )
    )
    row = []
    if is_invoice:
        row.append(
            InlineKeyboardButton(text="✅ Mark Paid", callback_data=f"document_paid_{number}")
        )
    row.append(
        InlineKeyboardButton(text="❌ Cancel", callback_data=f"document_cancel_{number}")
    )
    builder.row(*row)
    return builder.as_markup()


def _button(button: TemplateButton) -> InlineKeyboardButton:
    if button.url:
        return InlineKeyboardButton(text=button.text, url=button.url)
    return InlineKeyboardButton(text=button.text, callback_data=button.callback_data)


def status_template_keyboard(template: StatusTemplate) -> InlineKeyboardMarkup | None:
    """
    Convert status template buttons to an inline keyboard.

    Args:
        template: Rendered status template

    Returns:
        InlineKeyboardMarkup, or None when the template has no buttons
    """
    if not template.buttons:
        return None
    builder = InlineKeyboardBuilder()
    for row in template.buttons:
        builder.row(*(_button(button) for button in row))
    return builder.as_markup()
