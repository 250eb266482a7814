"""
Off-ramp status templates.

Pure lookup from a Paycrest order status to a chat message with action
buttons. Statuses are normalized and grouped by alias; anything
unrecognized gets the generic update template, so ``render_status``
always returns a template.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from app.utils.formatters import escape_md, format_amount


@dataclass(frozen=True)
class TemplateButton:
    """Inline button: callback or URL."""

    text: str
    callback_data: str | None = None
    url: str | None = None


@dataclass(frozen=True)
class StatusTemplate:
    """Rendered status message."""

    text: str
    buttons: list[list[TemplateButton]] = field(default_factory=list)


@dataclass(frozen=True)
class OfframpStatusData:
    """Order fields used by the templates."""

    order_id: str
    amount: Decimal | None = None
    currency: str = ""
    token: str = "USDC"
    network: str = ""
    tx_hash: str | None = None
    expected_amount: Decimal | None = None
    institution: str | None = None
    account_name: str | None = None
    failure_reason: str | None = None
    refund_reason: str | None = None


COMPLETED = "completed"
PROCESSING = "processing"
FAILED = "failed"
REFUND = "refund"
EXPIRED = "expired"
ON_HOLD = "on_hold"
UNKNOWN = "unknown"

STATUS_GROUPS: dict[str, tuple[str, ...]] = {
    COMPLETED: ("completed", "fulfilled", "success", "settled", "delivered", "validated"),
    PROCESSING: (
        "pending",
        "processing",
        "awaiting_transfer",
        "in_progress",
        "submitted",
        "confirming",
        "created",
    ),
    FAILED: ("failed", "error", "cancelled", "rejected", "declined"),
    REFUND: ("refunded", "refund_pending", "refund_processing", "refund_completed"),
    EXPIRED: ("expired", "timeout"),
    ON_HOLD: ("on_hold", "under_review", "requires_verification"),
}

_ALIASES = {alias: group for group, aliases in STATUS_GROUPS.items() for alias in aliases}

_EMOJI = {
    COMPLETED: "✅",
    PROCESSING: "🔄",
    FAILED: "❌",
    REFUND: "🔄",
    EXPIRED: "⏰",
    ON_HOLD: "⏸️",
    UNKNOWN: "📊",
}

# Statuses whose display text is not just the title-cased status
_STATUS_TEXT = {
    "completed": "Completed",
    "fulfilled": "Completed",
    "success": "Completed",
    "settled": "Completed",
    "delivered": "Completed",
    "validated": "Completed",
    "awaiting_transfer": "Awaiting Transfer",
    "in_progress": "In Progress",
    "timeout": "Timed Out",
    "on_hold": "On Hold",
    "under_review": "Under Review",
    "requires_verification": "Requires Verification",
}

HISTORY_BUTTON = TemplateButton("📊 View History", callback_data="offramp_history")
NEW_WITHDRAWAL_BUTTON = TemplateButton("💸 New Withdrawal", callback_data="action_offramp")
TRY_AGAIN_BUTTON = TemplateButton("🔄 Try Again", callback_data="action_offramp")
RATE_BUTTON = TemplateButton("💬 Rate Experience", callback_data="rate_offramp")
SUPPORT_BUTTON = TemplateButton("💬 Contact Support", callback_data="contact_support")
BALANCE_BUTTON = TemplateButton("💰 Check Balance", callback_data="check_balance")


def normalize_status(status: Any) -> str:
    """Lowercase, stripped string form of any status value."""
    if status is None:
        return ""
    return str(status).strip().lower()


def status_group(status: Any) -> str:
    """
    Map a raw status to its alias group.

    Examples:
        >>> status_group(" Settled ")
        'completed'
        >>> status_group("weird")
        'unknown'
    """
    return _ALIASES.get(normalize_status(status), UNKNOWN)


def status_emoji(status: Any) -> str:
    """Emoji for a raw status."""
    return _EMOJI[status_group(status)]


def status_text(status: Any) -> str:
    """Human-readable label for a raw status."""
    normalized = normalize_status(status)
    if not normalized:
        return "Unknown"
    if normalized in _STATUS_TEXT:
        return _STATUS_TEXT[normalized]
    return normalized.replace("_", " ").capitalize()


def _check_status_button(data: OfframpStatusData) -> TemplateButton:
    return TemplateButton(
        "🔍 Check Status", callback_data=f"check_offramp_status_{data.order_id}"
    )


def _fiat_amount(data: OfframpStatusData) -> str:
    amount = data.expected_amount if data.expected_amount is not None else data.amount
    return f"{format_amount(amount, max_decimals=2)} {data.currency}".strip()


def _token_amount(data: OfframpStatusData) -> str:
    return f"{format_amount(data.amount)} {data.token}"


def _completed(data: OfframpStatusData) -> StatusTemplate:
    institution = escape_md(data.institution) or "your bank"
    account = escape_md(data.account_name) or "your account"
    text = (
        "✅ *Withdrawal Completed Successfully!*\n\n"
        f"🎉 Your funds have been delivered to {institution}!\n\n"
        f"💰 *Amount:* {_fiat_amount(data)}\n"
        f"🏦 *Recipient:* {account}\n"
        f"📋 *Order ID:* `{data.order_id}`\n\n"
        "💡 *Your funds should appear in your account within 2-5 minutes.*\n\n"
        "Thank you for using Hedwig! 🚀"
    )
    return StatusTemplate(
        text=text,
        buttons=[[HISTORY_BUTTON, NEW_WITHDRAWAL_BUTTON], [RATE_BUTTON]],
    )


def _processing(data: OfframpStatusData) -> StatusTemplate:
    institution = escape_md(data.institution) or "your bank"
    text = (
        "🔄 *Withdrawal In Progress*\n\n"
        f"Your withdrawal is being processed by {institution}.\n\n"
        f"💰 *Amount:* {_fiat_amount(data)}\n"
        f"📋 *Order ID:* `{data.order_id}`\n"
        "⏰ *Status:* Processing\n\n"
        "⏳ *Estimated completion:* 5-15 minutes\n"
        "📱 *You'll receive a notification when complete*"
    )
    return StatusTemplate(text=text, buttons=[[_check_status_button(data), SUPPORT_BUTTON]])


def _failed(data: OfframpStatusData) -> StatusTemplate:
    reason = escape_md(data.failure_reason) or "Technical issue occurred"
    text = (
        "❌ *Withdrawal Failed*\n\n"
        "We're sorry, your withdrawal could not be completed.\n\n"
        f"💰 *Amount:* {_fiat_amount(data)}\n"
        f"📋 *Order ID:* `{data.order_id}`\n"
        f"❗ *Reason:* {reason}\n\n"
        "🔄 *Next Steps:*\n"
        f"• Your {data.token} will be automatically refunded\n"
        "• Refund typically takes 5-10 minutes\n"
        "• You'll receive a notification when complete\n\n"
        "💬 Need help? Contact our support team."
    )
    return StatusTemplate(
        text=text,
        buttons=[[TRY_AGAIN_BUTTON, SUPPORT_BUTTON], [HISTORY_BUTTON]],
    )


def _refund(data: OfframpStatusData) -> StatusTemplate:
    reason = escape_md(data.refund_reason) or "withdrawal could not be completed"
    text = (
        "🔄 *Refund Processed*\n\n"
        "Your withdrawal has been refunded successfully.\n\n"
        f"💰 *Refunded:* {_token_amount(data)}\n"
        f"📋 *Order ID:* `{data.order_id}`\n"
        f"❗ *Reason:* {reason}\n\n"
        f"✅ *Your {data.token} has been returned to your wallet.*\n\n"
        "You can try the withdrawal again or contact support if you need assistance."
    )
    return StatusTemplate(
        text=text,
        buttons=[[TRY_AGAIN_BUTTON, BALANCE_BUTTON], [SUPPORT_BUTTON]],
    )


def _expired(data: OfframpStatusData) -> StatusTemplate:
    text = (
        "⏰ *Withdrawal Expired*\n\n"
        "Your withdrawal order has expired and been cancelled.\n\n"
        f"💰 *Amount:* {_token_amount(data)}\n"
        f"📋 *Order ID:* `{data.order_id}`\n\n"
        f"🔄 *Your {data.token} has been automatically refunded to your wallet.*\n\n"
        "You can start a new withdrawal anytime."
    )
    return StatusTemplate(text=text, buttons=[[NEW_WITHDRAWAL_BUTTON, BALANCE_BUTTON]])


def _on_hold(data: OfframpStatusData) -> StatusTemplate:
    text = (
        "⏸️ *Withdrawal Under Review*\n\n"
        "Your withdrawal is currently under review for security purposes.\n\n"
        f"💰 *Amount:* {_fiat_amount(data)}\n"
        f"📋 *Order ID:* `{data.order_id}`\n"
        "🔍 *Status:* Under Review\n\n"
        "⏳ *This usually takes 15-30 minutes*\n"
        "📱 *You'll be notified once review is complete*"
    )
    return StatusTemplate(text=text, buttons=[[_check_status_button(data), SUPPORT_BUTTON]])


def _unknown(status: Any, data: OfframpStatusData) -> StatusTemplate:
    text = (
        "🔄 *Withdrawal Status Update*\n\n"
        "Your withdrawal status has been updated.\n\n"
        f"💰 *Amount:* {_fiat_amount(data)}\n"
        f"📋 *Order ID:* `{data.order_id}`\n"
        f"📊 *Status:* {escape_md(status_text(status))}\n\n"
        "We're monitoring your withdrawal and will notify you of any changes."
    )
    return StatusTemplate(text=text, buttons=[[_check_status_button(data), SUPPORT_BUTTON]])


_RENDERERS = {
    COMPLETED: _completed,
    PROCESSING: _processing,
    FAILED: _failed,
    REFUND: _refund,
    EXPIRED: _expired,
    ON_HOLD: _on_hold,
}


def render_status(status: Any, data: OfframpStatusData) -> StatusTemplate:
    """
    Render the user message for an order status.

    Args:
        status: Raw status from Paycrest or our own order row (any type)
        data: Order fields

    Returns:
        StatusTemplate; the generic update template for unknown statuses
    """
    group = status_group(status)
    renderer = _RENDERERS.get(group)
    if renderer is None:
        return _unknown(status, data)
    return renderer(data)
