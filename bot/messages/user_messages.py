"""
User-facing message templates and formatting functions.

This module contains all user-facing messages and helper functions
for formatting data in a consistent way across the bot. Texts use
Telegram Markdown (V1); interpolated user data goes through ``escape_md``.
"""

from decimal import Decimal
from typing import Any

from app.utils.formatters import escape_md, format_amount, format_money, short_hash

# ============================================================================
# MESSAGE TEMPLATES
# ============================================================================

WELCOME_MESSAGE = (
    "👋 *Hi {name}, I'm Hedwig!*\n\n"
    "I'm your crypto assistant. I can help you:\n"
    "• Create wallets on Base and Solana\n"
    "• Check your balances\n"
    "• Send and swap tokens\n"
    "• Withdraw stablecoins to your bank account\n\n"
    "Just tell me what you need, for example:\n"
    "`send 10 USDC to 0x1234...` or `what's my balance?`"
)

HELP_MESSAGE = (
    "🦉 *Hedwig Help*\n\n"
    "*Commands:*\n"
    "/start - Start the bot\n"
    "/wallet - Show your wallet addresses\n"
    "/balance - Check your balances\n"
    "/send - Send crypto\n"
    "/offramp - Withdraw to your bank account\n"
    "/invoice - Create an invoice\n"
    "/proposal - Create a project proposal\n"
    "/documents - Your recent invoices and proposals\n"
    "/cancel - Cancel the current action\n"
    "/help - Show this message\n\n"
    "*Or just type naturally:*\n"
    "• `send 0.01 ETH to 0xabc... on base`\n"
    "• `swap 5 USDC to ETH`\n"
    "• `withdraw 20 USDC to NGN`\n"
    "• `rates for 50 USDC in KES`\n"
    "• `create an invoice`"
)

UNKNOWN_COMMAND = "🤔 I don't know that command. Send /help to see what I can do."

NO_WALLET_PROMPT = (
    "👛 *You don't have a wallet yet*\n\n"
    "I need to create your wallets before I can do that. "
    "Tap the button below to get started."
)

WALLETS_CREATED = (
    "🎉 *Your wallets are ready!*\n\n"
    "*EVM (Base, Ethereum):*\n`{evm_address}`\n\n"
    "*Solana:*\n`{solana_address}`\n\n"
    "You can start receiving and sending crypto right away."
)

WALLET_ADDRESSES = "👛 *Your wallets*\n\n{lines}\n\n_Tap an address to copy it._"

WALLET_CREATE_FAILED = (
    "❌ I couldn't set up your wallets right now. "
    "Please try again in a moment."
)

UNKNOWN_INTENT = (
    "🤔 I didn't understand that. Try something like "
    "`send 10 USDC to 0x...`, `balance` or /help."
)

CLARIFICATION_MESSAGE = "🤔 Could you tell me a bit more about what you'd like to do?"

CANCELLED_MESSAGE = "✅ Cancelled. What would you like to do next?"
NOTHING_TO_CANCEL = "There's nothing to cancel."

BRIDGE_NOT_SUPPORTED = (
    "🌉 Bridging between chains isn't supported yet.\n\n"
    "You can send or swap tokens on the same chain instead."
)

SWAP_NOT_CONFIGURED = "🔄 Swaps are not available right now. Please try again later."
OFFRAMP_NOT_CONFIGURED = "💸 Withdrawals to bank accounts are not available right now."
DOCUMENTS_NOT_CONFIGURED = "📄 Invoices and proposals are not available right now."

GENERIC_ERROR = "❌ Something went wrong. Please try again."

SUPPORT_MESSAGE = "💬 Need help? Contact @{username} and we'll get back to you."

RATE_THANKS = "🙏 Thanks! Your feedback helps us improve Hedwig."

# Prompt for each missing slot, keyed by parameter name
SLOT_PROMPTS: dict[str, str] = {
    "amount": "💰 How much would you like to send? (e.g. `10` or `0.05`)",
    "token": "🪙 Which token? (ETH, SOL, USDC or USDT)",
    "recipient": "📥 What's the recipient's wallet address?",
    "network": "🌐 Which network? (Base, Ethereum or Solana)",
    "from_token": "🔄 Which token would you like to swap from?",
    "to_token": "🔄 Which token would you like to receive?",
    "fiat": "💱 Which currency should you receive? (NGN, KES, GHS, UGX, TZS)",
    "institution": "🏦 What's your bank or mobile money provider? (name or code)",
    "account_number": "🔢 What's your account number?",
    "client_name": "👤 What's your client's name?",
    "client_email": "📧 What's your client's email address?",
    "description": "📝 Describe the project or service.",
    "scope": "📦 What are the deliverables?",
    "timeline": "⏱ What's the timeline? (e.g. `3 weeks`)",
    "price": "💵 What's the total amount? (e.g. `1500 USD`)",
    "due_date": "📅 When is payment due? (`YYYY-MM-DD` or `in 30 days`)",
}

# ============================================================================
# FORMAT FUNCTIONS
# ============================================================================


def format_welcome(first_name: str | None) -> str:
    """Format welcome message with the user's name."""
    return WELCOME_MESSAGE.format(name=escape_md(first_name) or "there")


def format_wallets_created(evm_address: str, solana_address: str) -> str:
    """Format wallet creation confirmation."""
    return WALLETS_CREATED.format(evm_address=evm_address, solana_address=solana_address)


def format_wallet_addresses(wallets: list[Any]) -> str:
    """
    Format the list of wallet addresses.

    Args:
        wallets: Wallet rows (``chain`` and ``address``)

    Returns:
        Formatted message
    """
    labels = {"evm": "EVM (Base, Ethereum)", "solana": "Solana"}
    lines = [
        f"*{labels.get(wallet.chain, wallet.chain)}:*\n`{wallet.address}`"
        for wallet in wallets
    ]
    return WALLET_ADDRESSES.format(lines="\n\n".join(lines))


def format_balances(network_name: str, balances: dict[str, Decimal]) -> str:
    """
    Format balances of one network.

    Example:
        >>> format_balances("Base Sepolia", {"ETH": Decimal("0.5")})
        '*Base Sepolia*\\n• 0.5 ETH'
    """
    if not balances:
        return f"*{network_name}*\n• No balance"
    lines = [f"• {format_amount(amount)} {symbol}" for symbol, amount in balances.items()]
    return f"*{network_name}*\n" + "\n".join(lines)


def format_transfer_success(
    amount: Decimal,
    asset: str,
    network_name: str,
    recipient: str,
    tx_hash: str,
) -> str:
    """Format message for a broadcast transfer."""
    tx_line = f"`{tx_hash}`" if tx_hash else "_pending, hash not reported yet_"
    return (
        "✅ *Transfer Sent!*\n\n"
        f"💰 *Amount:* {format_amount(amount)} {asset}\n"
        f"🌐 *Network:* {network_name}\n"
        f"📍 *To:* `{recipient}`\n"
        f"🔗 *Transaction:* {tx_line}\n\n"
        "I'll let you know once it's confirmed on-chain."
    )


def format_transfer_failed(reason: str) -> str:
    """Format message for a failed transfer."""
    return (
        "❌ *Transfer Failed*\n\n"
        f"{escape_md(reason)}\n\n"
        "Please check:\n"
        "• You have sufficient balance\n"
        "• The recipient address is valid\n"
        "• The network is correct"
    )


def format_transaction_confirmed(
    amount: Decimal | None, asset: str | None, network_name: str, tx_hash: str | None
) -> str:
    """Format reconciler notification for a confirmed transaction."""
    return (
        "✅ *Transaction Confirmed*\n\n"
        f"💰 *Amount:* {format_amount(amount)} {asset or ''}\n"
        f"🌐 *Network:* {network_name}\n"
        f"🔗 *Hash:* `{short_hash(tx_hash)}`"
    )


def format_transaction_failed(
    amount: Decimal | None,
    asset: str | None,
    network_name: str,
    tx_hash: str | None,
    reason: str,
) -> str:
    """Format reconciler notification for a failed or expired transaction."""
    return (
        "❌ *Transaction Failed*\n\n"
        f"💰 *Amount:* {format_amount(amount)} {asset or ''}\n"
        f"🌐 *Network:* {network_name}\n"
        f"🔗 *Hash:* `{short_hash(tx_hash)}`\n"
        f"❗ *Reason:* {escape_md(reason)}"
    )


def format_deposit_received(
    amount: Decimal | str | None,
    asset: str,
    network_name: str,
    sender: str | None,
    tx_hash: str,
) -> str:
    """Format incoming deposit notification."""
    return (
        "🎉 *Crypto Deposit Received!*\n\n"
        f"💰 *Amount Received:* {format_amount(amount)} {asset}\n"
        f"⛓️ *Chain:* {network_name}\n"
        f"📤 *Sender Address:* `{sender or 'unknown'}`\n"
        f"🔗 *Transaction Hash:* `{tx_hash}`\n\n"
        "Your deposit has been confirmed and is now available in your wallet!"
    )


def format_swap_success(
    from_amount: Decimal,
    from_asset: str,
    to_amount: Any,
    to_asset: str,
    network_name: str,
    tx_hash: str,
) -> str:
    """Format swap execution message."""
    return (
        "🔄 *Swap Submitted!*\n\n"
        f"📤 *From:* {format_amount(from_amount)} {from_asset}\n"
        f"📥 *To:* ~{format_amount(to_amount)} {to_asset}\n"
        f"🌐 *Network:* {network_name}\n"
        f"🔗 *Transaction:* `{short_hash(tx_hash)}`"
    )


def format_rate_quote(
    amount: Decimal, token: str, currency: str, rate: Decimal
) -> str:
    """Format an off-ramp rate quote."""
    receive = amount * rate
    return (
        "💱 *Current Rate*\n\n"
        f"1 {token} ≈ *{format_amount(rate, max_decimals=2)} {currency}*\n"
        f"{format_amount(amount)} {token} ≈ *{format_amount(receive, max_decimals=2)} {currency}*\n\n"
        "_Rates refresh every couple of minutes._"
    )


def format_offramp_confirmation(order: Any) -> str:
    """
    Format off-ramp order summary before the token transfer.

    Args:
        order: OfframpOrder row

    Returns:
        Formatted message
    """
    return (
        "💸 *Confirm Withdrawal*\n\n"
        f"💰 *You send:* {format_amount(order.amount)} {order.token}\n"
        f"💵 *You receive:* {format_amount(order.expected_amount, max_decimals=2)} "
        f"{order.fiat_currency}\n"
        f"📈 *Rate:* {format_amount(order.rate, max_decimals=2)}\n"
        f"🏦 *Bank:* {escape_md(order.institution)}\n"
        f"👤 *Account:* {escape_md(order.account_name)} ({order.account_identifier})\n"
        f"📋 *Order ID:* `{order.order_id}`\n\n"
        "⚠️ Please verify the details. This cannot be reversed."
    )


def format_offramp_history(orders: list[Any]) -> str:
    """Format the user's recent off-ramp orders."""
    if not orders:
        return "📊 You have no withdrawals yet."
    lines = [
        f"• {format_amount(o.amount)} {o.token} → {o.fiat_currency}: "
        f"*{escape_md(o.status)}* (`{o.order_id}`)"
        for o in orders
    ]
    return "📊 *Recent Withdrawals*\n\n" + "\n".join(lines)


def format_document_created(document: Any, pdf_ready: bool) -> str:
    """
    Format the summary of a new invoice or proposal.

    Args:
        document: BillingDocument row
        pdf_ready: Whether the PDF is attached

    Returns:
        Formatted message
    """
    title = "Invoice" if document.is_invoice else "Proposal"
    lines = [
        f"📄 *{title} {escape_md(document.number)}*\n",
        f"👤 *Client:* {escape_md(document.client_name)} ({escape_md(document.client_email)})",
        f"💵 *Amount:* {format_money(document.amount, document.currency)}",
    ]
    if document.due_date:
        lines.append(f"📅 *Due:* {document.due_date.isoformat()}")
    if document.timeline:
        lines.append(f"⏱ *Timeline:* {escape_md(document.timeline)}")
    if document.pay_to_address:
        lines.append(f"👛 *Pay to:* `{document.pay_to_address}`")
    lines.append("")
    if pdf_ready:
        lines.append("Your PDF is attached. Forward it to your client.")
    else:
        lines.append(
            "⚠️ I saved it but couldn't generate the PDF right now. "
            "Tap the button below to try again."
        )
    return "\n".join(lines)


def format_document_history(documents: list[Any]) -> str:
    """Format the user's recent invoices and proposals."""
    if not documents:
        return "📄 You have no invoices or proposals yet. Try /invoice or /proposal."
    lines = [
        f"• `{d.number}` {escape_md(d.client_name)}: "
        f"{format_money(d.amount, d.currency)} *{escape_md(d.status)}*"
        for d in documents
    ]
    return "📄 *Recent Documents*\n\n" + "\n".join(lines)
