"""
Conversation service.

Turns one chat message into one reply: parse the intent (or fill the slot
the bot last asked for), collect parameters across turns in the user's
SessionContext, and run the action once every required parameter is known.
"""

import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

from aiogram.enums import ParseMode
from aiogram.types import InlineKeyboardMarkup
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.constants import (
    DOCUMENT_DEFAULT_CURRENCY,
    SESSION_HISTORY_LIMIT,
    SESSION_IDLE_MINUTES,
)
from app.models.enums import ChainFamily, DocumentKind, TransactionAction, TransactionStatus
from app.models.session_context import SessionContext
from app.models.user import User
from app.models.wallet import Wallet
from app.repositories.session_repository import SessionRepository
from app.repositories.transaction_repository import TransactionRepository
from app.services.balance_service import BalanceService
from app.services.base_service import BaseService
from app.services.chains.networks import (
    DEFAULT_CHAIN,
    display_name,
    get_network,
    resolve_chain,
    to_vendor_network,
)
from app.services.custody.cdp_client import CdpClient
from app.services.documents.document_service import (
    DocumentService,
    RenderedDocument,
    find_email,
    parse_due_date,
    parse_price,
)
from app.services.intent.parser import (
    IntentParser,
    ParsedIntent,
    extract_send_params,
    find_address,
    find_amount,
    find_fiat,
    find_network,
    find_token,
)
from app.services.offramp.offramp_service import OfframpService
from app.services.transactions.dispatcher import TransactionDispatcher
from app.services.transactions.normalizer import normalize
from app.services.transactions.requests import build_transfer_request
from app.services.wallet_service import WalletService
from app.utils.exceptions import HedwigError, WalletCreationError, user_facing_reason
from app.utils.validation import is_evm_address, is_solana_address, parse_amount, sanitize_input
from bot.keyboards.inline import (
    create_wallets_keyboard,
    document_keyboard,
    explorer_keyboard,
    main_menu_keyboard,
    offramp_confirm_keyboard,
    status_template_keyboard,
    transfer_result_keyboard,
)
from bot.messages.user_messages import (
    BRIDGE_NOT_SUPPORTED,
    CANCELLED_MESSAGE,
    CLARIFICATION_MESSAGE,
    DOCUMENTS_NOT_CONFIGURED,
    HELP_MESSAGE,
    NO_WALLET_PROMPT,
    NOTHING_TO_CANCEL,
    OFFRAMP_NOT_CONFIGURED,
    SLOT_PROMPTS,
    SWAP_NOT_CONFIGURED,
    UNKNOWN_INTENT,
    WALLET_CREATE_FAILED,
    format_balances,
    format_document_created,
    format_document_history,
    format_offramp_confirmation,
    format_offramp_history,
    format_rate_quote,
    format_swap_success,
    format_transfer_failed,
    format_transfer_success,
    format_wallet_addresses,
    format_wallets_created,
    format_welcome,
)


# Parameters that must be collected before an intent can run, in ask order
REQUIRED_PARAMS: dict[str, tuple[str, ...]] = {
    "send": ("amount", "token", "recipient"),
    "swap": ("amount", "from_token", "to_token"),
    "offramp": ("amount", "fiat", "institution", "account_number"),
    "get_rates": ("fiat",),
    "create_invoice": ("client_name", "client_email", "description", "price", "due_date"),
    "create_proposal": (
        "client_name", "client_email", "description", "scope", "timeline", "price"
    ),
}

# Intents that need the user's wallets
WALLET_INTENTS = frozenset(
    {"balance", "get_wallet_address", "send", "swap", "offramp"}
)

DOCUMENT_INTENTS = {
    "create_invoice": DocumentKind.INVOICE,
    "create_proposal": DocumentKind.PROPOSAL,
}

# Slots whose replies are validated; a bad reply gets the prompt again
STRICT_DOCUMENT_SLOTS = frozenset({"client_email", "price", "due_date"})

# Free-text document slots, stored as typed
FREE_TEXT_SLOTS = {
    "client_name": 255,
    "description": 2000,
    "scope": 2000,
    "timeline": 255,
}

_ACCOUNT_NUMBER = re.compile(r"\b(\d{6,20})\b")


@dataclass
class BotReply:
    """Reply to send back to the chat."""

    text: str
    reply_markup: InlineKeyboardMarkup | None = None
    parse_mode: str = ParseMode.MARKDOWN
    document: bytes | None = None
    document_name: str = ""


def merge_session(
    context: SessionContext,
    pending_intent: str | None,
    params: dict[str, Any] | None = None,
    awaiting_param: str | None = None,
) -> SessionContext:
    """
    Merge new conversation state into a session, last write wins.

    A different pending intent starts from empty parameters. For the same
    intent every non-empty incoming parameter overwrites the stored one and
    untouched keys are kept.

    Args:
        context: Locked session row
        pending_intent: Intent awaiting parameters (None clears the session)
        params: Newly extracted parameters
        awaiting_param: Parameter the bot asks for next

    Returns:
        The same session, updated
    """
    if pending_intent is None:
        return clear_session(context)

    merged: dict[str, Any] = {}
    if context.pending_intent == pending_intent:
        merged.update(context.collected_params or {})
    for key, value in (params or {}).items():
        if value is None or value == "":
            continue
        merged[key] = value

    context.pending_intent = pending_intent
    # New dict object so the JSON column is flagged dirty
    context.collected_params = merged
    context.awaiting_param = awaiting_param
    context.last_active = datetime.now(UTC)
    return context


def clear_session(context: SessionContext) -> SessionContext:
    """Drop any pending intent and collected parameters."""
    context.pending_intent = None
    context.awaiting_param = None
    context.collected_params = {}
    context.last_active = datetime.now(UTC)
    return context


def append_history(context: SessionContext, role: str, content: str) -> None:
    """Append a chat turn, keeping the last ``SESSION_HISTORY_LIMIT``."""
    history = list(context.history or [])
    history.append({"role": role, "content": content[:1000]})
    context.history = history[-SESSION_HISTORY_LIMIT:]


def missing_params(intent: str, params: dict[str, Any]) -> list[str]:
    """Required parameters of an intent not yet collected."""
    return [name for name in REQUIRED_PARAMS.get(intent, ()) if not params.get(name)]


def extract_slot(param: str, text: str) -> str | None:
    """
    Read the value of one requested parameter from a reply.

    Args:
        param: Parameter the bot asked for
        text: User reply

    Returns:
        Canonical value or None when the reply does not contain it
    """
    if param == "amount":
        amount = find_amount(text)
        return str(amount) if amount is not None else None
    if param in ("token", "from_token", "to_token"):
        return find_token(text)
    if param == "recipient":
        return find_address(text)
    if param == "network":
        return find_network(text)
    if param == "fiat":
        return find_fiat(text)
    if param == "account_number":
        match = _ACCOUNT_NUMBER.search(text.replace(" ", ""))
        return match.group(1) if match else None
    if param == "institution":
        value = text.strip()
        return value or None
    if param in FREE_TEXT_SLOTS:
        value = text.strip()[: FREE_TEXT_SLOTS[param]]
        return value or None
    if param == "client_email":
        return find_email(text)
    if param == "price":
        price = parse_price(text)
        return f"{price[0]} {price[1]}" if price else None
    if param == "due_date":
        due = parse_due_date(text)
        return due.isoformat() if due else None
    return None


def normalize_document_params(params: dict[str, Any]) -> dict[str, Any]:
    """
    Canonicalize invoice and proposal parameters from the parser.

    ``amount`` plus ``fiat`` become ``price``. Email, price and due date
    values that do not parse are dropped so they are asked for again.
    """
    result = dict(params)
    amount = result.pop("amount", None)
    currency = result.pop("fiat", None)
    if amount and not result.get("price"):
        result["price"] = f"{amount} {currency or DOCUMENT_DEFAULT_CURRENCY}"
    for key in (*STRICT_DOCUMENT_SLOTS, *FREE_TEXT_SLOTS):
        if not result.get(key):
            continue
        value = extract_slot(key, str(result[key]))
        if value is None:
            result.pop(key)
        else:
            result[key] = value
    return result


def choose_send_chain(params: dict[str, Any]) -> str:
    """
    Pick the chain of a send.

    An explicit network wins; otherwise SOL or a Solana recipient means
    Solana, anything else the default EVM chain.
    """
    network = resolve_chain(params.get("network"))
    if network:
        return network
    recipient = str(params.get("recipient") or "")
    if params.get("token") == "SOL" or (
        recipient and not is_evm_address(recipient) and is_solana_address(recipient)
    ):
        return DEFAULT_CHAIN[ChainFamily.SOLANA]
    return DEFAULT_CHAIN[ChainFamily.EVM]


class ConversationService(BaseService):
    """Multi-turn intent handling for one user message at a time."""

    def __init__(
        self,
        session: AsyncSession,
        parser: IntentParser,
        wallet_service: WalletService,
        dispatcher: TransactionDispatcher,
        balance_service: BalanceService,
        offramp_service: OfframpService | None = None,
        cdp: CdpClient | None = None,
        document_service: DocumentService | None = None,
    ) -> None:
        """
        Initialize conversation service.

        Args:
            session: Database session (owned by the caller)
            parser: Intent parser
            wallet_service: Wallet resolver
            dispatcher: Transaction dispatcher
            balance_service: On-chain balance reader
            offramp_service: Off-ramp service, None when Paycrest is not configured
            cdp: Swap client, None when CDP is not configured
            document_service: Invoice and proposal service
        """
        super().__init__(session)
        self.parser = parser
        self.wallets = wallet_service
        self.dispatcher = dispatcher
        self.balances = balance_service
        self.offramp = offramp_service
        self.cdp = cdp
        self.documents = document_service
        self.sessions = SessionRepository(session)
        self.transactions = TransactionRepository(session)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def handle_text(self, user: User, text: str) -> BotReply:
        """
        Handle a free-text message.

        Args:
            user: Sender
            text: Message text

        Returns:
            BotReply
        """
        text = sanitize_input(text)
        context = await self.sessions.lock_for_user(user.id)
        self._drop_if_idle(context)

        reply = None
        if context.pending_intent and context.awaiting_param:
            reply = await self._continue_pending(user, context, text)
        if reply is None:
            parsed = await self.parser.parse(text, list(context.history or []))
            self.logger.info(
                f"User {user.id} intent={parsed.intent} source={parsed.source} "
                f"params={sorted(parsed.params)}"
            )
            reply = await self._handle_parsed(user, context, parsed)

        append_history(context, "user", text)
        append_history(context, "assistant", reply.text)
        await self.session.flush()
        return reply

    async def handle_intent(self, user: User, parsed: ParsedIntent) -> BotReply:
        """
        Handle an intent that did not come from free text (commands, buttons).

        Args:
            user: Sender
            parsed: Intent with any known parameters

        Returns:
            BotReply
        """
        context = await self.sessions.lock_for_user(user.id)
        reply = await self._handle_parsed(user, context, parsed)
        await self.session.flush()
        return reply

    async def create_wallets(self, user: User) -> BotReply:
        """Create (or return) the user's EVM and Solana wallets."""
        try:
            wallets = await self.wallets.create_all_wallets(user.id)
        except WalletCreationError as e:
            self.logger.error(f"Wallet creation failed for user {user.id}: {e}")
            return BotReply(WALLET_CREATE_FAILED)
        return BotReply(
            format_wallets_created(
                wallets[ChainFamily.EVM].address, wallets[ChainFamily.SOLANA].address
            ),
            reply_markup=main_menu_keyboard(),
        )

    async def show_wallets(self, user: User) -> BotReply:
        """Show wallet addresses, or the create-wallet prompt."""
        wallets = await self.wallets.list_wallets(user.id)
        if not wallets:
            return self._no_wallet_reply()
        return BotReply(format_wallet_addresses(wallets))

    async def show_balance(
        self, user: User, chain: str | None = None, token: str | None = None
    ) -> BotReply:
        """
        Show balances of all the user's wallets.

        Args:
            user: Owner
            chain: Restrict to one chain label
            token: Restrict to one token symbol

        Returns:
            BotReply
        """
        wallets = await self.wallets.list_wallets(user.id)
        if not wallets:
            return self._no_wallet_reply()

        chain = resolve_chain(chain) or None
        sections: list[str] = []
        for wallet in wallets:
            if chain is not None:
                network = get_network(chain)
                if network is None or network.family != wallet.family:
                    continue
            for result in await self.balances.get_wallet_balances(wallet, chain=chain):
                if result.error:
                    sections.append(f"*{result.network_name}*\n• Balance unavailable")
                    continue
                balances = result.balances
                if token:
                    balances = {k: v for k, v in balances.items() if k == token.upper()}
                sections.append(format_balances(result.network_name, balances))

        if not sections:
            return BotReply("💰 No balances to show for that network.")
        return BotReply("💰 *Your Balances*\n\n" + "\n\n".join(sections))

    async def offramp_history(self, user: User) -> BotReply:
        """Show recent withdrawals."""
        if self.offramp is None:
            return BotReply(OFFRAMP_NOT_CONFIGURED)
        orders = await self.offramp.history(user.id)
        return BotReply(format_offramp_history(orders))

    async def offramp_status(self, user: User, order_id: str) -> BotReply:
        """Refresh and show the status of one withdrawal."""
        if self.offramp is None:
            return BotReply(OFFRAMP_NOT_CONFIGURED)
        await self.offramp.refresh_order(order_id)
        template = await self.offramp.render_order(user.id, order_id)
        if template is None:
            return BotReply("I couldn't find that withdrawal.")
        return BotReply(template.text, reply_markup=status_template_keyboard(template))

    async def confirm_offramp(self, user: User, order_id: str) -> BotReply:
        """
        Send the tokens of a confirmed withdrawal.

        Args:
            user: Owner
            order_id: Paycrest order ID

        Returns:
            BotReply with the transfer result
        """
        if self.offramp is None:
            return BotReply(OFFRAMP_NOT_CONFIGURED)
        wallet = await self.wallets.get_wallet(user.id, ChainFamily.EVM)
        if wallet is None:
            return self._no_wallet_reply()

        result = await self.offramp.confirm_order(
            user.id, order_id, wallet, self.dispatcher
        )
        if not result.success:
            return BotReply(format_transfer_failed(result.error or ""))
        order, dispatch = result.data
        return BotReply(
            format_transfer_success(
                order.amount,
                order.token,
                display_name(order.network),
                order.receive_address,
                dispatch.tx_hash,
            )
            + "\n\n💸 Your bank transfer will start once the tokens arrive.",
            reply_markup=transfer_result_keyboard(dispatch.explorer_url),
        )

    async def cancel_offramp(self, user: User, order_id: str) -> BotReply:
        """Cancel a withdrawal that was not sent yet."""
        if self.offramp is None:
            return BotReply(OFFRAMP_NOT_CONFIGURED)
        if await self.offramp.cancel_order(user.id, order_id):
            return BotReply("❌ Withdrawal cancelled. No funds were moved.")
        return BotReply("This withdrawal can no longer be cancelled.")

    async def show_documents(self, user: User) -> BotReply:
        """List recent invoices and proposals."""
        if self.documents is None:
            return BotReply(DOCUMENTS_NOT_CONFIGURED)
        documents = await self.documents.history(user.id)
        return BotReply(format_document_history(documents))

    async def start_document(self, user: User, kind: DocumentKind) -> BotReply:
        """Begin collecting an invoice or proposal from a command or button."""
        intent = "create_invoice" if kind == DocumentKind.INVOICE else "create_proposal"
        return await self.handle_intent(user, ParsedIntent(intent, {}))

    async def document_pdf(self, user: User, number: str) -> BotReply:
        """
        Regenerate the PDF of one of the user's documents.

        Args:
            user: Owner
            number: Document number

        Returns:
            BotReply with the PDF attached when rendering succeeded
        """
        if self.documents is None:
            return BotReply(DOCUMENTS_NOT_CONFIGURED)
        rendered = await self.documents.render_existing(user.id, number)
        if rendered is None:
            return BotReply("I couldn't find that document.")
        return self._document_reply(rendered)

    async def mark_document_paid(self, user: User, number: str) -> BotReply:
        """Mark an invoice as paid."""
        if self.documents is None:
            return BotReply(DOCUMENTS_NOT_CONFIGURED)
        result = await self.documents.mark_paid(user.id, number)
        if not result.success:
            return BotReply(result.error or "")
        return BotReply(f"✅ Invoice `{number}` marked as paid.")

    async def cancel_document(self, user: User, number: str) -> BotReply:
        """Cancel an unpaid invoice or proposal."""
        if self.documents is None:
            return BotReply(DOCUMENTS_NOT_CONFIGURED)
        result = await self.documents.cancel(user.id, number)
        if not result.success:
            return BotReply(result.error or "")
        return BotReply(f"❌ `{number}` cancelled.")

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def _drop_if_idle(self, context: SessionContext) -> None:
        if not context.pending_intent or context.last_active is None:
            return
        last_active = context.last_active
        if last_active.tzinfo is None:
            last_active = last_active.replace(tzinfo=UTC)
        if datetime.now(UTC) - last_active > timedelta(minutes=SESSION_IDLE_MINUTES):
            self.logger.debug(
                f"Dropping idle pending intent {context.pending_intent} "
                f"for user {context.user_id}"
            )
            clear_session(context)

    async def _continue_pending(
        self, user: User, context: SessionContext, text: str
    ) -> BotReply | None:
        """
        Fill the awaited slot from a reply.

        Returns:
            BotReply, or None when the reply should be parsed as a new intent
        """
        if self.parser.rules.parse(text).intent == "cancel":
            clear_session(context)
            return BotReply(CANCELLED_MESSAGE)

        intent = context.pending_intent
        awaiting = context.awaiting_param
        value = extract_slot(awaiting, text)
        if value is None:
            if intent in DOCUMENT_INTENTS and awaiting in STRICT_DOCUMENT_SLOTS:
                return BotReply("⚠️ That doesn't look right.\n\n" + SLOT_PROMPTS[awaiting])
            return None

        params: dict[str, Any] = {awaiting: value}
        if intent == "send":
            for key, extra in extract_send_params(text).items():
                if not (context.collected_params or {}).get(key):
                    params.setdefault(key, extra)

        return await self._handle_parsed(
            user, context, ParsedIntent(intent, params, source="slot")
        )

    async def _handle_parsed(
        self, user: User, context: SessionContext, parsed: ParsedIntent
    ) -> BotReply:
        intent = parsed.intent

        if intent == "cancel":
            had_pending = bool(context.pending_intent)
            clear_session(context)
            return BotReply(CANCELLED_MESSAGE if had_pending else NOTHING_TO_CANCEL)
        if intent == "welcome":
            return BotReply(format_welcome(user.first_name), reply_markup=main_menu_keyboard())
        if intent == "help":
            return BotReply(HELP_MESSAGE)
        if intent == "clarification":
            return BotReply(CLARIFICATION_MESSAGE)
        if intent == "unknown":
            return BotReply(UNKNOWN_INTENT)
        if intent == "bridge":
            clear_session(context)
            return BotReply(BRIDGE_NOT_SUPPORTED)
        if intent == "create_wallets":
            clear_session(context)
            return await self.create_wallets(user)

        if intent in WALLET_INTENTS and not await self.wallets.list_wallets(user.id):
            clear_session(context)
            return self._no_wallet_reply()

        if intent == "get_wallet_address":
            return await self.show_wallets(user)
        if intent == "balance":
            return await self.show_balance(
                user, parsed.params.get("network"), parsed.params.get("token")
            )

        if intent in ("offramp", "get_rates") and self.offramp is None:
            clear_session(context)
            return BotReply(OFFRAMP_NOT_CONFIGURED)
        if intent == "swap" and self.cdp is None:
            clear_session(context)
            return BotReply(SWAP_NOT_CONFIGURED)
        if (intent in DOCUMENT_INTENTS or intent == "list_documents") and self.documents is None:
            clear_session(context)
            return BotReply(DOCUMENTS_NOT_CONFIGURED)
        if intent == "list_documents":
            return await self.show_documents(user)

        incoming = parsed.params
        if intent in DOCUMENT_INTENTS:
            incoming = normalize_document_params(incoming)
        merge_session(context, intent, incoming)
        params = dict(context.collected_params)

        if intent in ("offramp", "get_rates"):
            error = self.offramp.validate_request(
                parse_amount(params.get("amount")), params.get("token"), params.get("fiat")
            )
            if error:
                clear_session(context)
                return BotReply(f"⚠️ {error}")

        missing = missing_params(intent, params)
        if missing:
            context.awaiting_param = missing[0]
            return BotReply(SLOT_PROMPTS[missing[0]])

        clear_session(context)
        if intent == "send":
            return await self._run_send(user, params)
        if intent == "swap":
            return await self._run_swap(user, params)
        if intent == "offramp":
            return await self._run_offramp(user, context, params)
        if intent == "get_rates":
            return await self._run_rates(params)
        if intent in DOCUMENT_INTENTS:
            return await self._run_document(user, DOCUMENT_INTENTS[intent], params)
        return BotReply(UNKNOWN_INTENT)

    def _no_wallet_reply(self) -> BotReply:
        return BotReply(NO_WALLET_PROMPT, reply_markup=create_wallets_keyboard())

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def _run_send(self, user: User, params: dict[str, Any]) -> BotReply:
        amount = parse_amount(params.get("amount"))
        if amount is None:
            return BotReply(format_transfer_failed("Amount must be greater than zero."))
        try:
            request = build_transfer_request(
                choose_send_chain(params), params["recipient"], amount, params["token"]
            )
            wallet = await self.wallets.get_or_create_wallet(user.id, request.family)
            result = await self.dispatcher.dispatch(user.id, wallet, request)
        except HedwigError as e:
            self.logger.warning(f"Send failed for user {user.id}: {e}")
            return BotReply(format_transfer_failed(user_facing_reason(e)))

        network = get_network(request.chain)
        return BotReply(
            format_transfer_success(
                request.amount,
                request.asset,
                network.name if network else request.chain,
                request.recipient,
                result.tx_hash,
            ),
            reply_markup=transfer_result_keyboard(result.explorer_url),
        )

    async def _run_swap(self, user: User, params: dict[str, Any]) -> BotReply:
        amount = parse_amount(params.get("amount"))
        from_token = params["from_token"]
        to_token = params["to_token"]
        chain = resolve_chain(params.get("network")) or DEFAULT_CHAIN[ChainFamily.EVM]
        network = get_network(chain)
        if amount is None or network is None:
            return BotReply(format_transfer_failed("Invalid swap request."))
        if network.family != ChainFamily.EVM:
            return BotReply("🔄 Swaps are available on Base and Ethereum only.")
        if from_token == to_token:
            return BotReply("🔄 Pick two different tokens to swap.")

        wallet = await self.wallets.get_wallet(user.id, ChainFamily.EVM)
        if wallet is None:
            return self._no_wallet_reply()

        record = await self.transactions.create_pending(
            user_id=user.id,
            wallet_id=wallet.id,
            chain=network.chain,
            network=to_vendor_network(network.chain),
            action=TransactionAction.SWAP,
            from_address=wallet.address,
            to_address=None,
            amount=amount,
            asset=from_token,
            extra={"to_asset": to_token},
        )
        try:
            quote = await self.cdp.get_swap_quote(
                wallet.address, amount, from_token, to_token, network.vendor_network
            )
            response = await self.cdp.execute_swap(quote["quoteId"])
        except HedwigError as e:
            await self.transactions.mark_status(
                record.id, TransactionStatus.FAILED, error=str(e), attempts=1
            )
            self.logger.warning(f"Swap failed for user {user.id}: {e}")
            return BotReply(format_transfer_failed(user_facing_reason(e)))

        normalized = normalize(response, network.chain)
        if normalized.found:
            await self.transactions.set_hash_once(record.id, normalized.hash)
        await self.transactions.mark_status(record.id, TransactionStatus.PENDING, attempts=1)
        self.logger.success(
            f"Swap submitted for user {user.id}: {amount} {from_token} -> {to_token}"
        )
        return BotReply(
            format_swap_success(
                amount,
                from_token,
                quote.get("toAmount"),
                to_token,
                network.name,
                normalized.hash,
            ),
            reply_markup=explorer_keyboard(normalized.explorer_url),
        )

    async def _run_offramp(
        self, user: User, context: SessionContext, params: dict[str, Any]
    ) -> BotReply:
        wallet = await self.wallets.get_wallet(user.id, ChainFamily.EVM)
        if wallet is None:
            return self._no_wallet_reply()

        currency = params["fiat"]
        try:
            institution = await self.offramp.resolve_institution(
                currency, str(params["institution"])
            )
        except HedwigError as e:
            self.logger.warning(f"Institution lookup failed for {currency}: {e}")
            return BotReply(format_transfer_failed(user_facing_reason(e)))
        if institution is None:
            kept = {k: v for k, v in params.items() if k != "institution"}
            merge_session(context, "offramp", kept, awaiting_param="institution")
            return BotReply(
                "🏦 I couldn't find that bank. " + SLOT_PROMPTS["institution"]
            )

        result = await self.offramp.create_order(
            user_id=user.id,
            wallet=wallet,
            amount=Decimal(str(params["amount"])),
            token=params.get("token") or "USDC",
            currency=currency,
            institution=institution.code,
            account_identifier=str(params["account_number"]),
            network=params.get("network"),
        )
        if not result.success:
            return BotReply(f"⚠️ {result.error}")
        order = result.data
        return BotReply(
            format_offramp_confirmation(order),
            reply_markup=offramp_confirm_keyboard(order.order_id),
        )

    async def _run_document(
        self, user: User, kind: DocumentKind, params: dict[str, Any]
    ) -> BotReply:
        try:
            document = await self.documents.create(user, kind, params)
        except ValueError as e:
            self.logger.warning(f"Document not created for user {user.id}: {e}")
            return BotReply("⚠️ I couldn't read the price. " + SLOT_PROMPTS["price"])
        rendered = await self.documents.render(document)
        return self._document_reply(rendered)

    def _document_reply(self, rendered: RenderedDocument) -> BotReply:
        document = rendered.document
        pdf_ready = rendered.pdf is not None
        return BotReply(
            format_document_created(document, pdf_ready),
            reply_markup=document_keyboard(document.number, document.is_invoice, pdf_ready),
            document=rendered.pdf,
            document_name=rendered.filename if pdf_ready else "",
        )

    async def _run_rates(self, params: dict[str, Any]) -> BotReply:
        amount = parse_amount(params.get("amount")) or Decimal(1)
        token = params.get("token") or "USDC"
        currency = params["fiat"]
        result = await self.offramp.quote(token, amount, currency, params.get("network"))
        if not result.success:
            return BotReply(f"⚠️ {result.error}")
        return BotReply(format_rate_quote(amount, token, currency, result.data["rate"]))
