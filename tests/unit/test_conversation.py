"""Unit tests for multi-turn conversation handling."""

from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.models.billing_document import BillingDocument
from app.models.enums import ChainFamily, DocumentKind
from app.models.session_context import SessionContext
from app.models.user import User
from app.models.wallet import Wallet
from app.services.conversation_service import (
    ConversationService,
    append_history,
    choose_send_chain,
    extract_slot,
    merge_session,
    missing_params,
    normalize_document_params,
)
from app.services.documents.document_service import RenderedDocument
from app.services.intent.parser import IntentParser
from app.services.transactions.dispatcher import DispatchResult, DispatchState
from bot.messages.user_messages import (
    CANCELLED_MESSAGE,
    DOCUMENTS_NOT_CONFIGURED,
    HELP_MESSAGE,
    NO_WALLET_PROMPT,
    OFFRAMP_NOT_CONFIGURED,
    SLOT_PROMPTS,
    SWAP_NOT_CONFIGURED,
)
from tests.conftest import EVM_ADDRESS, SOLANA_ADDRESS


def _context(**kwargs):
    values = {
        "user_id": 1,
        "pending_intent": None,
        "awaiting_param": None,
        "collected_params": {},
        "history": [],
        "last_active": datetime.now(UTC),
    }
    values.update(kwargs)
    return SessionContext(**values)


def _evm_wallet():
    return Wallet(id=1, user_id=1, chain="evm", address=EVM_ADDRESS, vendor_wallet_id="w-evm")


@pytest.fixture
def user():
    return User(id=1, telegram_id=1001, first_name="Ada")


@pytest.fixture
def context():
    return _context()


@pytest.fixture
def wallet_service():
    service = MagicMock()
    service.list_wallets = AsyncMock(return_value=[_evm_wallet()])
    service.get_wallet = AsyncMock(return_value=_evm_wallet())
    service.get_or_create_wallet = AsyncMock(return_value=_evm_wallet())
    return service


@pytest.fixture
def dispatcher():
    dispatcher = MagicMock()
    dispatcher.dispatch = AsyncMock(
        return_value=DispatchResult(
            state=DispatchState.SENT,
            tx_hash="0xfeed",
            explorer_url="https://sepolia.basescan.org/tx/0xfeed",
            attempts=1,
            record_id=9,
        )
    )
    return dispatcher


@pytest.fixture
def service(mock_session, context, wallet_service, dispatcher):
    service = ConversationService(
        mock_session,
        parser=IntentParser(),
        wallet_service=wallet_service,
        dispatcher=dispatcher,
        balance_service=MagicMock(),
    )
    service.sessions = MagicMock()
    service.sessions.lock_for_user = AsyncMock(return_value=context)
    service.transactions = AsyncMock()
    return service


class TestMergeSession:
    """Tests for last-write-wins session merging."""

    def test_same_intent_keeps_and_overwrites(self):
        """Known keys are kept, incoming non-empty values win."""
        ctx = _context(pending_intent="send", collected_params={"amount": "10", "token": "USDC"})

        merge_session(ctx, "send", {"token": "USDT", "recipient": EVM_ADDRESS, "network": ""})

        assert ctx.collected_params == {
            "amount": "10",
            "token": "USDT",
            "recipient": EVM_ADDRESS,
        }

    def test_new_intent_resets(self):
        """Switching intent starts from scratch."""
        ctx = _context(pending_intent="send", collected_params={"amount": "10"})

        merge_session(ctx, "swap", {"from_token": "ETH"}, awaiting_param="to_token")

        assert ctx.pending_intent == "swap"
        assert ctx.collected_params == {"from_token": "ETH"}
        assert ctx.awaiting_param == "to_token"

    def test_none_clears(self):
        """A None intent clears the session."""
        ctx = _context(pending_intent="send", awaiting_param="recipient", collected_params={"a": 1})

        merge_session(ctx, None)

        assert ctx.pending_intent is None
        assert ctx.awaiting_param is None
        assert ctx.collected_params == {}

    def test_history_capped(self):
        """History keeps only the most recent turns."""
        ctx = _context()
        for i in range(20):
            append_history(ctx, "user", f"message {i}")
        assert len(ctx.history) == 8
        assert ctx.history[-1]["content"] == "message 19"


class TestSlotHelpers:
    """Tests for slot extraction and chain choice."""

    def test_missing_params_order(self):
        """Missing parameters follow the ask order."""
        assert missing_params("send", {"token": "USDC"}) == ["amount", "recipient"]
        assert missing_params("balance", {}) == []

    @pytest.mark.parametrize(
        "param,text,expected",
        [
            ("amount", "make it 25", "25"),
            ("token", "usdt please", "USDT"),
            ("recipient", f"to {EVM_ADDRESS}", EVM_ADDRESS),
            ("fiat", "kes", "KES"),
            ("account_number", "0123 456 789", "0123456789"),
            ("institution", "  GTBank ", "GTBank"),
            ("recipient", "my friend", None),
        ],
    )
    def test_extract_slot(self, param, text, expected):
        """Replies are read for the requested slot only."""
        assert extract_slot(param, text) == expected

    def test_choose_send_chain(self):
        """Explicit network wins, Solana recipients pick Solana, else Base."""
        assert choose_send_chain({"network": "ethereum", "recipient": EVM_ADDRESS}) == "ethereum"
        assert choose_send_chain({"token": "USDC", "recipient": SOLANA_ADDRESS}) == "solana"
        assert choose_send_chain({"token": "SOL"}) == "solana"
        assert choose_send_chain({"token": "USDC", "recipient": EVM_ADDRESS}) == "base"


class TestSendConversation:
    """Multi-turn send flow."""

    @pytest.mark.asyncio
    async def test_no_wallet_prompts_creation(self, service, user, wallet_service, dispatcher):
        """A user without wallets is asked to create them; nothing is sent."""
        wallet_service.list_wallets.return_value = []

        reply = await service.handle_text(user, f"send 10 USDC to {EVM_ADDRESS}")

        assert reply.text == NO_WALLET_PROMPT
        assert reply.reply_markup is not None
        dispatcher.dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_recipient_then_supplied(self, service, user, context, dispatcher):
        """The bot asks for the recipient, then dispatches on the next turn."""
        first = await service.handle_text(user, "send 10 USDC")

        assert first.text == SLOT_PROMPTS["recipient"]
        assert context.pending_intent == "send"
        assert context.awaiting_param == "recipient"
        assert context.collected_params == {"amount": "10", "token": "USDC"}
        dispatcher.dispatch.assert_not_awaited()

        second = await service.handle_text(user, EVM_ADDRESS)

        dispatcher.dispatch.assert_awaited_once()
        request = dispatcher.dispatch.await_args.args[2]
        assert request.chain == "base"
        assert request.recipient == EVM_ADDRESS
        assert request.amount == Decimal("10")
        assert request.asset == "USDC"
        assert "0xfeed" in second.text
        assert context.pending_intent is None
        assert context.collected_params == {}

    @pytest.mark.asyncio
    async def test_full_send_single_turn(self, service, user, wallet_service, dispatcher):
        """All parameters at once dispatch immediately from the right family."""
        await service.handle_text(user, f"send 0.1 SOL to {SOLANA_ADDRESS}")

        wallet_service.get_or_create_wallet.assert_awaited_once_with(1, ChainFamily.SOLANA)
        dispatcher.dispatch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cancel_during_slot(self, service, user, context, dispatcher):
        """Cancel while a slot is pending clears the session."""
        await service.handle_text(user, "send 10 USDC")

        reply = await service.handle_text(user, "cancel")

        assert reply.text == CANCELLED_MESSAGE
        assert context.pending_intent is None
        dispatcher.dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unrelated_reply_parsed_as_new_intent(self, service, user, context):
        """A reply without the awaited slot is treated as a fresh message."""
        await service.handle_text(user, "send 10 USDC")

        reply = await service.handle_text(user, "what can you do")

        assert reply.text == HELP_MESSAGE
        assert context.pending_intent == "send"

    @pytest.mark.asyncio
    async def test_idle_session_dropped(self, service, user, context, dispatcher):
        """A stale pending intent does not capture the next address."""
        context.pending_intent = "send"
        context.awaiting_param = "recipient"
        context.collected_params = {"amount": "10", "token": "USDC"}
        context.last_active = datetime.now(UTC) - timedelta(hours=2)

        await service.handle_text(user, EVM_ADDRESS)

        dispatcher.dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_history_recorded(self, service, user, context):
        """Both turns of an exchange are appended to history."""
        await service.handle_text(user, "hi")

        assert [turn["role"] for turn in context.history] == ["user", "assistant"]


class TestUnconfiguredVendors:
    """Swap and off-ramp replies when vendors are missing."""

    @pytest.mark.asyncio
    async def test_swap_without_cdp(self, service, user):
        reply = await service.handle_text(user, "swap 1 ETH to USDC")
        assert reply.text == SWAP_NOT_CONFIGURED

    @pytest.mark.asyncio
    async def test_offramp_without_paycrest(self, service, user):
        reply = await service.handle_text(user, "withdraw 50 USDC to NGN")
        assert reply.text == OFFRAMP_NOT_CONFIGURED

    @pytest.mark.asyncio
    async def test_invoice_without_documents(self, service, user):
        reply = await service.handle_text(user, "create an invoice")
        assert reply.text == DOCUMENTS_NOT_CONFIGURED


def _invoice(**kwargs):
    values = {
        "id": 5,
        "user_id": 1,
        "kind": DocumentKind.INVOICE.value,
        "number": "INV-20260301-0042",
        "status": "sent",
        "issuer_name": "Ada",
        "client_name": "Bob Smith",
        "client_email": "bob@example.com",
        "description": "Website redesign",
        "amount": Decimal("1500"),
        "currency": "USD",
        "due_date": date(2099, 1, 31),
        "pay_to_address": EVM_ADDRESS,
        "network": "base",
    }
    values.update(kwargs)
    return BillingDocument(**values)


@pytest.fixture
def documents():
    documents = MagicMock()
    invoice = _invoice()
    documents.create = AsyncMock(return_value=invoice)
    documents.render = AsyncMock(
        return_value=RenderedDocument(document=invoice, pdf=b"%PDF-1.7")
    )
    documents.history = AsyncMock(return_value=[invoice])
    return documents


@pytest.fixture
def document_conversation(service, documents):
    service.documents = documents
    return service


class TestDocumentParams:
    """Canonical invoice and proposal parameters."""

    def test_amount_and_fiat_become_price(self):
        params = normalize_document_params({"amount": "1500", "fiat": "EUR", "client_name": " Acme "})
        assert params == {"price": "1500 EUR", "client_name": "Acme"}

    def test_invalid_values_dropped(self):
        params = normalize_document_params(
            {"client_email": "not an email", "due_date": "someday", "price": "lots"}
        )
        assert params == {}

    @pytest.mark.parametrize(
        "param,text,expected",
        [
            ("client_email", "it's bob@example.com.", "bob@example.com"),
            ("price", "1,500 usd", "1500 USD"),
            ("price", "250", "250 USD"),
            ("price", "250 DOGE", None),
            ("due_date", "2099-01-31", "2099-01-31"),
            ("due_date", "2001-01-01", None),
            ("client_name", "  ", None),
        ],
    )
    def test_extract_document_slot(self, param, text, expected):
        assert extract_slot(param, text) == expected


class TestDocumentConversation:
    """Invoice and proposal collection across turns."""

    @pytest.mark.asyncio
    async def test_invoice_collected_then_rendered(
        self, document_conversation, user, context, documents
    ):
        first = await document_conversation.handle_text(
            user, "create an invoice for bob@example.com"
        )
        assert first.text == SLOT_PROMPTS["client_name"]
        assert context.collected_params == {"client_email": "bob@example.com"}

        await document_conversation.handle_text(user, "Bob Smith")
        await document_conversation.handle_text(user, "Website redesign")
        await document_conversation.handle_text(user, "1,500 usd")
        documents.create.assert_not_awaited()

        reply = await document_conversation.handle_text(user, "2099-01-31")

        documents.create.assert_awaited_once()
        _, kind, params = documents.create.await_args.args
        assert kind == DocumentKind.INVOICE
        assert params == {
            "client_email": "bob@example.com",
            "client_name": "Bob Smith",
            "description": "Website redesign",
            "price": "1500 USD",
            "due_date": "2099-01-31",
        }
        assert reply.document == b"%PDF-1.7"
        assert reply.document_name == "INV-20260301-0042.pdf"
        assert "INV-20260301-0042" in reply.text
        assert reply.reply_markup is not None
        assert context.pending_intent is None

    @pytest.mark.asyncio
    async def test_bad_price_asked_again(self, document_conversation, user, context, documents):
        context.pending_intent = "create_invoice"
        context.awaiting_param = "price"
        context.collected_params = {
            "client_name": "Bob",
            "client_email": "bob@example.com",
            "description": "Logo",
        }

        reply = await document_conversation.handle_text(user, "a fair amount")

        assert reply.text.endswith(SLOT_PROMPTS["price"])
        assert context.pending_intent == "create_invoice"
        assert context.awaiting_param == "price"
        documents.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_render_failure_still_replies(self, document_conversation, user, documents):
        invoice = _invoice(status="draft")
        documents.render.return_value = RenderedDocument(
            document=invoice, pdf=None, error="PDF generation timed out"
        )
        context_params = {
            "client_name": "Bob",
            "client_email": "bob@example.com",
            "description": "Logo",
            "price": "100 USD",
            "due_date": "2099-01-31",
        }
        reply = await document_conversation._run_document(
            user, DocumentKind.INVOICE, context_params
        )

        assert reply.document is None
        assert "couldn't generate the PDF" in reply.text
        buttons = [b.text for row in reply.reply_markup.inline_keyboard for b in row]
        assert "🔁 Retry PDF" in buttons

    @pytest.mark.asyncio
    async def test_proposal_from_button(self, document_conversation, user, context):
        reply = await document_conversation.start_document(user, DocumentKind.PROPOSAL)

        assert reply.text == SLOT_PROMPTS["client_name"]
        assert context.pending_intent == "create_proposal"

    @pytest.mark.asyncio
    async def test_list_documents(self, document_conversation, user, documents):
        reply = await document_conversation.handle_text(user, "show my invoices")

        documents.history.assert_awaited_once_with(1)
        assert "INV-20260301-0042" in reply.text
