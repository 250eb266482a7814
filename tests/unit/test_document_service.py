"""Unit tests for invoices and proposals."""

from datetime import UTC, date, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.models.billing_document import BillingDocument
from app.models.enums import DocumentKind, DocumentStatus
from app.models.user import User
from app.models.wallet import Wallet
from app.services.documents.document_service import (
    DocumentService,
    find_email,
    parse_due_date,
    parse_price,
)
from app.services.documents.templates import render_invoice_html, render_proposal_html
from app.utils.exceptions import DocumentRenderError
from tests.conftest import EVM_ADDRESS


TODAY = date(2026, 3, 1)


def _document(kind=DocumentKind.INVOICE, status=DocumentStatus.DRAFT, **kwargs):
    values = {
        "id": 1,
        "user_id": 1,
        "kind": kind.value,
        "number": "INV-20260301-0001",
        "status": status.value,
        "issuer_name": "Ada",
        "client_name": "Bob",
        "client_email": "bob@example.com",
        "description": "Logo design",
        "amount": Decimal("1500"),
        "currency": "USD",
        "due_date": date(2026, 3, 31),
        "pay_to_address": EVM_ADDRESS,
        "network": "base",
        "created_at": datetime(2026, 3, 1, tzinfo=UTC),
    }
    values.update(kwargs)
    return BillingDocument(**values)


@pytest.fixture
def user():
    return User(id=1, telegram_id=1001, first_name="Ada")


@pytest.fixture
def renderer():
    renderer = MagicMock()
    renderer.render = AsyncMock(return_value=b"%PDF")
    return renderer


@pytest.fixture
def service(mock_session, renderer):
    service = DocumentService(mock_session, renderer)
    service.documents = MagicMock()
    service.documents.get_by_number = AsyncMock(return_value=None)
    service.documents.create = AsyncMock(side_effect=lambda **kw: BillingDocument(id=7, **kw))
    service.documents.get_for_user = AsyncMock()
    service.documents.list_for_user = AsyncMock(return_value=[])
    service.wallets = MagicMock()
    service.wallets.get_by_user_chain = AsyncMock(
        return_value=Wallet(id=1, user_id=1, chain="evm", address=EVM_ADDRESS, vendor_wallet_id="w")
    )
    return service


class TestParsing:
    """Free-text document fields."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("1,500 usd", (Decimal("1500"), "USD")),
            ("$250", (Decimal("250"), "USD")),
            ("99.5 EUR", (Decimal("99.5"), "EUR")),
            ("100 NGN", (Decimal("100"), "NGN")),
            ("0", None),
            ("100 DOGE", None),
            ("2000000000 USD", None),
            ("about a grand", None),
        ],
    )
    def test_parse_price(self, text, expected):
        assert parse_price(text) == expected

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("today", TODAY),
            ("Tomorrow", date(2026, 3, 2)),
            ("14 days", date(2026, 3, 15)),
            ("in 30 days", date(2026, 3, 31)),
            ("2026-04-15", date(2026, 4, 15)),
            ("2026-02-28", None),
            ("2026-02-30", None),
            ("next week", None),
        ],
    )
    def test_parse_due_date(self, text, expected):
        assert parse_due_date(text, today=TODAY) == expected

    def test_find_email(self):
        assert find_email("send it to bob@example.com.") == "bob@example.com"
        assert find_email("no email here") is None


class TestCreate:
    """Storing a document from chat parameters."""

    @pytest.mark.asyncio
    async def test_invoice_created_as_draft(self, service, user):
        document = await service.create(
            user,
            DocumentKind.INVOICE,
            {
                "client_name": "Bob",
                "client_email": "bob@example.com",
                "description": "Logo design",
                "price": "1500 USD",
                "due_date": "2026-03-31",
            },
        )

        assert document.kind == "invoice"
        assert document.status == "draft"
        assert document.number.startswith("INV-")
        assert document.amount == Decimal("1500")
        assert document.currency == "USD"
        assert document.due_date == date(2026, 3, 31)
        assert document.issuer_name == "Ada"
        assert document.pay_to_address == EVM_ADDRESS
        assert document.network == "base"

    @pytest.mark.asyncio
    async def test_proposal_has_no_due_date(self, service, user):
        document = await service.create(
            user,
            DocumentKind.PROPOSAL,
            {
                "client_name": "Bob",
                "client_email": "bob@example.com",
                "description": "Mobile app",
                "scope": "Design and build",
                "timeline": "6 weeks",
                "price": "9000 EUR",
            },
        )

        assert document.number.startswith("PROP-")
        assert document.due_date is None
        assert document.timeline == "6 weeks"

    @pytest.mark.asyncio
    async def test_without_wallet_no_payment_address(self, service, user):
        service.wallets.get_by_user_chain.return_value = None

        document = await service.create(
            user,
            DocumentKind.INVOICE,
            {"client_name": "Bob", "client_email": "b@x.io", "description": "x", "price": "10"},
        )

        assert document.pay_to_address is None
        assert document.network is None

    @pytest.mark.asyncio
    async def test_invalid_price_rejected(self, service, user):
        with pytest.raises(ValueError):
            await service.create(
                user,
                DocumentKind.INVOICE,
                {"client_name": "Bob", "client_email": "b@x.io", "description": "x", "price": "lots"},
            )
        service.documents.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_number_collision_retried(self, service, user):
        service.documents.get_by_number.side_effect = [_document(), None]

        await service.create(
            user,
            DocumentKind.INVOICE,
            {"client_name": "Bob", "client_email": "b@x.io", "description": "x", "price": "10"},
        )

        assert service.documents.get_by_number.await_count == 2


class TestRender:
    """PDF rendering and status changes."""

    @pytest.mark.asyncio
    async def test_render_marks_sent(self, service, renderer, mock_session):
        document = _document()

        rendered = await service.render(document)

        assert rendered.pdf == b"%PDF"
        assert rendered.filename == "INV-20260301-0001.pdf"
        assert document.status == "sent"
        mock_session.flush.assert_awaited()

    @pytest.mark.asyncio
    async def test_render_failure_keeps_draft(self, service, renderer):
        renderer.render.side_effect = DocumentRenderError("PDF generation timed out")
        document = _document()

        rendered = await service.render(document)

        assert rendered.pdf is None
        assert rendered.error == "PDF generation timed out"
        assert document.status == "draft"

    @pytest.mark.asyncio
    async def test_paid_invoice_stays_paid(self, service):
        document = _document(status=DocumentStatus.PAID)

        await service.render(document)

        assert document.status == "paid"

    @pytest.mark.asyncio
    async def test_render_existing_not_found(self, service):
        service.documents.get_for_user.return_value = None
        assert await service.render_existing(1, "INV-X") is None


class TestStatusChanges:
    """Marking paid and cancelling."""

    @pytest.mark.asyncio
    async def test_mark_paid(self, service):
        document = _document(status=DocumentStatus.SENT)
        service.documents.get_for_user.return_value = document

        result = await service.mark_paid(1, document.number)

        assert result.success
        assert document.status == "paid"
        service.documents.get_for_user.assert_awaited_once_with(1, document.number, for_update=True)

    @pytest.mark.asyncio
    async def test_proposal_cannot_be_paid(self, service):
        service.documents.get_for_user.return_value = _document(kind=DocumentKind.PROPOSAL)

        result = await service.mark_paid(1, "PROP-1")

        assert not result.success
        assert result.error_code == "not_invoice"

    @pytest.mark.asyncio
    async def test_cancelled_invoice_cannot_be_paid(self, service):
        service.documents.get_for_user.return_value = _document(status=DocumentStatus.CANCELLED)

        result = await service.mark_paid(1, "INV-1")

        assert result.error_code == "cancelled"

    @pytest.mark.asyncio
    async def test_paid_invoice_cannot_be_cancelled(self, service):
        document = _document(status=DocumentStatus.PAID)
        service.documents.get_for_user.return_value = document

        result = await service.cancel(1, document.number)

        assert result.error_code == "paid"
        assert document.status == "paid"

    @pytest.mark.asyncio
    async def test_cancel(self, service):
        document = _document(status=DocumentStatus.SENT)
        service.documents.get_for_user.return_value = document

        result = await service.cancel(1, document.number)

        assert result.success
        assert document.status == "cancelled"

    @pytest.mark.asyncio
    async def test_other_users_document_not_found(self, service):
        service.documents.get_for_user.return_value = None

        result = await service.cancel(2, "INV-20260301-0001")

        assert result.error_code == "not_found"


class TestTemplates:
    """HTML pages."""

    def test_invoice_values_escaped(self):
        html = render_invoice_html(
            _document(client_name="<script>alert(1)</script>", description="A & B")
        )

        assert "<script>" not in html
        assert "&lt;script&gt;" in html
        assert "A &amp; B" in html
        assert "1,500.00 USD" in html
        assert "2026-03-31" in html
        assert EVM_ADDRESS in html

    def test_proposal_valid_until(self):
        html = render_proposal_html(
            _document(
                kind=DocumentKind.PROPOSAL,
                number="PROP-20260301-0001",
                scope="Design",
                timeline="2 weeks",
                due_date=None,
            )
        )

        assert "Proposal" in html
        assert "2026-03-31" in html
        assert "2 weeks" in html

    def test_no_wallet_no_payment_block(self):
        html = render_invoice_html(_document(pay_to_address=None, network=None))
        assert "Pay in USDC" not in html
