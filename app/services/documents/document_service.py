"""
Invoice and proposal service.

Drafts are assembled in chat by the conversation layer. Once every field
is collected the document is stored, rendered to PDF and marked sent.
Invoices carry the owner's EVM wallet as the USDC payment address.
"""

import re
import secrets
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.constants import (
    DOCUMENT_CURRENCIES,
    DOCUMENT_DEFAULT_CURRENCY,
    DOCUMENT_HISTORY_LIMIT,
    DOCUMENT_MAX_AMOUNT,
)
from app.models.billing_document import BillingDocument
from app.models.enums import ChainFamily, DocumentKind, DocumentStatus
from app.models.user import User
from app.repositories.billing_document_repository import BillingDocumentRepository
from app.repositories.wallet_repository import WalletRepository
from app.services.base_service import BaseService, ServiceResult, log_operation
from app.services.chains.networks import DEFAULT_CHAIN
from app.services.documents.pdf_renderer import PdfRenderer
from app.services.documents.templates import render_document_html
from app.utils.exceptions import DocumentRenderError
from app.utils.validation import parse_amount


NUMBER_PREFIX = {
    DocumentKind.INVOICE: "INV",
    DocumentKind.PROPOSAL: "PROP",
}

_EMAIL = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
_PRICE = re.compile(
    r"^\$?\s*([0-9][0-9,]*(?:\.[0-9]+)?)\s*([A-Za-z]{3,4})?$"
)
_IN_DAYS = re.compile(r"^(?:in\s+)?(\d{1,3})\s+days?$")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def find_email(text: str) -> str | None:
    """First email address in text."""
    match = _EMAIL.search(text)
    return match.group(0).strip(".,;") if match else None


def parse_price(text: str) -> tuple[Decimal, str] | None:
    """
    Parse an amount with an optional currency code.

    Examples:
        >>> parse_price("1,500 usd")
        (Decimal('1500'), 'USD')
        >>> parse_price("250")
        (Decimal('250'), 'USD')
    """
    match = _PRICE.match(text.strip())
    if not match:
        return None
    amount = parse_amount(match.group(1))
    if amount is None or amount > DOCUMENT_MAX_AMOUNT:
        return None
    currency = (match.group(2) or DOCUMENT_DEFAULT_CURRENCY).upper()
    if currency not in DOCUMENT_CURRENCIES:
        return None
    return amount, currency


def parse_due_date(text: str, today: date | None = None) -> date | None:
    """
    Parse a due date: ``YYYY-MM-DD``, ``30 days``, ``in 14 days``, ``today``
    or ``tomorrow``. Dates in the past are rejected.
    """
    today = today or datetime.now(UTC).date()
    value = text.strip().lower()
    if value == "today":
        return today
    if value == "tomorrow":
        return today + timedelta(days=1)
    match = _IN_DAYS.match(value)
    if match:
        return today + timedelta(days=int(match.group(1)))
    if _ISO_DATE.match(value):
        try:
            parsed = date.fromisoformat(value)
        except ValueError:
            return None
        return parsed if parsed >= today else None
    return None


@dataclass
class RenderedDocument:
    """Stored document plus its PDF (None when rendering failed)."""

    document: BillingDocument
    pdf: bytes | None
    error: str | None = None

    @property
    def filename(self) -> str:
        """Attachment file name."""
        return f"{self.document.number}.pdf"


class DocumentService(BaseService):
    """Creates, renders and tracks invoices and proposals."""

    def __init__(self, session: AsyncSession, renderer: PdfRenderer) -> None:
        """
        Initialize document service.

        Args:
            session: Database session
            renderer: Headless-browser PDF renderer
        """
        super().__init__(session)
        self.renderer = renderer
        self.documents = BillingDocumentRepository(session)
        self.wallets = WalletRepository(session)

    async def _new_number(self, kind: DocumentKind) -> str:
        stamp = datetime.now(UTC).strftime("%Y%m%d")
        while True:
            number = f"{NUMBER_PREFIX[kind]}-{stamp}-{secrets.randbelow(10_000):04d}"
            if await self.documents.get_by_number(number) is None:
                return number

    @log_operation
    async def create(
        self, user: User, kind: DocumentKind, params: dict[str, Any]
    ) -> BillingDocument:
        """
        Store a document from collected conversation parameters.

        Args:
            user: Issuer
            kind: Invoice or proposal
            params: client_name, client_email, description, price and,
                by kind, due_date or scope and timeline

        Returns:
            Stored draft
        """
        parsed = parse_price(str(params["price"]))
        if parsed is None:
            raise ValueError(f"Invalid price: {params['price']!r}")
        amount, currency = parsed
        due_date = None
        if kind == DocumentKind.INVOICE and params.get("due_date"):
            due_date = date.fromisoformat(str(params["due_date"]))

        wallet = await self.wallets.get_by_user_chain(user.id, ChainFamily.EVM)
        document = await self.documents.create(
            user_id=user.id,
            kind=kind.value,
            number=await self._new_number(kind),
            status=DocumentStatus.DRAFT.value,
            issuer_name=user.display_name,
            client_name=str(params["client_name"])[:255],
            client_email=str(params["client_email"])[:255],
            description=str(params["description"]),
            scope=params.get("scope"),
            timeline=(str(params["timeline"])[:255] if params.get("timeline") else None),
            amount=amount,
            currency=currency,
            due_date=due_date,
            pay_to_address=wallet.address if wallet else None,
            network=DEFAULT_CHAIN[ChainFamily.EVM] if wallet else None,
        )
        self.logger.info(
            f"{kind.value.title()} {document.number} created for user {user.id}: "
            f"{amount} {currency}"
        )
        return document

    async def render(self, document: BillingDocument) -> RenderedDocument:
        """
        Render a document to PDF and mark it sent.

        A render failure leaves the document as a draft and is reported in
        ``RenderedDocument.error``.
        """
        try:
            pdf = await self.renderer.render(render_document_html(document))
        except DocumentRenderError as e:
            self.logger.warning(f"PDF for {document.number} not generated: {e}")
            return RenderedDocument(document=document, pdf=None, error=str(e))

        if document.status == DocumentStatus.DRAFT.value:
            document.status = DocumentStatus.SENT.value
            await self.session.flush()
        return RenderedDocument(document=document, pdf=pdf)

    async def render_existing(self, user_id: int, number: str) -> RenderedDocument | None:
        """Re-render one of the user's documents, None when not found."""
        document = await self.documents.get_for_user(user_id, number)
        if document is None:
            return None
        return await self.render(document)

    async def mark_paid(self, user_id: int, number: str) -> ServiceResult:
        """
        Mark an invoice paid.

        Returns:
            ServiceResult with the document
        """
        document = await self.documents.get_for_user(user_id, number, for_update=True)
        if document is None:
            return ServiceResult.fail("I couldn't find that invoice.", "not_found")
        if not document.is_invoice:
            return ServiceResult.fail("Only invoices can be marked as paid.", "not_invoice")
        if document.status == DocumentStatus.CANCELLED.value:
            return ServiceResult.fail("This invoice was cancelled.", "cancelled")
        if document.status != DocumentStatus.PAID.value:
            document.status = DocumentStatus.PAID.value
            await self.session.flush()
            self.logger.info(f"Invoice {number} marked paid by user {user_id}")
        return ServiceResult.ok(document)

    async def cancel(self, user_id: int, number: str) -> ServiceResult:
        """Cancel a document that is not paid."""
        document = await self.documents.get_for_user(user_id, number, for_update=True)
        if document is None:
            return ServiceResult.fail("I couldn't find that document.", "not_found")
        if document.status == DocumentStatus.PAID.value:
            return ServiceResult.fail("A paid invoice can't be cancelled.", "paid")
        document.status = DocumentStatus.CANCELLED.value
        await self.session.flush()
        return ServiceResult.ok(document)

    async def history(self, user_id: int, kind: DocumentKind | None = None) -> list[BillingDocument]:
        """Latest documents of a user."""
        return await self.documents.list_for_user(
            user_id, kind.value if kind else None, limit=DOCUMENT_HISTORY_LIMIT
        )
