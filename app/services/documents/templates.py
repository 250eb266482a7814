"""
HTML templates for invoices and proposals.

Every user-supplied value is HTML-escaped before it is placed in the page.
"""

from datetime import timedelta
from html import escape

from app.config.constants import PROPOSAL_VALID_DAYS
from app.models.billing_document import BillingDocument
from app.services.chains.networks import display_name
from app.utils.formatters import format_money


STYLE = """
body { font-family: Helvetica, Arial, sans-serif; color: #1f2937; font-size: 12px; }
h1 { font-size: 26px; margin: 0 0 4px 0; color: #111827; }
.muted { color: #6b7280; }
.header { display: flex; justify-content: space-between; margin-bottom: 32px; }
.section { margin-bottom: 24px; }
.section-title { font-size: 14px; font-weight: bold; margin-bottom: 8px; color: #374151; }
table { width: 100%; border-collapse: collapse; }
th, td { text-align: left; padding: 8px; border-bottom: 1px solid #e5e7eb; }
.total { font-size: 16px; font-weight: bold; text-align: right; margin-top: 12px; }
.pay { background: #f3f4f6; padding: 12px; border-radius: 6px; word-break: break-all; }
.pre { white-space: pre-wrap; }
"""


def _page(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html><html><head><meta charset='utf-8'>"
        f"<title>{escape(title)}</title><style>{STYLE}</style></head>"
        f"<body>{body}</body></html>"
    )


def _payment_block(document: BillingDocument) -> str:
    if not document.pay_to_address:
        return ""
    network = display_name(document.network) if document.network else "Base"
    return (
        "<div class='section'><div class='section-title'>Payment</div>"
        "<div class='pay'>"
        f"Pay in USDC on {escape(network)} to:<br><strong>{escape(document.pay_to_address)}</strong>"
        "</div></div>"
    )


def render_invoice_html(document: BillingDocument) -> str:
    """
    Build the invoice page.

    Args:
        document: Invoice

    Returns:
        HTML document
    """
    issued = document.created_at.date().isoformat() if document.created_at else ""
    due = document.due_date.isoformat() if document.due_date else "-"
    total = format_money(document.amount, document.currency)
    body = (
        "<div class='header'>"
        f"<div><h1>Invoice</h1><div class='muted'>{escape(document.number)}</div></div>"
        f"<div>Issued: {escape(issued)}<br>Due: {escape(due)}</div>"
        "</div>"
        "<div class='section'><div class='section-title'>From</div>"
        f"{escape(document.issuer_name)}</div>"
        "<div class='section'><div class='section-title'>Bill To</div>"
        f"{escape(document.client_name)}<br><span class='muted'>{escape(document.client_email)}</span></div>"
        "<div class='section'><table>"
        "<tr><th>Description</th><th>Amount</th></tr>"
        f"<tr><td class='pre'>{escape(document.description)}</td><td>{escape(total)}</td></tr>"
        "</table>"
        f"<div class='total'>Total due: {escape(total)}</div></div>"
        f"{_payment_block(document)}"
    )
    return _page(f"Invoice {document.number}", body)


def render_proposal_html(document: BillingDocument) -> str:
    """Build the proposal page."""
    issued = document.created_at.date() if document.created_at else None
    valid_until = (
        (issued + timedelta(days=PROPOSAL_VALID_DAYS)).isoformat() if issued else "-"
    )
    body = (
        "<div class='header'>"
        f"<div><h1>Proposal</h1><div class='muted'>{escape(document.number)}</div></div>"
        f"<div>Prepared for {escape(document.client_name)}<br>"
        f"<span class='muted'>{escape(document.client_email)}</span></div>"
        "</div>"
        "<div class='section'><div class='section-title'>Project</div>"
        f"<div class='pre'>{escape(document.description)}</div></div>"
        "<div class='section'><div class='section-title'>Deliverables</div>"
        f"<div class='pre'>{escape(document.scope or '-')}</div></div>"
        "<div class='section'><div class='section-title'>Timeline</div>"
        f"{escape(document.timeline or '-')}</div>"
        "<div class='section'><div class='section-title'>Investment</div>"
        f"<div class='total'>{escape(format_money(document.amount, document.currency))}</div></div>"
        f"{_payment_block(document)}"
        f"<p class='muted'>Prepared by {escape(document.issuer_name)}. "
        f"This proposal is valid until {escape(valid_until)}.</p>"
    )
    return _page(f"Proposal {document.number}", body)


def render_document_html(document: BillingDocument) -> str:
    """Invoice or proposal page, by document kind."""
    if document.is_invoice:
        return render_invoice_html(document)
    return render_proposal_html(document)
