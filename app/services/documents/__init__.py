"""Invoices and proposals rendered to PDF."""

from app.services.documents.document_service import (
    DocumentService,
    RenderedDocument,
    find_email,
    parse_due_date,
    parse_price,
)
from app.services.documents.pdf_renderer import PdfRenderer
from app.services.documents.templates import render_document_html


__all__ = [
    "DocumentService",
    "PdfRenderer",
    "RenderedDocument",
    "find_email",
    "parse_due_date",
    "parse_price",
    "render_document_html",
]
