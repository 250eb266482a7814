"""
Invoice and proposal handlers.

/invoice, /proposal and the menu buttons start collecting a document in
the conversation layer. Document buttons carry the document number.
"""

from typing import Any

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import CallbackQuery, Message
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import DocumentKind
from app.models.user import User
from app.services.container import ServiceContainer
from bot.utils.callback_parsers import parse_callback_suffix
from bot.utils.replies import send_callback_reply, send_reply


router = Router(name="documents")

PDF_PREFIX = "document_pdf_"
PAID_PREFIX = "document_paid_"
CANCEL_PREFIX = "document_cancel_"


@router.message(Command("invoice"))
async def cmd_invoice(
    message: Message,
    session: AsyncSession,
    services: ServiceContainer,
    user: User,
    **data: Any,
) -> None:
    """Start an invoice."""
    conversation = services.conversation_service(session)
    await send_reply(message, await conversation.start_document(user, DocumentKind.INVOICE))


@router.message(Command("proposal"))
async def cmd_proposal(
    message: Message,
    session: AsyncSession,
    services: ServiceContainer,
    user: User,
    **data: Any,
) -> None:
    """Start a proposal."""
    conversation = services.conversation_service(session)
    await send_reply(message, await conversation.start_document(user, DocumentKind.PROPOSAL))


@router.message(Command("documents"))
async def cmd_documents(
    message: Message,
    session: AsyncSession,
    services: ServiceContainer,
    user: User,
    **data: Any,
) -> None:
    """List recent invoices and proposals."""
    conversation = services.conversation_service(session)
    await send_reply(message, await conversation.show_documents(user))


@router.callback_query(F.data.in_({"action_invoice", "action_proposal"}))
async def handle_action_document(
    callback: CallbackQuery,
    session: AsyncSession,
    services: ServiceContainer,
    user: User,
    **data: Any,
) -> None:
    """Start an invoice or proposal from the main menu."""
    kind = DocumentKind.INVOICE if callback.data == "action_invoice" else DocumentKind.PROPOSAL
    conversation = services.conversation_service(session)
    await send_callback_reply(callback, await conversation.start_document(user, kind))


@router.callback_query(F.data.startswith(PDF_PREFIX))
async def handle_document_pdf(
    callback: CallbackQuery,
    session: AsyncSession,
    services: ServiceContainer,
    user: User,
    **data: Any,
) -> None:
    """
    Send the PDF of a document again.

    Also serves as the retry button when the first render failed.

    Args:
        callback: Button press
        session: Database session
        services: Service container
        user: Current user
        **data: Additional handler data
    """
    number = parse_callback_suffix(callback.data, PDF_PREFIX)
    if number is None:
        await callback.answer("Invalid document", show_alert=True)
        return
    conversation = services.conversation_service(session)
    await send_callback_reply(callback, await conversation.document_pdf(user, number))


@router.callback_query(F.data.startswith(PAID_PREFIX))
async def handle_document_paid(
    callback: CallbackQuery,
    session: AsyncSession,
    services: ServiceContainer,
    user: User,
    **data: Any,
) -> None:
    """Mark an invoice paid."""
    number = parse_callback_suffix(callback.data, PAID_PREFIX)
    if number is None:
        await callback.answer("Invalid document", show_alert=True)
        return
    logger.info(f"User {user.id} marked {number} paid")
    conversation = services.conversation_service(session)
    await send_callback_reply(callback, await conversation.mark_document_paid(user, number))


@router.callback_query(F.data.startswith(CANCEL_PREFIX))
async def handle_document_cancel(
    callback: CallbackQuery,
    session: AsyncSession,
    services: ServiceContainer,
    user: User,
    **data: Any,
) -> None:
    """Cancel an unpaid document."""
    number = parse_callback_suffix(callback.data, CANCEL_PREFIX)
    if number is None:
        await callback.answer("Invalid document", show_alert=True)
        return
    if isinstance(callback.message, Message):
        await callback.message.edit_reply_markup(reply_markup=None)
    conversation = services.conversation_service(session)
    await send_callback_reply(callback, await conversation.cancel_document(user, number))
