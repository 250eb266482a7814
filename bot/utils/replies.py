"""
Sending conversation replies.
"""

from aiogram.types import BufferedInputFile, CallbackQuery, Message

from app.services.conversation_service import BotReply


async def send_reply(message: Message, reply: BotReply) -> None:
    """Answer a message with a BotReply, attaching its document if any."""
    await message.answer(
        reply.text,
        reply_markup=reply.reply_markup,
        parse_mode=reply.parse_mode,
        disable_web_page_preview=True,
    )
    if reply.document is not None:
        await message.answer_document(
            BufferedInputFile(reply.document, filename=reply.document_name or "document.pdf")
        )


async def send_callback_reply(callback: CallbackQuery, reply: BotReply) -> None:
    """Acknowledge a button press and answer in its chat."""
    await callback.answer()
    if isinstance(callback.message, Message):
        await send_reply(callback.message, reply)
