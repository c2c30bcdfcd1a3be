from __future__ import annotations

import asyncio
import logging
from typing import Any

from telegram import (
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    KeyboardButton,
    LinkPreviewOptions,
    ReplyKeyboardMarkup,
    Update,
)
from telegram.constants import ChatAction
from telegram.ext import ContextTypes

from .constants import NO_INFO_FOUND, NO_THANKS_LABEL, SHARE_LOCATION_LABEL
from .datasets import SymptomReference
from .dialogue import DialogueManager
from .models import Reply

logger = logging.getLogger(__name__)

ERROR_TEXT = "Something went wrong while processing your message. Please try again."


def _service(context: ContextTypes.DEFAULT_TYPE, key: str) -> Any:
    return context.application.bot_data[key]


def _chunk_text(text: str, limit: int = 3800) -> list[str]:
    if len(text) <= limit:
        return [text]

    chunks: list[str] = []
    cursor = 0
    while cursor < len(text):
        next_cursor = min(cursor + limit, len(text))
        if next_cursor < len(text):
            split = text.rfind("\n", cursor, next_cursor)
            if split > cursor:
                next_cursor = split
        chunks.append(text[cursor:next_cursor].strip())
        cursor = next_cursor
    return [c for c in chunks if c]


def _reply_markup(reply: Reply) -> InlineKeyboardMarkup | ReplyKeyboardMarkup | None:
    if reply.choices:
        return InlineKeyboardMarkup(
            [[InlineKeyboardButton(label, callback_data=data) for label, data in row] for row in reply.choices]
        )
    if reply.request_location:
        return ReplyKeyboardMarkup(
            [
                [KeyboardButton(SHARE_LOCATION_LABEL, request_location=True)],
                [KeyboardButton(NO_THANKS_LABEL)],
            ],
            one_time_keyboard=True,
            resize_keyboard=True,
        )
    return None


class TelegramChannel:
    def __init__(self, context: ContextTypes.DEFAULT_TYPE, chat_id: int) -> None:
        self.bot = context.bot
        self.chat_id = chat_id

    async def send(self, reply: Reply) -> None:
        chunks = _chunk_text(reply.text)
        # Keyboards go on the last chunk so buttons follow the full text.
        for chunk in chunks[:-1]:
            await self.bot.send_message(chat_id=self.chat_id, text=chunk)
        await self.bot.send_message(
            chat_id=self.chat_id,
            text=chunks[-1],
            reply_markup=_reply_markup(reply),
            link_preview_options=LinkPreviewOptions(is_disabled=True),
        )

    async def typing(self) -> None:
        await self.bot.send_chat_action(chat_id=self.chat_id, action=ChatAction.TYPING)


async def _report_failure(channel: TelegramChannel, exc: Exception) -> None:
    logger.exception("Unexpected error in handler: %s", exc)
    try:
        await channel.send(Reply(text=ERROR_TEXT))
    except Exception:  # pragma: no cover - transport is down as well
        logger.exception("Failed to deliver error notice to chat %s", channel.chat_id)


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if update.effective_chat is None:
        return

    dialogue: DialogueManager = _service(context, "dialogue")
    channel = TelegramChannel(context, update.effective_chat.id)
    try:
        await dialogue.start(update.effective_chat.id, channel)
    except Exception as exc:  # pragma: no cover - defensive branch
        await _report_failure(channel, exc)


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if update.effective_message is None:
        return
    await update.effective_message.reply_text(
        "Commands:\n"
        "/start - begin (or restart) a health screening\n"
        "/lookup <symptom> - search the reference datasets\n"
        "/help - show this message\n\n"
        "After the screening you can share your location to find nearby hospitals."
    )


async def lookup_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if update.effective_message is None:
        return

    term = " ".join(context.args or []).strip()
    if not term:
        await update.effective_message.reply_text("Usage: /lookup <symptom or disease>, e.g. /lookup fever")
        return

    reference: SymptomReference = _service(context, "reference")
    results = [
        result
        for result in (reference.search_dataset1(term), reference.search_dataset2(term))
        if result != NO_INFO_FOUND
    ]
    text = "\n".join(results) if results else NO_INFO_FOUND
    for chunk in _chunk_text(text):
        await update.effective_message.reply_text(chunk)


async def callback_query_handler(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    if query is None or update.effective_chat is None:
        return

    # The conversation lock must be queued before the first await.
    answered = asyncio.ensure_future(query.answer())

    dialogue: DialogueManager = _service(context, "dialogue")
    channel = TelegramChannel(context, update.effective_chat.id)
    try:
        await dialogue.handle_choice(update.effective_chat.id, query.data or "", channel)
    except Exception as exc:  # pragma: no cover - defensive branch
        await _report_failure(channel, exc)
    finally:
        await answered


async def location_message_handler(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    if message is None or message.location is None or update.effective_chat is None:
        return

    dialogue: DialogueManager = _service(context, "dialogue")
    channel = TelegramChannel(context, update.effective_chat.id)
    try:
        await dialogue.handle_location(
            update.effective_chat.id,
            message.location.latitude,
            message.location.longitude,
            channel,
        )
    except Exception as exc:  # pragma: no cover - defensive branch
        await _report_failure(channel, exc)


async def text_message_handler(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    if message is None or update.effective_chat is None:
        return

    text = (message.text or "").strip()
    if not text:
        return

    dialogue: DialogueManager = _service(context, "dialogue")
    channel = TelegramChannel(context, update.effective_chat.id)
    try:
        await dialogue.handle_text(update.effective_chat.id, text, channel)
    except Exception as exc:  # pragma: no cover - defensive branch
        await _report_failure(channel, exc)
