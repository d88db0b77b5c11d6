"""Telegram channel implementation using python-telegram-bot."""

import asyncio
import re

from loguru import logger
from telegram import Message, MessageEntity, Update
from telegram.constants import ChatAction, ParseMode
from telegram.error import BadRequest
from telegram.ext import Application, ContextTypes, MessageHandler, filters

from chatrelay.bus.events import Chat, ChatKind, CommandSpan, InboundEvent, ReplyRef, Sender
from chatrelay.bus.queue import MessageBus
from chatrelay.channels.base import BaseChannel, SentMessage
from chatrelay.config.schema import TelegramConfig

MAX_TELEGRAM_LENGTH = 4096

# Applied in order after code spans are protected and HTML is escaped.
_INLINE_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"^#{1,6}\s+(.+)$", re.MULTILINE), r"<b>\1</b>"),
    (re.compile(r"^[-*]\s+", re.MULTILINE), "• "),
    (re.compile(r"\[([^\]]+)\]\(([^)\s]+)\)"), r'<a href="\2">\1</a>'),
    (re.compile(r"\*\*(.+?)\*\*"), r"<b>\1</b>"),
    (re.compile(r"__(.+?)__"), r"<b>\1</b>"),
    (re.compile(r"(?<![A-Za-z0-9*])\*([^*\n]+)\*(?![A-Za-z0-9*])"), r"<i>\1</i>"),
    (re.compile(r"(?<![A-Za-z0-9_])_([^_\n]+)_(?![A-Za-z0-9_])"), r"<i>\1</i>"),
    (re.compile(r"~~(.+?)~~"), r"<s>\1</s>"),
]
_FENCE = re.compile(r"```[\w+-]*\n?([\s\S]*?)```")
_INLINE_CODE = re.compile(r"`([^`\n]+)`")
_PLACEHOLDER = re.compile(r"\x00(\d+)\x00")


def _escape_html(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def markdown_to_telegram_html(text: str) -> str:
    """Render the common subset of Markdown that chat models emit as Telegram HTML."""
    if not text:
        return ""

    protected: list[str] = []

    def _protect(html: str) -> str:
        protected.append(html)
        return f"\x00{len(protected) - 1}\x00"

    text = _FENCE.sub(lambda m: _protect(f"<pre><code>{_escape_html(m.group(1))}</code></pre>"), text)
    text = _INLINE_CODE.sub(lambda m: _protect(f"<code>{_escape_html(m.group(1))}</code>"), text)

    text = _escape_html(text)
    for pattern, replacement in _INLINE_RULES:
        text = pattern.sub(replacement, text)

    return _PLACEHOLDER.sub(lambda m: protected[int(m.group(1))], text)


class TelegramChannel(BaseChannel):
    """
    Telegram channel using long polling.

    Simple and reliable - no webhook/public IP needed.
    """

    name = "telegram"
    max_message_length = MAX_TELEGRAM_LENGTH

    def __init__(self, config: TelegramConfig, bus: MessageBus):
        super().__init__(config, bus)
        self.config: TelegramConfig = config
        self.bot_id: int | None = None
        self._app: Application | None = None

    async def start(self) -> None:
        """Start the Telegram bot with long polling."""
        if not self.config.token:
            raise RuntimeError("Telegram bot token not configured")

        builder = Application.builder().token(self.config.token)
        if self.config.proxy:
            builder = builder.proxy(self.config.proxy).get_updates_proxy(self.config.proxy)
        self._app = builder.build()

        # Only new text messages; commands are classified by the relay loop.
        self._app.add_handler(MessageHandler(filters.TEXT & filters.UpdateType.MESSAGE, self._on_message))

        await self._app.initialize()
        await self._app.start()

        bot_info = await self._app.bot.get_me()
        self.bot_id = bot_info.id
        self.bot_username = bot_info.username or ""
        logger.info(f"🤖 Bot @{self.bot_username} has started...")

        self._running = True
        await self._app.updater.start_polling(
            allowed_updates=["message"],
            drop_pending_updates=True,  # Ignore old messages on startup
        )

        while self._running:
            await asyncio.sleep(1)

    async def stop(self) -> None:
        """Stop the Telegram bot."""
        self._running = False

        if self._app:
            logger.info("Stopping Telegram bot...")
            if self._app.updater and self._app.updater.running:
                await self._app.updater.stop()
            if self._app.running:
                await self._app.stop()
            await self._app.shutdown()
            self._app = None

    async def send_text(self, chat_id: int, text: str, reply_to: int | None = None) -> SentMessage:
        sent = await self._bot.send_message(
            chat_id=chat_id,
            text=text,
            reply_to_message_id=reply_to,
            allow_sending_without_reply=True,
        )
        return SentMessage(chat_id=chat_id, message_id=sent.message_id, text=text)

    async def edit_text(self, message: SentMessage, text: str, markup: bool = True) -> SentMessage:
        if markup and self.config.render_markdown:
            try:
                await self._bot.edit_message_text(
                    text=markdown_to_telegram_html(text),
                    chat_id=message.chat_id,
                    message_id=message.message_id,
                    parse_mode=ParseMode.HTML,
                )
                return SentMessage(message.chat_id, message.message_id, text)
            except BadRequest as e:
                if self._is_not_modified(e):
                    return SentMessage(message.chat_id, message.message_id, text)
                # Fallback to plain text if HTML parsing fails
                logger.debug(f"HTML edit failed, falling back to plain text: {e}")

        try:
            await self._bot.edit_message_text(
                text=text,
                chat_id=message.chat_id,
                message_id=message.message_id,
            )
        except BadRequest as e:
            if not self._is_not_modified(e):
                raise
        return SentMessage(message.chat_id, message.message_id, text)

    async def send_typing(self, chat_id: int) -> None:
        await self._bot.send_chat_action(chat_id=chat_id, action=ChatAction.TYPING)

    async def _on_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle incoming text messages and commands."""
        if not update.message:
            return
        event = self.to_event(update.message)
        if event is None:
            return
        await self._handle_event(event)

    def to_event(self, message: Message) -> InboundEvent | None:
        """Convert a Telegram message into a channel-neutral event."""
        user = message.from_user
        if user is None:
            return None

        spans = tuple(
            CommandSpan(offset=entity.offset, length=entity.length)
            for entity in (message.entities or ())
            if entity.type == MessageEntity.BOT_COMMAND
        )

        reply_to = None
        replied = message.reply_to_message
        if replied is not None:
            from_bot = bool(
                replied.from_user
                and self.bot_id is not None
                and replied.from_user.id == self.bot_id
            )
            reply_to = ReplyRef(message_id=replied.message_id, from_bot=from_bot)

        return InboundEvent(
            chat=Chat(
                id=message.chat.id,
                kind=ChatKind.from_telegram(message.chat.type),
                title=message.chat.title,
            ),
            sender=Sender(id=user.id, username=user.username),
            message_id=message.message_id,
            text=message.text or "",
            command_spans=spans,
            reply_to=reply_to,
            raw=message.to_dict(),
        )

    @property
    def _bot(self):
        if not self._app:
            raise RuntimeError("Telegram bot not running")
        return self._app.bot

    @staticmethod
    def _is_not_modified(exc: BadRequest) -> bool:
        return "message is not modified" in str(exc).lower()
