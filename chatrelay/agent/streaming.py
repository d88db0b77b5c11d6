"""Throttled in-place editing of a reply while the backend streams."""

import time
from typing import Callable

from loguru import logger

from chatrelay.channels.base import BaseChannel, SentMessage
from chatrelay.utils.text import chunk_message, truncate

Clock = Callable[[], float]

DEFAULT_EDIT_INTERVAL_S = 1.5
DEFAULT_PLACEHOLDER = "🤔"


class EditThrottle:
    """Minimum spacing between consecutive edits of one message."""

    def __init__(self, interval: float = DEFAULT_EDIT_INTERVAL_S, clock: Clock = time.monotonic):
        self.interval = max(0.0, float(interval))
        self.clock = clock
        self.last_emit_at: float | None = None
        self.last_text: str | None = None

    def should_emit(self, now: float) -> bool:
        if self.last_emit_at is None:
            return True
        return now - self.last_emit_at >= self.interval

    def record(self, now: float, text: str) -> None:
        self.last_emit_at = now
        self.last_text = text


class StreamingReply:
    """
    A placeholder message that grows into the final answer.

    Partial updates are edited in only when the throttle allows; superseded
    text is never shown. ``finish`` always edits in the complete answer once.
    Transport failures are logged and leave the last displayed text visible.
    """

    def __init__(
        self,
        channel: BaseChannel,
        chat_id: int,
        throttle: EditThrottle | None = None,
        placeholder: str = DEFAULT_PLACEHOLDER,
    ):
        self.channel = channel
        self.chat_id = chat_id
        self.throttle = throttle or EditThrottle()
        self.placeholder = placeholder
        self.message: SentMessage | None = None
        self.edits = 0
        self._finished = False

    @property
    def displayed_text(self) -> str | None:
        return self.message.text if self.message else None

    async def open(self, reply_to: int | None = None) -> SentMessage:
        """Send the placeholder. Raises if it cannot be delivered."""
        self.message = await self.channel.send_text(self.chat_id, self.placeholder, reply_to=reply_to)
        self.throttle.record(self.throttle.clock(), self.placeholder)
        await self._typing()
        return self.message

    async def update(self, text: str) -> None:
        """Show partial text if the throttle interval has elapsed."""
        if self._finished or self.message is None:
            return
        now = self.throttle.clock()
        if not self.throttle.should_emit(now):
            return
        target = truncate(text, self.channel.max_message_length)
        if target == self.message.text:
            return
        self.throttle.record(now, target)
        await self._edit(target)
        await self._typing()

    async def finish(self, text: str) -> None:
        """Show the complete answer, splitting it when it exceeds the channel limit."""
        if self._finished or self.message is None:
            return
        self._finished = True
        head, *rest = chunk_message(text, self.channel.max_message_length)
        if head != self.message.text:
            self.throttle.record(self.throttle.clock(), head)
            await self._edit(head)
        for chunk in rest:
            try:
                await self.channel.send_text(self.chat_id, chunk, reply_to=self.message.message_id)
            except Exception as e:
                logger.error(f"⛔️ Failed to send continuation in chat {self.chat_id}: {e}")
                break

    async def _edit(self, text: str) -> bool:
        if self.message is None:
            return False
        try:
            self.message = await self.channel.edit_text(self.message, text)
        except Exception as e:
            logger.warning(f"⛔️ Edit message error in chat {self.chat_id}: {e}")
            return False
        self.edits += 1
        return True

    async def _typing(self) -> None:
        try:
            await self.channel.send_typing(self.chat_id)
        except Exception as e:
            logger.debug(f"Typing signal failed in chat {self.chat_id}: {e}")
