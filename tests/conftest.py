import asyncio

import pytest

from chatrelay.bus.events import Chat, ChatKind, CommandSpan, InboundEvent, ReplyRef, Sender
from chatrelay.bus.queue import MessageBus
from chatrelay.channels.base import BaseChannel, SentMessage
from chatrelay.providers.base import Completion, CompletionBackend
from chatrelay.session.state import ConversationContext

BOT_USERNAME = "relay_bot"


class FakeChannel(BaseChannel):
    name = "fake"

    def __init__(self, bot_username: str = BOT_USERNAME, max_message_length: int = 4096) -> None:
        super().__init__(config=None, bus=MessageBus())
        self.bot_username = bot_username
        self.max_message_length = max_message_length
        self.sent: list[dict] = []
        self.edits: list[dict] = []
        self.typing: list[int] = []
        self.fail_edits = 0
        self.fail_sends = False
        self._next_id = 100

    async def start(self) -> None:
        self._running = True

    async def stop(self) -> None:
        self._running = False

    async def send_text(self, chat_id: int, text: str, reply_to: int | None = None) -> SentMessage:
        if self.fail_sends:
            raise RuntimeError("send failed")
        self._next_id += 1
        self.sent.append({"chat_id": chat_id, "text": text, "reply_to": reply_to, "message_id": self._next_id})
        return SentMessage(chat_id=chat_id, message_id=self._next_id, text=text)

    async def edit_text(self, message: SentMessage, text: str, markup: bool = True) -> SentMessage:
        if self.fail_edits:
            self.fail_edits -= 1
            raise RuntimeError("edit failed")
        self.edits.append({"chat_id": message.chat_id, "message_id": message.message_id, "text": text})
        return SentMessage(chat_id=message.chat_id, message_id=message.message_id, text=text)

    async def send_typing(self, chat_id: int) -> None:
        self.typing.append(chat_id)

    def texts(self, chat_id: int | None = None) -> list[str]:
        return [m["text"] for m in self.sent if chat_id is None or m["chat_id"] == chat_id]


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class ScriptedBackend(CompletionBackend):
    """Backend that replays partials and returns a fixed answer."""

    def __init__(
        self,
        text: str = "answer",
        partials: tuple[str, ...] = (),
        error: Exception | None = None,
        delay: float = 0.0,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.text = text
        self.partials = partials
        self.error = error
        self.delay = delay
        self.gate = gate
        self.calls: list[tuple[str, ConversationContext]] = []
        self.active = 0
        self.max_active = 0

    async def submit(self, text, context, on_partial=None, timeout=None):
        self.calls.append((text, context))
        call = self._run(len(self.calls), on_partial)
        if timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout=timeout)

    async def _run(self, n: int, on_partial) -> Completion:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            for partial in self.partials:
                if on_partial is not None:
                    await on_partial(partial)
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return Completion(text=self.text, conversation_id="conv-1", turn_id=f"turn-{n}")
        finally:
            self.active -= 1


def build_event(
    text: str,
    *,
    kind: ChatKind = ChatKind.PRIVATE,
    chat_id: int = 1,
    sender_id: int = 1,
    username: str | None = "alice",
    title: str | None = None,
    message_id: int = 10,
    reply_to: ReplyRef | None = None,
) -> InboundEvent:
    spans: tuple[CommandSpan, ...] = ()
    if text.startswith("/"):
        token = text.split(maxsplit=1)[0]
        spans = (CommandSpan(offset=0, length=len(token)),)
    return InboundEvent(
        chat=Chat(id=chat_id, kind=kind, title=title),
        sender=Sender(id=sender_id, username=username),
        message_id=message_id,
        text=text,
        command_spans=spans,
        reply_to=reply_to,
    )


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_event():
    return build_event
