"""Event types flowing from chat channels into the relay loop."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ChatKind(str, Enum):
    """Kind of chat an event originates from."""

    PRIVATE = "private"
    GROUP = "group"

    @classmethod
    def from_telegram(cls, chat_type: str | None) -> "ChatKind":
        # group, supergroup and channel all behave as shared chats
        return cls.PRIVATE if chat_type == "private" else cls.GROUP


@dataclass(frozen=True)
class Chat:
    """Chat an event was received in."""

    id: int
    kind: ChatKind
    title: str | None = None

    @property
    def is_private(self) -> bool:
        return self.kind is ChatKind.PRIVATE

    @property
    def label(self) -> str:
        if self.is_private:
            return "private chat"
        return f"group {self.title or ''} ({self.id})"


@dataclass(frozen=True)
class Sender:
    """User who sent an event."""

    id: int
    username: str | None = None

    @property
    def label(self) -> str:
        return f"@{self.username or ''} ({self.id})"


@dataclass(frozen=True)
class CommandSpan:
    """Character span of a bot command entity inside the message text."""

    offset: int
    length: int


@dataclass(frozen=True)
class ReplyRef:
    """Reference to the message an event replies to."""

    message_id: int
    from_bot: bool = False


@dataclass(frozen=True)
class InboundEvent:
    """A text message received from a chat channel."""

    chat: Chat
    sender: Sender
    message_id: int
    text: str = ""
    command_spans: tuple[CommandSpan, ...] = ()
    reply_to: ReplyRef | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def replies_to_bot(self) -> bool:
        return self.reply_to is not None and self.reply_to.from_bot
