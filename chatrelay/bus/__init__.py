"""Message bus module for chatrelay."""

from chatrelay.bus.events import Chat, ChatKind, CommandSpan, InboundEvent, ReplyRef, Sender
from chatrelay.bus.queue import MessageBus

__all__ = [
    "MessageBus",
    "InboundEvent",
    "Chat",
    "ChatKind",
    "Sender",
    "CommandSpan",
    "ReplyRef",
]
