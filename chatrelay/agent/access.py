"""Static allow-list access control."""

from collections.abc import Iterable
from dataclasses import dataclass

from loguru import logger

from chatrelay.bus.events import ChatKind, InboundEvent
from chatrelay.channels.base import BaseChannel

PRIVATE_DENIED_NOTICE = "⛔️ Sorry, you are not my owner. I cannot chat with you or execute your command."
GROUP_DENIED_NOTICE = "⛔️ Sorry, I'm not supposed to work here. Please remove me from the group."


@dataclass(frozen=True)
class AccessPolicy:
    """
    Who may talk to the bot.

    ``owner_ids`` lists the users allowed in private chats (and who may run
    owner-only commands); ``group_ids`` lists the group chats the bot serves.
    An empty set leaves that chat kind unrestricted.
    """

    owner_ids: frozenset[int] = frozenset()
    group_ids: frozenset[int] = frozenset()

    @classmethod
    def from_lists(cls, owner_ids: Iterable[int] = (), group_ids: Iterable[int] = ()) -> "AccessPolicy":
        return cls(owner_ids=frozenset(owner_ids), group_ids=frozenset(group_ids))

    def is_allowed(self, chat_kind: ChatKind, chat_id: int, sender_id: int) -> bool:
        if chat_kind is ChatKind.PRIVATE:
            return not self.owner_ids or sender_id in self.owner_ids
        return not self.group_ids or chat_id in self.group_ids

    def is_owner(self, sender_id: int) -> bool:
        return sender_id in self.owner_ids


class AccessController:
    """Applies an ``AccessPolicy`` to events, notifying and logging denials."""

    def __init__(self, policy: AccessPolicy, channel: BaseChannel):
        self.policy = policy
        self.channel = channel

    async def check(self, event: InboundEvent) -> bool:
        chat, sender = event.chat, event.sender
        if self.policy.is_allowed(chat.kind, chat.id, sender.id):
            return True

        if chat.is_private:
            notice = PRIVATE_DENIED_NOTICE
            logger.warning(f"⚠️ Authentication failed for user {sender.label}.")
        else:
            notice = GROUP_DENIED_NOTICE
            logger.warning(f"⚠️ Authentication failed for group {chat.title or ''} ({chat.id}).")

        try:
            await self.channel.send_text(chat.id, notice)
        except Exception as e:
            logger.error(f"Failed to send access notice to chat {chat.id}: {e}")
        return False
