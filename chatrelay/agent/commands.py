"""Bot command dispatch."""

from enum import Enum
from typing import Awaitable, Callable

from loguru import logger

from chatrelay.agent.access import AccessController
from chatrelay.agent.classifier import Command
from chatrelay.bus.events import InboundEvent
from chatrelay.channels.base import BaseChannel
from chatrelay.session.state import ConversationStore

RESET_NOTICE = "🔄 The chat thread has been reset. New chat thread started."
RELOAD_NOTICE = "🔄 Session refreshed."
PERMISSION_DENIED_NOTICE = "⛔️ Sorry, you do not have the permission to run this command."
UNSUPPORTED_NOTICE = "⚠️ Unsupported command. Run /help to see the usage."


class BotCommand(str, Enum):
    """Commands the bot understands; anything else is ``UNSUPPORTED``."""

    HELP = "/help"
    START = "/start"
    RESET = "/reset"
    RELOAD = "/reload"
    UNSUPPORTED = ""

    @classmethod
    def parse(cls, name: str) -> "BotCommand":
        try:
            command = cls(name)
        except ValueError:
            return cls.UNSUPPORTED
        return command


def help_text(chat_command: str, bot_username: str) -> str:
    return (
        "To chat with me, you can:\n"
        "  • send messages directly (not supported in groups)\n"
        f"  • send messages that start with {chat_command}\n"
        "  • reply to my last message\n\n"
        "Command list:\n"
        "(When using a command in a group, make sure to include a mention after the command, "
        f"like /help@{bot_username}).\n"
        "  • /help Show help information.\n"
        "  • /reset Reset the current chat thread and start a new one.\n"
        "  • /reload (admin required) Refresh the backend session."
    )


Handler = Callable[[InboundEvent], Awaitable[None]]


class CommandDispatcher:
    """Routes classified commands to one handler per ``BotCommand``."""

    def __init__(
        self,
        channel: BaseChannel,
        access: AccessController,
        conversations: ConversationStore,
        chat_command: str = "/chat",
    ):
        self.channel = channel
        self.access = access
        self.conversations = conversations
        self.chat_command = chat_command
        self._handlers: dict[BotCommand, Handler] = {
            BotCommand.HELP: self._help,
            BotCommand.START: self._help,
            BotCommand.RESET: self._reset,
            BotCommand.RELOAD: self._reload,
            BotCommand.UNSUPPORTED: self._unsupported,
        }

    async def dispatch(self, event: InboundEvent, command: Command) -> BotCommand | None:
        """
        Run the handler for ``command``.

        Returns the command that ran, or None when the event was ignored or
        access was denied.
        """
        logger.debug(
            f"👨‍💻️ User {event.sender.label} issued command \"{command.name}\" in {event.chat.label} "
            f"(mentioned={command.mention_present})."
        )

        # Commands in groups must name this bot; others may be for other bots.
        if not event.chat.is_private and not command.mention_present:
            return None

        if not await self.access.check(event):
            return None

        kind = BotCommand.parse(command.name)
        await self._handlers[kind](event)
        return kind

    async def _help(self, event: InboundEvent) -> None:
        await self.channel.send_text(event.chat.id, help_text(self.chat_command, self.channel.bot_username))

    async def _reset(self, event: InboundEvent) -> None:
        await self._typing(event.chat.id)
        self.conversations.reset(event.chat.id)
        await self.channel.send_text(event.chat.id, RESET_NOTICE)
        logger.info(f"🔄 Chat thread reset by {event.sender.label} in {event.chat.label}.")

    async def _reload(self, event: InboundEvent) -> None:
        if not self.access.policy.is_owner(event.sender.id):
            await self.channel.send_text(event.chat.id, PERMISSION_DENIED_NOTICE)
            logger.warning(f"⚠️ Permission denied for \"{BotCommand.RELOAD.value}\" from {event.sender.label}.")
            return
        await self._typing(event.chat.id)
        await self.channel.send_text(event.chat.id, RELOAD_NOTICE)
        logger.info(f"🔄 Session refreshed by {event.sender.label}.")

    async def _unsupported(self, event: InboundEvent) -> None:
        await self.channel.send_text(event.chat.id, UNSUPPORTED_NOTICE)

    async def _typing(self, chat_id: int) -> None:
        try:
            await self.channel.send_typing(chat_id)
        except Exception as e:
            logger.debug(f"Typing signal failed in chat {chat_id}: {e}")
