"""Base channel interface for chat platforms."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from loguru import logger

from chatrelay.bus.events import InboundEvent
from chatrelay.bus.queue import MessageBus


@dataclass(frozen=True)
class SentMessage:
    """A message the bot has sent, with the text currently displayed."""

    chat_id: int
    message_id: int
    text: str


class BaseChannel(ABC):
    """
    Abstract base class for chat channel implementations.

    A channel is both the inbound event source (it publishes
    ``InboundEvent`` objects on the bus) and the outbound sink the relay
    core uses to send, edit and signal typing.
    """

    name: str = "base"
    max_message_length: int = 4096

    def __init__(self, config: Any, bus: MessageBus):
        """
        Initialize the channel.

        Args:
            config: Channel-specific configuration.
            bus: The message bus for inbound events.
        """
        self.config = config
        self.bus = bus
        self.bot_username: str = ""
        self._running = False

    @abstractmethod
    async def start(self) -> None:
        """
        Start the channel and begin listening for messages.

        This should be a long-running async task that:
        1. Connects to the chat platform and learns the bot's own username
        2. Listens for incoming messages
        3. Forwards them to the bus via _handle_event()
        """
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop the channel and clean up resources."""
        pass

    @abstractmethod
    async def send_text(self, chat_id: int, text: str, reply_to: int | None = None) -> SentMessage:
        """
        Send a new message, optionally as a threaded reply.

        Raises on transport failure.
        """
        pass

    @abstractmethod
    async def edit_text(self, message: SentMessage, text: str, markup: bool = True) -> SentMessage:
        """
        Replace the text of a message the bot sent earlier.

        Args:
            message: The message to edit.
            text: New text.
            markup: Render the text as light markup when the platform supports it.

        Returns:
            The message with its new displayed text. Raises on transport failure.
        """
        pass

    @abstractmethod
    async def send_typing(self, chat_id: int) -> None:
        """Send a transient "typing" presence signal."""
        pass

    async def _handle_event(self, event: InboundEvent) -> None:
        """Forward an incoming event to the relay loop."""
        logger.trace(f"Inbound {self.name} event: {event.raw or event}")
        await self.bus.publish_inbound(event)

    @property
    def is_running(self) -> bool:
        """Check if the channel is running."""
        return self._running
