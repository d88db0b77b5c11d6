"""Async message queue for decoupled channel-relay communication."""

import asyncio

from chatrelay.bus.events import InboundEvent


class MessageBus:
    """
    Async message bus that decouples chat channels from the relay loop.

    Channels push inbound events; the relay loop consumes them in arrival
    order. Replies go straight back through the channel, so there is no
    outbound queue.
    """

    def __init__(self):
        self.inbound: asyncio.Queue[InboundEvent] = asyncio.Queue()

    async def publish_inbound(self, event: InboundEvent) -> None:
        """Publish an event from a channel to the relay loop."""
        await self.inbound.put(event)

    async def consume_inbound(self) -> InboundEvent:
        """Consume the next inbound event (blocks until available)."""
        return await self.inbound.get()

    @property
    def inbound_size(self) -> int:
        """Number of pending inbound events."""
        return self.inbound.qsize()
