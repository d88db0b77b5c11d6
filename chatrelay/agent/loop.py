"""Relay loop: the core dispatch engine."""

import asyncio

from loguru import logger

from chatrelay.agent.access import AccessController, AccessPolicy
from chatrelay.agent.classifier import Command, classify
from chatrelay.agent.commands import CommandDispatcher
from chatrelay.agent.streaming import DEFAULT_EDIT_INTERVAL_S, DEFAULT_PLACEHOLDER, Clock
from chatrelay.agent.turn import DEFAULT_TURN_TIMEOUT_S, ChatTurnRunner
from chatrelay.bus.events import InboundEvent
from chatrelay.bus.queue import MessageBus
from chatrelay.channels.base import BaseChannel
from chatrelay.providers.base import CompletionBackend
from chatrelay.session.state import ConversationStore


class RelayLoop:
    """
    The relay loop is the core dispatch engine.

    It:
    1. Receives events from the bus in arrival order
    2. Classifies each one as a command or a chat message
    3. Hands commands to the dispatcher and chat messages to the turn runner
    4. Runs every handler as its own task so a slow backend call never
       blocks other chats
    """

    def __init__(
        self,
        bus: MessageBus,
        channel: BaseChannel,
        backend: CompletionBackend,
        policy: AccessPolicy | None = None,
        conversations: ConversationStore | None = None,
        chat_command: str = "/chat",
        group_reply_only: bool = True,
        timeout_s: float = DEFAULT_TURN_TIMEOUT_S,
        edit_interval_s: float = DEFAULT_EDIT_INTERVAL_S,
        placeholder: str = DEFAULT_PLACEHOLDER,
        clock: Clock | None = None,
    ):
        self.bus = bus
        self.channel = channel
        self.conversations = conversations if conversations is not None else ConversationStore()
        self.chat_command = chat_command
        self.group_reply_only = group_reply_only
        self.access = AccessController(policy or AccessPolicy(), channel)
        self.commands = CommandDispatcher(channel, self.access, self.conversations, chat_command=chat_command)
        self.turns = ChatTurnRunner(
            channel,
            backend,
            self.access,
            self.conversations,
            timeout_s=timeout_s,
            edit_interval_s=edit_interval_s,
            placeholder=placeholder,
            clock=clock,
        )
        self._running = False
        self._tasks: set[asyncio.Task[None]] = set()

    async def run(self) -> None:
        """Run the relay loop, processing events from the bus."""
        self._running = True
        logger.info("Relay loop started")

        while self._running:
            try:
                event = await asyncio.wait_for(self.bus.consume_inbound(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break

            self.submit(event)

    def submit(self, event: InboundEvent) -> asyncio.Task[None]:
        """Schedule ``handle(event)`` without waiting for it."""
        task = asyncio.create_task(self.handle(event))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    async def handle(self, event: InboundEvent) -> None:
        """Classify one event and route it."""
        intent = classify(event, self.channel.bot_username)

        if isinstance(intent, Command):
            if intent.name != self.chat_command:
                await self.commands.dispatch(event, intent)
                return
            await self.turns.run(event, intent.body)
            return

        if not event.chat.is_private and self.group_reply_only and not event.replies_to_bot:
            logger.trace(f"Ignoring group message {event.message_id} in chat {event.chat.id}")
            return
        await self.turns.run(event, intent.body)

    async def stop(self) -> None:
        """Stop the loop and cancel in-flight handlers."""
        self._running = False
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Relay loop stopping")

    @property
    def pending(self) -> int:
        """Number of handlers still running."""
        return len(self._tasks)

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error(f"Event handler failed unexpectedly: {exc}")
