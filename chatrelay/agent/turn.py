"""One chat turn: placeholder, streamed backend call, final answer."""

import asyncio

from loguru import logger

from chatrelay.agent.access import AccessController
from chatrelay.agent.streaming import DEFAULT_EDIT_INTERVAL_S, DEFAULT_PLACEHOLDER, Clock, EditThrottle, StreamingReply
from chatrelay.bus.events import InboundEvent
from chatrelay.channels.base import BaseChannel
from chatrelay.providers.base import Completion, CompletionBackend
from chatrelay.session.state import ConversationStore
from chatrelay.utils.text import preview

FAILURE_NOTICE = "⚠️ Sorry, I'm having trouble connecting to the server, please try again later."
DEFAULT_TURN_TIMEOUT_S = 600.0


class ChatTurnRunner:
    """
    Relays one user message to the backend and streams the answer back.

    Turns of the same chat run one at a time under that chat's state lock;
    the conversation state only moves forward after a successful turn.
    """

    def __init__(
        self,
        channel: BaseChannel,
        backend: CompletionBackend,
        access: AccessController,
        conversations: ConversationStore,
        timeout_s: float = DEFAULT_TURN_TIMEOUT_S,
        edit_interval_s: float = DEFAULT_EDIT_INTERVAL_S,
        placeholder: str = DEFAULT_PLACEHOLDER,
        clock: Clock | None = None,
    ):
        self.channel = channel
        self.backend = backend
        self.access = access
        self.conversations = conversations
        self.timeout_s = timeout_s
        self.edit_interval_s = edit_interval_s
        self.placeholder = placeholder
        self.clock = clock

    async def run(self, event: InboundEvent, body: str) -> Completion | None:
        """Run a turn for ``body``; returns the completion, or None if nothing was answered."""
        text = (body or "").strip()
        if not text:
            return None
        if not await self.access.check(event):
            return None

        chat_id = event.chat.id
        logger.debug(f"📩 Message from {event.sender.label} in {event.chat.label}:\n{text}")

        state = self.conversations.get(chat_id)
        async with state.lock:
            reply = StreamingReply(self.channel, chat_id, self._throttle(), placeholder=self.placeholder)
            try:
                await reply.open(reply_to=event.message_id)
            except Exception as e:
                logger.error(f"⛔️ Could not send placeholder in chat {chat_id}: {e}")
                return None

            generation = state.generation
            try:
                completion = await self.backend.submit(
                    text,
                    state.snapshot(),
                    on_partial=reply.update,
                    timeout=self.timeout_s,
                )
            except asyncio.TimeoutError:
                logger.error(f"⛔️ Backend timed out after {self.timeout_s:g}s in chat {chat_id}")
                await self._notify_failure(chat_id)
                return None
            except Exception as e:
                logger.error(f"⛔️ Backend error in chat {chat_id}: {e}")
                await self._notify_failure(chat_id)
                return None

            await reply.finish(completion.text)
            if state.generation == generation:
                state.advance(completion.conversation_id, completion.turn_id)
            else:
                logger.info(f"Chat {chat_id} was reset during the turn; answer not added to the thread")

        logger.debug(f"📨 Response in chat {chat_id}: {preview(completion.text, 500)}")
        return completion

    def _throttle(self) -> EditThrottle:
        if self.clock is None:
            return EditThrottle(self.edit_interval_s)
        return EditThrottle(self.edit_interval_s, clock=self.clock)

    async def _notify_failure(self, chat_id: int) -> None:
        try:
            await self.channel.send_text(chat_id, FAILURE_NOTICE)
        except Exception as e:
            logger.error(f"Failed to send failure notice to chat {chat_id}: {e}")
