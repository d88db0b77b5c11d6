"""Conversation backend threading stateless chat completions by turn ids."""

import asyncio
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any

from loguru import logger

from chatrelay.providers.base import (
    BackendError,
    Completion,
    CompletionBackend,
    LLMProvider,
    LLMResponse,
    PartialCallback,
)
from chatrelay.session.state import ConversationContext


@dataclass(frozen=True)
class StoredTurn:
    """One message of a conversation tree."""

    id: str
    role: str  # "user" | "assistant"
    content: str
    conversation_id: str
    parent_id: str | None = None


class ConversationBackend(CompletionBackend):
    """
    Continuation-token backend on top of a chat-completion provider.

    Every user message and answer is kept in memory under a turn id and
    points at its parent, so a ``ConversationContext`` names a path through
    the tree. Submitting with a context replays that path (up to
    ``max_history_turns`` messages) as chat history. Turns are evicted least
    recently used once ``max_stored_turns`` is exceeded; nothing is persisted.
    """

    def __init__(
        self,
        provider: LLMProvider,
        model: str | None = None,
        system_prompt: str = "",
        max_tokens: int = 4096,
        temperature: float = 0.7,
        max_history_turns: int = 40,
        max_stored_turns: int = 10_000,
    ):
        self.provider = provider
        self.model = model or provider.get_default_model()
        self.system_prompt = system_prompt
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_history_turns = max(1, int(max_history_turns))
        self.max_stored_turns = max(2, int(max_stored_turns))
        self._turns: OrderedDict[str, StoredTurn] = OrderedDict()

    async def submit(
        self,
        text: str,
        context: ConversationContext,
        on_partial: PartialCallback | None = None,
        timeout: float | None = None,
    ) -> Completion:
        call = self._complete(text, context, on_partial)
        if timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout=timeout)

    async def _complete(
        self,
        text: str,
        context: ConversationContext,
        on_partial: PartialCallback | None,
    ) -> Completion:
        conversation_id = context.conversation_id or str(uuid.uuid4())
        user_turn = StoredTurn(
            id=str(uuid.uuid4()),
            role="user",
            content=text,
            conversation_id=conversation_id,
            parent_id=context.parent_turn_id,
        )
        messages = self.build_messages(user_turn)
        response = await self._stream(messages, on_partial)

        if response.is_error:
            raise BackendError(response.content or f"backend {response.finish_reason}")
        answer = (response.content or "").strip()
        if not answer:
            raise BackendError("backend returned an empty answer")

        reply_turn = StoredTurn(
            id=str(uuid.uuid4()),
            role="assistant",
            content=answer,
            conversation_id=conversation_id,
            parent_id=user_turn.id,
        )
        self._remember(user_turn)
        self._remember(reply_turn)
        return Completion(text=answer, conversation_id=conversation_id, turn_id=reply_turn.id)

    async def _stream(
        self,
        messages: list[dict[str, Any]],
        on_partial: PartialCallback | None,
    ) -> LLMResponse:
        parts: list[str] = []
        final: LLMResponse | None = None
        async for event in self.provider.stream_chat(
            messages=messages,
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        ):
            if event.type == "delta" and event.delta:
                parts.append(event.delta)
                if on_partial is not None:
                    await on_partial("".join(parts))
            elif event.type == "final" and event.response is not None:
                final = event.response
        if final is None:
            raise BackendError("backend stream ended without a final response")
        return final

    def build_messages(self, turn: StoredTurn) -> list[dict[str, Any]]:
        """Chat history ending with ``turn``, oldest first."""
        chain = [turn]
        parent_id = turn.parent_id
        while parent_id and len(chain) < self.max_history_turns:
            parent = self._turns.get(parent_id)
            if parent is None:
                logger.debug(f"Turn {parent_id} no longer stored; history truncated")
                break
            self._turns.move_to_end(parent_id)
            chain.append(parent)
            parent_id = parent.parent_id

        messages = [{"role": t.role, "content": t.content} for t in reversed(chain)]
        if self.system_prompt:
            messages.insert(0, {"role": "system", "content": self.system_prompt})
        return messages

    def get_turn(self, turn_id: str) -> StoredTurn | None:
        return self._turns.get(turn_id)

    def _remember(self, turn: StoredTurn) -> None:
        self._turns[turn.id] = turn
        self._turns.move_to_end(turn.id)
        while len(self._turns) > self.max_stored_turns:
            self._turns.popitem(last=False)

    @property
    def stored_turns(self) -> int:
        return len(self._turns)
