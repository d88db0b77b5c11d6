"""Per-chat conversation state linking turns to backend continuation tokens."""

import asyncio
from dataclasses import dataclass


@dataclass(frozen=True)
class ConversationContext:
    """Continuation tokens of the latest completed turn; both set or both empty."""

    conversation_id: str | None = None
    parent_turn_id: str | None = None

    def __post_init__(self) -> None:
        if (self.conversation_id is None) != (self.parent_turn_id is None):
            raise ValueError("conversation_id and parent_turn_id must be set together")

    @property
    def is_empty(self) -> bool:
        return self.conversation_id is None


class ConversationState:
    """
    Mutable conversation record of one chat.

    The context is an immutable pair replaced by a single assignment, so a
    reader never sees one token updated and the other stale. ``lock`` serializes
    turns of the chat; ``generation`` changes on every reset so a turn that
    started before a reset can tell its result is stale.
    """

    def __init__(self) -> None:
        self._context = ConversationContext()
        self._generation = 0
        self.lock = asyncio.Lock()

    @property
    def generation(self) -> int:
        return self._generation

    def snapshot(self) -> ConversationContext:
        return self._context

    def advance(self, conversation_id: str, turn_id: str) -> None:
        self._context = ConversationContext(conversation_id=conversation_id, parent_turn_id=turn_id)

    def reset(self) -> None:
        self._context = ConversationContext()
        self._generation += 1


class ConversationStore:
    """Conversation states keyed by chat id, created empty on first use."""

    def __init__(self) -> None:
        self._states: dict[int, ConversationState] = {}

    def get(self, chat_id: int) -> ConversationState:
        state = self._states.get(chat_id)
        if state is None:
            state = ConversationState()
            self._states[chat_id] = state
        return state

    def reset(self, chat_id: int) -> None:
        self.get(chat_id).reset()

    def __contains__(self, chat_id: object) -> bool:
        return chat_id in self._states

    def __len__(self) -> int:
        return len(self._states)
