import pytest

from chatrelay.session.state import ConversationContext, ConversationState, ConversationStore


def test_new_state_is_empty() -> None:
    state = ConversationState()
    assert state.snapshot() == ConversationContext()
    assert state.snapshot().is_empty


def test_advance_then_reset() -> None:
    state = ConversationState()
    state.advance("conv", "turn-1")
    assert state.snapshot() == ConversationContext("conv", "turn-1")

    state.advance("conv", "turn-2")
    assert state.snapshot().parent_turn_id == "turn-2"

    generation = state.generation
    state.reset()
    assert state.snapshot().is_empty
    assert state.generation == generation + 1


def test_snapshot_is_not_affected_by_later_updates() -> None:
    state = ConversationState()
    state.advance("a", "1")
    before = state.snapshot()
    state.advance("b", "2")
    assert before == ConversationContext("a", "1")


def test_context_fields_are_set_together() -> None:
    with pytest.raises(ValueError):
        ConversationContext(conversation_id="conv")
    with pytest.raises(ValueError):
        ConversationContext(parent_turn_id="turn")


def test_store_keeps_chats_isolated() -> None:
    store = ConversationStore()
    store.get(1).advance("c1", "t1")
    store.get(2).advance("c2", "t2")

    store.reset(1)

    assert store.get(1).snapshot().is_empty
    assert store.get(2).snapshot() == ConversationContext("c2", "t2")
    assert len(store) == 2
    assert 1 in store and 3 not in store
