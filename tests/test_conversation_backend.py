import asyncio

import pytest

from chatrelay.providers.base import BackendError, LLMProvider, LLMResponse, LLMStreamEvent
from chatrelay.providers.conversation import ConversationBackend
from chatrelay.session.state import ConversationContext


class FakeProvider(LLMProvider):
    def __init__(self, answers=None, deltas=None, finish_reason="stop", delay=0.0):
        super().__init__()
        self.answers = list(answers or ["ok"])
        self.deltas = deltas
        self.finish_reason = finish_reason
        self.delay = delay
        self.requests: list[list[dict]] = []

    async def chat(self, messages, model=None, max_tokens=4096, temperature=0.7):
        raise AssertionError("streaming path expected")

    async def stream_chat(self, messages, model=None, max_tokens=4096, temperature=0.7):
        self.requests.append(messages)
        answer = self.answers.pop(0) if self.answers else "ok"
        if self.delay:
            await asyncio.sleep(self.delay)
        for delta in [answer] if self.deltas is None else self.deltas:
            yield LLMStreamEvent(type="delta", delta=delta)
        yield LLMStreamEvent(type="final", response=LLMResponse(content=answer, finish_reason=self.finish_reason))

    def get_default_model(self) -> str:
        return "fake/model"


async def test_first_turn_starts_a_conversation() -> None:
    backend = ConversationBackend(FakeProvider(answers=["Hi!"]))

    completion = await backend.submit("hello", ConversationContext())

    assert completion.text == "Hi!"
    assert completion.conversation_id
    assert backend.get_turn(completion.turn_id).content == "Hi!"
    assert backend.stored_turns == 2
    assert backend.model == "fake/model"


async def test_partials_carry_accumulated_text() -> None:
    backend = ConversationBackend(FakeProvider(answers=["Hello world"], deltas=["Hel", "lo ", "world"]))
    seen: list[str] = []

    async def on_partial(text: str) -> None:
        seen.append(text)

    await backend.submit("hi", ConversationContext(), on_partial=on_partial)

    assert seen == ["Hel", "Hello ", "Hello world"]


async def test_context_replays_history() -> None:
    provider = FakeProvider(answers=["first answer", "second answer"])
    backend = ConversationBackend(provider, system_prompt="Be brief.")

    first = await backend.submit("first question", ConversationContext())
    context = ConversationContext(first.conversation_id, first.turn_id)
    second = await backend.submit("second question", context)

    assert second.conversation_id == first.conversation_id
    assert provider.requests[1] == [
        {"role": "system", "content": "Be brief."},
        {"role": "user", "content": "first question"},
        {"role": "assistant", "content": "first answer"},
        {"role": "user", "content": "second question"},
    ]


async def test_empty_context_has_no_history() -> None:
    provider = FakeProvider(answers=["a", "b"])
    backend = ConversationBackend(provider)

    await backend.submit("one", ConversationContext())
    await backend.submit("two", ConversationContext())

    assert provider.requests[1] == [{"role": "user", "content": "two"}]


async def test_history_depth_is_bounded() -> None:
    provider = FakeProvider(answers=["a1", "a2", "a3"])
    backend = ConversationBackend(provider, max_history_turns=3)

    context = ConversationContext()
    for question in ("q1", "q2", "q3"):
        done = await backend.submit(question, context)
        context = ConversationContext(done.conversation_id, done.turn_id)

    assert [m["content"] for m in provider.requests[2]] == ["q2", "a2", "q3"]


async def test_error_response_raises_and_stores_nothing() -> None:
    backend = ConversationBackend(FakeProvider(answers=["Error calling LLM: boom"], deltas=[], finish_reason="error"))

    with pytest.raises(BackendError, match="boom"):
        await backend.submit("hi", ConversationContext())
    assert backend.stored_turns == 0


async def test_empty_answer_raises() -> None:
    backend = ConversationBackend(FakeProvider(answers=["   "], deltas=[]))

    with pytest.raises(BackendError):
        await backend.submit("hi", ConversationContext())
    assert backend.stored_turns == 0


async def test_timeout_propagates() -> None:
    backend = ConversationBackend(FakeProvider(delay=1.0))

    with pytest.raises(asyncio.TimeoutError):
        await backend.submit("hi", ConversationContext(), timeout=0.05)
    assert backend.stored_turns == 0


async def test_old_turns_are_evicted() -> None:
    provider = FakeProvider(answers=["a1", "a2", "a3"])
    backend = ConversationBackend(provider, max_stored_turns=4)

    first = await backend.submit("q1", ConversationContext())
    await backend.submit("q2", ConversationContext())
    await backend.submit("q3", ConversationContext())

    assert backend.stored_turns == 4
    assert backend.get_turn(first.turn_id) is None


async def test_evicted_parent_truncates_history() -> None:
    provider = FakeProvider(answers=["a1", "a2", "a3", "a4"])
    backend = ConversationBackend(provider, max_stored_turns=2)

    first = await backend.submit("q1", ConversationContext())
    await backend.submit("q2", ConversationContext())
    await backend.submit("q3", ConversationContext(first.conversation_id, first.turn_id))

    assert provider.requests[2] == [{"role": "user", "content": "q3"}]
