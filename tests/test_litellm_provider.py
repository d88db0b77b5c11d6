from types import SimpleNamespace

import chatrelay.providers.litellm_provider as litellm_provider
from chatrelay.providers.litellm_provider import LiteLLMProvider, delta_text


def _chunk(text=None, finish_reason=None, usage=None):
    choice = SimpleNamespace(delta=SimpleNamespace(content=text), finish_reason=finish_reason)
    return SimpleNamespace(choices=[choice], usage=usage)


async def _collect(provider, **kwargs):
    return [event async for event in provider.stream_chat(messages=[{"role": "user", "content": "hi"}], **kwargs)]


async def test_stream_yields_deltas_then_final(monkeypatch) -> None:
    calls = []

    async def fake_acompletion(**kwargs):
        calls.append(kwargs)

        async def stream():
            yield _chunk("Hel")
            yield _chunk("lo")
            yield _chunk(None, finish_reason="stop")
            yield SimpleNamespace(choices=[], usage={"prompt_tokens": 3, "completion_tokens": 2, "total_tokens": 5})

        return stream()

    monkeypatch.setattr(litellm_provider, "acompletion", fake_acompletion)
    provider = LiteLLMProvider(api_key="sk-test", api_base="http://localhost:8000/v1", default_model="openai/x")

    events = await _collect(provider, max_tokens=100)

    assert [e.delta for e in events if e.type == "delta"] == ["Hel", "lo"]
    final = events[-1].response
    assert final.content == "Hello"
    assert final.finish_reason == "stop"
    assert final.usage["total_tokens"] == 5
    assert calls[0]["model"] == "openai/x"
    assert calls[0]["stream"] is True
    assert calls[0]["api_base"] == "http://localhost:8000/v1"
    assert calls[0]["api_key"] == "sk-test"
    assert calls[0]["max_tokens"] == 100


async def test_request_failure_becomes_error_response(monkeypatch) -> None:
    async def fake_acompletion(**kwargs):
        raise RuntimeError("connection refused")

    monkeypatch.setattr(litellm_provider, "acompletion", fake_acompletion)

    [event] = await _collect(LiteLLMProvider())

    assert event.type == "final"
    assert event.response.is_error
    assert "connection refused" in event.response.content


async def test_overload_is_reported_separately(monkeypatch) -> None:
    async def fake_acompletion(**kwargs):
        raise RuntimeError("503 Service Unavailable: model overloaded")

    monkeypatch.setattr(litellm_provider, "acompletion", fake_acompletion)

    [event] = await _collect(LiteLLMProvider())

    assert event.response.finish_reason == "overloaded"
    assert event.response.is_error


async def test_non_streaming_chat(monkeypatch) -> None:
    async def fake_acompletion(**kwargs):
        assert "stream" not in kwargs
        message = SimpleNamespace(content="pong")
        return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason="stop")], usage=None)

    monkeypatch.setattr(litellm_provider, "acompletion", fake_acompletion)

    response = await LiteLLMProvider().chat(messages=[{"role": "user", "content": "ping"}])

    assert response.content == "pong"
    assert response.usage == {}


def test_list_content_deltas_are_joined() -> None:
    delta = {"content": [{"type": "text", "text": "a"}, {"type": "text", "text": "b"}]}
    assert delta_text(delta) == "ab"
