"""Chat-completion provider backed by LiteLLM."""

from dataclasses import dataclass, field
from typing import Any, AsyncIterator

import litellm
from litellm import acompletion

from chatrelay.providers.base import LLMProvider, LLMResponse, LLMStreamEvent

_OVERLOAD_MARKERS = ("overload", "503", "service unavailable")


def _field(obj: Any, key: str, default: Any = None) -> Any:
    """Read ``key`` from a LiteLLM object or a plain dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _first_choice(payload: Any) -> Any:
    choices = _field(payload, "choices") or []
    return choices[0] if isinstance(choices, list) and choices else None


def _usage(raw: Any) -> dict[str, int]:
    if not raw:
        return {}
    keys = ("prompt_tokens", "completion_tokens", "total_tokens")
    return {k: int(_field(raw, k, 0) or 0) for k in keys}


def delta_text(delta: Any) -> str:
    """Text carried by a streamed delta; content may be a string or a list of parts."""
    content = _field(delta, "content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(t for t in (_field(part, "text") for part in content) if isinstance(t, str))
    return ""


def failure_response(exc: Exception) -> LLMResponse:
    """Map a request failure to an error response; overload is reported separately."""
    if any(marker in str(exc).lower() for marker in _OVERLOAD_MARKERS):
        return LLMResponse(content="", finish_reason="overloaded")
    return LLMResponse(content=f"Error calling LLM: {exc}", finish_reason="error")


@dataclass
class _StreamAssembler:
    """Collects streamed chunks into the final response."""

    parts: list[str] = field(default_factory=list)
    finish_reason: str = "stop"
    usage: dict[str, int] = field(default_factory=dict)

    def feed(self, chunk: Any) -> str:
        """Absorb one chunk and return the new text it carries."""
        text = ""
        choice = _first_choice(chunk)
        if choice is not None:
            text = delta_text(_field(choice, "delta"))
            if text:
                self.parts.append(text)
            self.finish_reason = _field(choice, "finish_reason") or self.finish_reason
        self.usage = _usage(_field(chunk, "usage")) or self.usage
        return text

    def response(self) -> LLMResponse:
        return LLMResponse(content="".join(self.parts), finish_reason=self.finish_reason, usage=self.usage)


class LiteLLMProvider(LLMProvider):
    """
    Provider for any model LiteLLM can route to.

    Model names use LiteLLM's ``provider/model`` form; ``api_base`` points
    at a self-hosted OpenAI-compatible server. Credentials are passed per
    request instead of through the process environment.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "openai/gpt-4o-mini",
        extra_headers: dict[str, str] | None = None,
    ):
        super().__init__(api_key, api_base)
        self.default_model = default_model
        self.extra_headers = dict(extra_headers or {})
        litellm.suppress_debug_info = True

    def get_default_model(self) -> str:
        return self.default_model

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> LLMResponse:
        request = self._request(messages, model, max_tokens, temperature)
        try:
            response = await acompletion(**request)
        except Exception as e:
            return failure_response(e)

        choice = _first_choice(response)
        if choice is None:
            return LLMResponse(content="", finish_reason="error")
        return LLMResponse(
            content=_field(_field(choice, "message"), "content"),
            finish_reason=_field(choice, "finish_reason") or "stop",
            usage=_usage(_field(response, "usage")),
        )

    async def stream_chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> AsyncIterator[LLMStreamEvent]:
        """Yield a ``delta`` event per text fragment, then one ``final`` event."""
        request = self._request(messages, model, max_tokens, temperature, stream=True)
        try:
            stream = await acompletion(**request)
        except Exception as e:
            yield LLMStreamEvent(type="final", response=failure_response(e))
            return

        assembler = _StreamAssembler()
        try:
            async for chunk in stream:
                text = assembler.feed(chunk)
                if text:
                    yield LLMStreamEvent(type="delta", delta=text)
        except Exception as e:
            broken = LLMResponse(content=f"Error parsing LLM stream: {e}", finish_reason="error")
            yield LLMStreamEvent(type="final", response=broken)
            return

        yield LLMStreamEvent(type="final", response=assembler.response())

    def _request(
        self,
        messages: list[dict[str, Any]],
        model: str | None,
        max_tokens: int,
        temperature: float,
        stream: bool = False,
    ) -> dict[str, Any]:
        request: dict[str, Any] = {
            "model": model or self.default_model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if stream:
            request.update(stream=True, stream_options={"include_usage": True})
        optional = {"api_base": self.api_base, "api_key": self.api_key, "extra_headers": self.extra_headers}
        request.update({k: v for k, v in optional.items() if v})
        return request
