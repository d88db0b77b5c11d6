"""Base interfaces for LLM providers and conversational backends."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable

from chatrelay.session.state import ConversationContext

PartialCallback = Callable[[str], Awaitable[None]]


class BackendError(RuntimeError):
    """Raised when the conversational backend cannot produce an answer."""


@dataclass
class LLMResponse:
    """Response from an LLM provider."""
    content: str | None
    finish_reason: str = "stop"
    usage: dict[str, int] = field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return self.finish_reason in {"error", "overloaded"}


@dataclass
class LLMStreamEvent:
    """Streaming event from an LLM provider."""

    type: str  # "delta" | "final"
    delta: str | None = None
    response: LLMResponse | None = None


@dataclass(frozen=True)
class Completion:
    """A finished backend turn."""

    text: str
    conversation_id: str
    turn_id: str


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Implementations should handle the specifics of each provider's API
    while maintaining a consistent interface.
    """

    def __init__(self, api_key: str | None = None, api_base: str | None = None):
        self.api_key = api_key
        self.api_base = api_base

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """
        Send a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            model: Model identifier (provider-specific).
            max_tokens: Maximum tokens in response.
            temperature: Sampling temperature.

        Returns:
            LLMResponse with the answer content.
        """
        pass

    async def stream_chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> AsyncIterator[LLMStreamEvent]:
        """Optional streaming chat API; default falls back to non-streaming."""
        response = await self.chat(
            messages=messages,
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
        )
        yield LLMStreamEvent(type="final", response=response)

    @abstractmethod
    def get_default_model(self) -> str:
        """Get the default model for this provider."""
        pass


class CompletionBackend(ABC):
    """A conversational service that continues threads by opaque tokens."""

    @abstractmethod
    async def submit(
        self,
        text: str,
        context: ConversationContext,
        on_partial: PartialCallback | None = None,
        timeout: float | None = None,
    ) -> Completion:
        """
        Submit a user message and wait for the assembled answer.

        Args:
            text: The user's message.
            context: Continuation tokens from the previous turn (may be empty).
            on_partial: Awaited with the accumulated answer text as it grows.
            timeout: Upper bound in seconds on the whole call.

        Returns:
            The completed turn.

        Raises:
            BackendError: If the backend fails or returns nothing.
            asyncio.TimeoutError: If the call exceeds ``timeout``.
        """
        pass
