"""LLM provider and backend module for chatrelay."""

from chatrelay.providers.base import (
    BackendError,
    Completion,
    CompletionBackend,
    LLMProvider,
    LLMResponse,
    LLMStreamEvent,
)
from chatrelay.providers.conversation import ConversationBackend
from chatrelay.providers.litellm_provider import LiteLLMProvider

__all__ = [
    "LLMProvider",
    "LLMResponse",
    "LLMStreamEvent",
    "LiteLLMProvider",
    "Completion",
    "CompletionBackend",
    "ConversationBackend",
    "BackendError",
]
