"""chatrelay - relay Telegram chats to a streaming LLM backend."""

__version__ = "0.1.0"
__logo__ = "💬"
