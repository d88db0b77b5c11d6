"""Conversation state module for chatrelay."""

from chatrelay.session.state import ConversationContext, ConversationState, ConversationStore

__all__ = ["ConversationContext", "ConversationState", "ConversationStore"]
