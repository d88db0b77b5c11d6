"""Chat channels module for chatrelay."""

from chatrelay.channels.base import BaseChannel, SentMessage

__all__ = ["BaseChannel", "SentMessage"]
