"""Utility helpers for chatrelay."""

from chatrelay.utils.text import chunk_message, preview, truncate

__all__ = ["chunk_message", "preview", "truncate"]
