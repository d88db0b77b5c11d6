"""Text helpers shared by channels and the streaming reply."""


def chunk_message(text: str, max_len: int) -> list[str]:
    """Split a message into chunks that fit within a channel's length limit."""
    if len(text) <= max_len:
        return [text]

    chunks: list[str] = []
    remaining = text
    while remaining:
        if len(remaining) <= max_len:
            chunks.append(remaining)
            break
        # Prefer paragraph, then line boundaries
        cut = remaining.rfind("\n\n", 0, max_len)
        if cut <= 0:
            cut = remaining.rfind("\n", 0, max_len)
        if cut <= 0:
            cut = max_len
        chunks.append(remaining[:cut])
        remaining = remaining[cut:].lstrip("\n")
    return chunks


def truncate(text: str, max_len: int, ellipsis: str = "…") -> str:
    """Cut ``text`` to ``max_len`` characters, marking the cut."""
    if len(text) <= max_len:
        return text
    return text[: max(0, max_len - len(ellipsis))] + ellipsis


def preview(text: str | None, max_len: int = 80) -> str:
    """Single-line preview for log messages."""
    flat = " ".join((text or "").split())
    return truncate(flat, max_len, "...")
