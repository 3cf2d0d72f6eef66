"""Single place where output text is cut to a size budget."""

from __future__ import annotations

# Discord rejects messages over 2000 characters; stay under with headroom.
DEFAULT_MESSAGE_LIMIT = 1900
MIN_MESSAGE_LIMIT = 1800
MAX_MESSAGE_LIMIT = 1900


def bound_text(text: str, limit: int) -> str:
    """Cut `text` at exactly `limit` characters. No word or line preservation."""
    if limit < 0:
        raise ValueError("limit must be >= 0")
    text = text or ""
    if len(text) <= limit:
        return text
    return text[:limit]
