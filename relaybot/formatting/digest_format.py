"""Render digests as plain chat text within a hard character budget."""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from typing import List, Optional, Sequence

from relaybot.formatting.bounded_text import bound_text
from relaybot.ingestion.record_types import NormalizedRecord

NO_ITEMS_NOTICE = "No stories found."

ITEM_TIME_FORMAT = "%b %d, %H:%M"
HEADER_DATE_FORMAT = "%b %d, %Y"


def format_timestamp(ts: Optional[datetime], tz: Optional[tzinfo] = None) -> Optional[str]:
    if ts is None:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(tz or timezone.utc).strftime(ITEM_TIME_FORMAT)


def digest_header(label: str, now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> str:
    now = now or datetime.now(timezone.utc)
    local = now.astimezone(tz or timezone.utc)
    return f"{label} — {local.strftime(HEADER_DATE_FORMAT)}"


def render_record_lines(records: Sequence[NormalizedRecord], tz: Optional[tzinfo] = None) -> List[str]:
    """One block per item: `N. title (time)` then the link, blank line between items."""
    lines: List[str] = []
    for i, r in enumerate(records, 1):
        if i > 1:
            lines.append("")
        when = format_timestamp(r.timestamp, tz)
        head = f"{i}. {r.title}"
        if when:
            head += f" ({when})"
        lines.append(head)
        lines.append(r.link)
    return lines


def format_message(header: str, body_lines: Sequence[str], hard_limit: int) -> str:
    """Header, blank line, body; then cut to `hard_limit` characters."""
    body = "\n".join(body_lines)
    text = f"{header}\n\n{body}" if body else header
    return bound_text(text, hard_limit)
