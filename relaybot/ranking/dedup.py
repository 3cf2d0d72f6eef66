"""Deduplicate and rank normalized records by recency.

Pure functions only: same input, same output.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List

from relaybot.ingestion.record_types import NormalizedRecord

# Unit separator; never present in titles or URLs we care about.
KEY_SEPARATOR = "\x1f"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def composite_key(record: NormalizedRecord) -> str:
    return f"{record.link.lower()}{KEY_SEPARATOR}{record.title.lower()}"


def sort_timestamp(record: NormalizedRecord) -> datetime:
    ts = record.timestamp
    if not isinstance(ts, datetime):
        return EPOCH
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def reduce_records(records: Iterable[NormalizedRecord], limit: int) -> List[NormalizedRecord]:
    """Drop invalid records, collapse duplicates, order newest first, keep `limit`.

    Duplicates are detected on lowercase(link) + lowercase(title); the first
    occurrence wins. The sort is stable so equal timestamps keep input order.
    """
    if limit <= 0:
        return []

    seen = set()
    deduped: List[NormalizedRecord] = []
    for r in records:
        if not r.is_valid:
            continue
        key = composite_key(r)
        if key in seen:
            continue
        seen.add(key)
        deduped.append(r)

    deduped.sort(key=sort_timestamp, reverse=True)
    return deduped[:limit]
