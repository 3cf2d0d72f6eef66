"""Ingestors for feed and signal sources.

- RSS/Atom feeds fetched over httpx and parsed with feedparser
- Stub / structured-signal providers returning arbitrary serializable payloads
- Every source is fetched independently; one failing source only produces a
  warning, all sources failing raises IngestionError.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple, Union

import feedparser
import httpx

from relaybot.errors import IngestionError
from relaybot.ingestion.record_types import (
    IngestResult,
    NormalizedRecord,
    SignalPayload,
    SourceBatch,
    SourceFailure,
)

logger = logging.getLogger(__name__)

USER_AGENT = "relaybot/1.0 (+digest)"

# Entry attributes holding a publish/update time, most specific first.
_TIMESTAMP_FIELDS = ("isoDate", "published", "pubDate", "updated", "created")
_PARSED_TIMESTAMP_FIELDS = ("published_parsed", "updated_parsed", "created_parsed")


def parse_feed_timestamp(value: Any) -> Optional[datetime]:
    """Parse the timestamp shapes feeds actually carry; None when unparsable."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, time.struct_time) or (isinstance(value, tuple) and len(value) >= 6):
        try:
            return datetime(*tuple(value)[:6], tzinfo=timezone.utc)
        except (TypeError, ValueError):
            return None
    s = str(value).strip()
    if not s:
        return None
    iso = s.replace("Z", "+00:00")
    if " " in iso and "T" not in iso and ":" in iso and "," not in iso:
        iso = iso.replace(" ", "T", 1)
    try:
        parsed = datetime.fromisoformat(iso)
    except ValueError:
        try:
            parsed = parsedate_to_datetime(s)
        except (TypeError, ValueError, IndexError):
            return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _entry_value(entry: Any, key: str) -> Any:
    if isinstance(entry, dict):
        return entry.get(key)
    return getattr(entry, key, None)


def entry_to_record(entry: Any, *, source_name: Optional[str] = None) -> NormalizedRecord:
    """Map one feed entry to a NormalizedRecord; missing fields become empty/None."""
    title = _entry_value(entry, "title")
    link = _entry_value(entry, "link")

    timestamp = None
    for key in _PARSED_TIMESTAMP_FIELDS:
        timestamp = parse_feed_timestamp(_entry_value(entry, key))
        if timestamp:
            break
    if timestamp is None:
        for key in _TIMESTAMP_FIELDS:
            timestamp = parse_feed_timestamp(_entry_value(entry, key))
            if timestamp:
                break

    return NormalizedRecord(
        title=str(title).strip() if isinstance(title, str) else "",
        link=str(link).strip() if isinstance(link, str) else "",
        timestamp=timestamp,
        source_name=source_name,
    )


class BaseSource:
    name: str = "base"

    async def fetch(self, client: httpx.AsyncClient) -> SourceBatch:
        raise NotImplementedError


class FeedSource(BaseSource):
    """A single RSS/Atom feed URL."""

    def __init__(self, name: str, url: str):
        self.name = name
        self.url = url

    def __repr__(self) -> str:
        return f"FeedSource(name={self.name!r}, url={self.url!r})"

    async def fetch(self, client: httpx.AsyncClient) -> SourceBatch:
        resp = await client.get(self.url)
        resp.raise_for_status()
        parsed = feedparser.parse(resp.content)
        entries = list(parsed.entries or [])
        if getattr(parsed, "bozo", False) and not entries:
            reason = getattr(parsed, "bozo_exception", None) or "unparsable feed"
            raise ValueError(f"malformed feed: {reason}")
        records = [entry_to_record(e, source_name=self.name) for e in entries]
        logger.debug("Feed %s returned %d entries", self.name, len(records))
        return SourceBatch(records=records)


class StaticSignalSource(BaseSource):
    """Stub provider that returns a fixed payload every run."""

    def __init__(self, name: str, payload: Any):
        self.name = name
        self.payload = payload

    async def fetch(self, client: httpx.AsyncClient) -> SourceBatch:
        return SourceBatch(signals=[SignalPayload(source_name=self.name, payload=self.payload)])


SignalProvider = Callable[[], Union[Any, Awaitable[Any]]]


class CallableSignalSource(BaseSource):
    """Wraps a sync or async callable returning a serializable payload."""

    def __init__(self, name: str, provider: SignalProvider):
        self.name = name
        self.provider = provider

    async def fetch(self, client: httpx.AsyncClient) -> SourceBatch:
        payload = self.provider()
        if inspect.isawaitable(payload):
            payload = await payload
        return SourceBatch(signals=[SignalPayload(source_name=self.name, payload=payload)])


class Ingestor:
    """Fetches every configured source concurrently and merges the results.

    Records keep the order of `sources`, then the order each source produced
    them in; the ranker relies on that for tie-breaking.
    """

    def __init__(
        self,
        sources: Sequence[BaseSource],
        *,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.sources = list(sources)
        self.timeout = timeout
        self._transport = transport

    async def _fetch_one(self, source: BaseSource, client: httpx.AsyncClient) -> SourceBatch:
        try:
            return await asyncio.wait_for(source.fetch(client), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise TimeoutError(f"timed out after {self.timeout:.0f}s") from e

    async def fetch(self) -> IngestResult:
        if not self.sources:
            raise IngestionError("No sources configured")

        async with httpx.AsyncClient(
            timeout=self.timeout,
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            outcomes = await asyncio.gather(
                *(self._fetch_one(s, client) for s in self.sources),
                return_exceptions=True,
            )

        result = IngestResult()
        for source, outcome in zip(self.sources, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                err = str(outcome) or type(outcome).__name__
                logger.warning("Source %s failed: %s", source.name, err)
                result.failures.append(SourceFailure(source_name=source.name, error=err))
                continue
            result.records.extend(outcome.records)
            result.signals.extend(outcome.signals)

        if len(result.failures) == len(self.sources):
            names = ", ".join(f.source_name for f in result.failures)
            raise IngestionError(f"All {len(self.sources)} source(s) failed: {names}", result.failures)

        logger.info(
            "Ingested %d record(s) and %d signal(s) from %d/%d source(s)",
            len(result.records),
            len(result.signals),
            len(self.sources) - len(result.failures),
            len(self.sources),
        )
        return result


def default_feeds() -> List[Tuple[str, str]]:
    """Curated starter RSS set (overridable via FEED_URLS)."""
    return [
        ("BBC World", "https://feeds.bbci.co.uk/news/world/rss.xml"),
        ("BBC Business", "https://feeds.bbci.co.uk/news/business/rss.xml"),
        ("NPR World", "https://feeds.npr.org/1004/rss.xml"),
        ("Al Jazeera", "https://www.aljazeera.com/xml/rss/all.xml"),
        ("Federal Reserve Press", "https://www.federalreserve.gov/feeds/press_all.xml"),
    ]
