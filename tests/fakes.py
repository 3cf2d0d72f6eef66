"""Test doubles for the model client, ingestor and delivery sink."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence

from relaybot.delivery.webhook import DeliveryPayload, DeliveryResult
from relaybot.ingestion.record_types import IngestResult
from relaybot.synthesis.llm_client import Completion, ContentSegment


def text_completion(*texts: str, stop_reason: str = "end_turn") -> Completion:
    return Completion(content=[ContentSegment(type="text", text=t) for t in texts], stop_reason=stop_reason)


class FakeLLM:
    """Duck-typed LLMClient returning queued completions (or raising queued errors)."""

    def __init__(self, *responses: Any, delay: float = 0.0):
        self.responses: List[Any] = list(responses)
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    async def complete(self, *, system: str, messages: Sequence[Dict[str, str]], max_output_tokens: int) -> Completion:
        self.calls.append({"system": system, "messages": [dict(m) for m in messages], "max_output_tokens": max_output_tokens})
        if self.delay:
            await asyncio.sleep(self.delay)
        resp = self.responses.pop(0) if self.responses else text_completion("ok")
        if isinstance(resp, BaseException):
            raise resp
        if isinstance(resp, str):
            return text_completion(resp)
        return resp


class FakeIngestor:
    def __init__(self, result: Optional[IngestResult] = None, error: Optional[BaseException] = None):
        self.result = result or IngestResult()
        self.error = error
        self.calls = 0

    async def fetch(self) -> IngestResult:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


class FakeSink:
    """Records payloads; raises queued errors first."""

    def __init__(self, *errors: BaseException):
        self.errors: List[BaseException] = list(errors)
        self.attempts = 0
        self.delivered: List[DeliveryPayload] = []

    async def deliver(self, payload: DeliveryPayload) -> DeliveryResult:
        self.attempts += 1
        if self.errors:
            raise self.errors.pop(0)
        self.delivered.append(payload)
        return DeliveryResult(status_code=204)


RSS_SAMPLE = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Sample Feed</title>
    <link>https://example.com/</link>
    <description>Sample</description>
    <item>
      <title>Older story</title>
      <link>https://example.com/older</link>
      <pubDate>Mon, 12 Oct 2026 08:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Newer story</title>
      <link>https://example.com/newer</link>
      <pubDate>Wed, 14 Oct 2026 09:30:00 GMT</pubDate>
    </item>
    <item>
      <title>Undated story</title>
      <link>https://example.com/undated</link>
    </item>
  </channel>
</rss>
"""
