"""Webhook delivery sink.

One POST per call. Retrying is the run loop's decision, not the sink's.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from relaybot.errors import DeliveryError
from relaybot.formatting.bounded_text import DEFAULT_MESSAGE_LIMIT, bound_text

logger = logging.getLogger(__name__)

SUPPRESS_ALL = "suppress-all"


@dataclass(frozen=True)
class DeliveryPayload:
    content: str
    mention_policy: str = SUPPRESS_ALL

    def to_json(self, username: Optional[str] = None) -> Dict[str, Any]:
        data: Dict[str, Any] = {"content": self.content}
        if self.mention_policy == SUPPRESS_ALL:
            data["allowed_mentions"] = {"parse": []}
        if username:
            data["username"] = username
        return data


@dataclass(frozen=True)
class DeliveryResult:
    status_code: int


def make_payload(content: str, limit: int = DEFAULT_MESSAGE_LIMIT) -> DeliveryPayload:
    return DeliveryPayload(content=bound_text(content, limit))


def _safe_body(resp: httpx.Response) -> str:
    try:
        return resp.text
    except Exception:
        return ""


class WebhookSink:
    def __init__(
        self,
        url: str,
        *,
        timeout: float = 15.0,
        username: Optional[str] = None,
        limit: int = DEFAULT_MESSAGE_LIMIT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.username = username or None
        self.limit = limit
        self._transport = transport

    async def _post(self, payload: DeliveryPayload) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            return await client.post(self.url, json=payload.to_json(self.username))

    async def deliver(self, payload: DeliveryPayload) -> DeliveryResult:
        # Content should already be bounded; enforce the transport ceiling regardless.
        if len(payload.content) > self.limit:
            payload = DeliveryPayload(content=bound_text(payload.content, self.limit), mention_policy=payload.mention_policy)

        try:
            resp = await asyncio.wait_for(self._post(payload), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise DeliveryError(None, f"timed out after {self.timeout:.0f}s") from e
        except httpx.HTTPError as e:
            raise DeliveryError(None, str(e) or type(e).__name__) from e

        if not resp.is_success:
            body = _safe_body(resp)
            if resp.status_code == 404:
                logger.error("Webhook not found - check DISCORD_WEBHOOK_URL")
            elif resp.status_code == 400:
                logger.error("Webhook bad request: %s", body[:300])
            raise DeliveryError(resp.status_code, body)

        logger.info("Webhook message delivered (%d chars, HTTP %d)", len(payload.content), resp.status_code)
        return DeliveryResult(status_code=resp.status_code)
