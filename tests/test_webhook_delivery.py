import json
import unittest

import httpx

from relaybot.delivery.webhook import DeliveryPayload, WebhookSink, make_payload
from relaybot.errors import DeliveryError

WEBHOOK = "https://discord.test/api/webhooks/1/abc"


class _Capture:
    def __init__(self, status=204, body=b"", exc=None):
        self.status = status
        self.body = body
        self.exc = exc
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        return httpx.Response(self.status, content=self.body)

    def json(self, i=0):
        return json.loads(self.requests[i].content)


class TestPayload(unittest.TestCase):
    def test_suppresses_all_mentions(self):
        self.assertEqual(
            DeliveryPayload(content="hi @everyone").to_json(),
            {"content": "hi @everyone", "allowed_mentions": {"parse": []}},
        )

    def test_username_override(self):
        self.assertEqual(DeliveryPayload(content="x").to_json("Relay")["username"], "Relay")

    def test_make_payload_bounds_content(self):
        self.assertEqual(len(make_payload("z" * 5000, 1900).content), 1900)


class TestWebhookSink(unittest.IsolatedAsyncioTestCase):
    async def test_posts_json_once(self):
        capture = _Capture(status=204)
        sink = WebhookSink(WEBHOOK, transport=httpx.MockTransport(capture))
        result = await sink.deliver(DeliveryPayload(content="hello"))
        self.assertEqual(result.status_code, 204)
        self.assertEqual(len(capture.requests), 1)
        self.assertEqual(capture.requests[0].method, "POST")
        self.assertEqual(str(capture.requests[0].url), WEBHOOK)
        self.assertEqual(capture.json(), {"content": "hello", "allowed_mentions": {"parse": []}})

    async def test_non_success_raises_with_status_and_body(self):
        capture = _Capture(status=400, body=b'{"message": "Cannot send an empty message"}')
        sink = WebhookSink(WEBHOOK, transport=httpx.MockTransport(capture))
        with self.assertRaises(DeliveryError) as ctx:
            await sink.deliver(DeliveryPayload(content="x"))
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertIn("Cannot send an empty message", ctx.exception.body)
        self.assertFalse(ctx.exception.retryable)
        self.assertEqual(len(capture.requests), 1)

    async def test_server_error_is_retryable_but_not_retried_here(self):
        capture = _Capture(status=503, body=b"unavailable")
        sink = WebhookSink(WEBHOOK, transport=httpx.MockTransport(capture))
        with self.assertRaises(DeliveryError) as ctx:
            await sink.deliver(DeliveryPayload(content="x"))
        self.assertTrue(ctx.exception.retryable)
        self.assertEqual(len(capture.requests), 1)

    async def test_transport_failure(self):
        capture = _Capture(exc=httpx.ConnectError("connection refused"))
        sink = WebhookSink(WEBHOOK, transport=httpx.MockTransport(capture))
        with self.assertRaises(DeliveryError) as ctx:
            await sink.deliver(DeliveryPayload(content="x"))
        self.assertIsNone(ctx.exception.status_code)
        self.assertTrue(ctx.exception.retryable)

    async def test_oversized_content_is_bounded_before_sending(self):
        capture = _Capture(status=200, body=b"{}")
        sink = WebhookSink(WEBHOOK, limit=1900, transport=httpx.MockTransport(capture))
        await sink.deliver(DeliveryPayload(content="q" * 2500))
        self.assertEqual(len(capture.json()["content"]), 1900)


if __name__ == "__main__":
    unittest.main()
