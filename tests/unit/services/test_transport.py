# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

import json
import unittest

import httpx

from streamchat.services.exceptions import HttpStatusError, TransportError
from streamchat.services.llm.transport import StreamTransport, build_headers

URL = "http://fake/api/generate"


def _transport(handler, api_key=None) -> StreamTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return StreamTransport(api_key=api_key, client=client)


class BuildHeadersTest(unittest.TestCase):
    def test_bearer_only_with_key(self):
        self.assertEqual(build_headers(None), {"Content-Type": "application/json"})
        self.assertEqual(build_headers("tok")["Authorization"], "Bearer tok")


class StreamTransportTest(unittest.IsolatedAsyncioTestCase):
    async def test_streams_body_chunks_in_order(self):
        seen = {}

        async def body():
            yield b"one"
            yield b"two"

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=body())

        transport = _transport(handler, api_key="secret")
        async with transport.post(URL, {"model": "m", "stream": True}) as resp:
            self.assertEqual(resp.status_code, 200)
            chunks = [c async for c in resp.chunks]

        self.assertEqual(b"".join(chunks), b"onetwo")
        self.assertEqual(seen["method"], "POST")
        self.assertEqual(seen["auth"], "Bearer secret")
        self.assertEqual(seen["body"], {"model": "m", "stream": True})

    async def test_non_success_status_raises_with_server_detail(self):
        def handler(request):
            return httpx.Response(404, json={"error": "model 'x' not found"})

        with self.assertRaises(HttpStatusError) as ctx:
            async with _transport(handler).post(URL, {}):
                self.fail("body must not be entered")
        self.assertEqual(ctx.exception.upstream_status, 404)
        self.assertEqual(ctx.exception.status_code, 502)
        self.assertIn("404 Not Found", ctx.exception.detail)
        self.assertIn("model 'x' not found", ctx.exception.detail)

    async def test_plain_text_error_body(self):
        def handler(request):
            return httpx.Response(500, text="upstream exploded")

        with self.assertRaises(HttpStatusError) as ctx:
            async with _transport(handler).post(URL, {}):
                pass
        self.assertEqual(
            ctx.exception.detail,
            "API error: 500 Internal Server Error: upstream exploded",
        )

    async def test_connection_failure_becomes_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with self.assertRaises(TransportError) as ctx:
            async with _transport(handler).post(URL, {}):
                pass
        self.assertIn("connection refused", ctx.exception.detail)

    async def test_read_failure_mid_stream_becomes_transport_error(self):
        async def body():
            yield b"partial"
            raise httpx.ReadError("connection reset")

        def handler(request):
            return httpx.Response(200, content=body())

        chunks = []
        with self.assertRaises(TransportError) as ctx:
            async with _transport(handler).post(URL, {}) as resp:
                async for chunk in resp.chunks:
                    chunks.append(chunk)
        self.assertEqual(chunks, [b"partial"])
        self.assertIn("connection reset", ctx.exception.detail)


if __name__ == "__main__":
    unittest.main()
