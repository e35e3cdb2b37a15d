# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""HTTP transport for streamed generation requests.

Issues the POST, hands the response body out as an async byte stream and
classifies failures: network problems become ``TransportError``, non-2xx
answers become ``HttpStatusError``.
"""

from __future__ import annotations

import json as _json
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict

import httpx

from streamchat.services.exceptions import HttpStatusError, TransportError


def build_headers(api_key: str | None) -> Dict[str, str]:
    headers: Dict[str, str] = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def build_timeout(timeout_s: float | None) -> httpx.Timeout:
    try:
        return httpx.Timeout(float(timeout_s or 60))
    except (TypeError, ValueError):
        return httpx.Timeout(60.0)


def _extract_error_detail(content: bytes) -> str | None:
    """Pull the ``error`` field out of an error body, else its text."""
    text = content.decode("utf-8", errors="ignore").strip()
    if not text:
        return None
    try:
        data = _json.loads(text)
    except ValueError:
        return text[:200]
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return text[:200]


@dataclass
class TransportResponse:
    status_code: int
    reason_phrase: str
    chunks: AsyncIterator[bytes]


class StreamTransport:
    """Thin wrapper around ``httpx.AsyncClient.stream``.

    A client can be injected (tests pass one built on ``httpx.MockTransport``);
    otherwise one is created per request and closed with it.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        timeout_s: float | None = 60,
        client: httpx.AsyncClient | None = None,
    ):
        self._api_key = api_key
        self._timeout = build_timeout(timeout_s)
        self._client = client

    @asynccontextmanager
    async def post(
        self, url: str, body: Dict[str, Any]
    ) -> AsyncIterator[TransportResponse]:
        """POST ``body`` as JSON and yield the streamed response.

        Leaving the context closes the response, which also releases the
        connection when the consumer stops early or is cancelled.
        """
        headers = build_headers(self._api_key)
        if self._client is not None:
            async with self._open(self._client, url, headers, body) as response:
                yield response
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            async with self._open(client, url, headers, body) as response:
                yield response

    @asynccontextmanager
    async def _open(
        self,
        client: httpx.AsyncClient,
        url: str,
        headers: Dict[str, str],
        body: Dict[str, Any],
    ) -> AsyncIterator[TransportResponse]:
        try:
            async with client.stream(
                "POST", url, headers=headers, json=body
            ) as resp:
                if resp.status_code < 200 or resp.status_code >= 300:
                    error_content = await resp.aread()
                    raise HttpStatusError(
                        resp.status_code,
                        resp.reason_phrase,
                        _extract_error_detail(error_content),
                    )
                yield TransportResponse(
                    status_code=resp.status_code,
                    reason_phrase=resp.reason_phrase,
                    chunks=_iter_body(resp),
                )
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to reach {url}: {e}") from e


async def _iter_body(resp: httpx.Response) -> AsyncIterator[bytes]:
    try:
        async for chunk in resp.aiter_bytes():
            if chunk:
                yield chunk
    except httpx.HTTPError as e:
        raise TransportError(f"Connection lost while streaming: {e}") from e
