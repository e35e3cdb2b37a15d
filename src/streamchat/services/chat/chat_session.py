# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Chat session controller.

Drives one request/response exchange at a time against a conversation it
owns: appends the user message and an empty assistant placeholder, streams
the reply into the placeholder and ends in ``completed`` or ``errored``.

State changes go through ``_transition``/``_apply``/``_fail``; each checks
that the exchange is still the active one, so a cancelled exchange can never
write into the conversation again.
"""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, AsyncIterable, AsyncIterator, Dict

from streamchat.core.config import (
    EndpointSettings,
    load_machine_config,
    resolve_endpoint_settings,
)
from streamchat.models.chat import SessionState
from streamchat.services.chat.conversation import Conversation
from streamchat.services.exceptions import (
    HttpStatusError,
    ServiceError,
    StreamIdleTimeoutError,
)
from streamchat.services.llm.delta_accumulator import DeltaAccumulator
from streamchat.services.llm.frame_decoder import FrameDecoder
from streamchat.services.llm.llm_logging import (
    add_llm_log,
    create_log_entry,
    finish_log_entry,
)
from streamchat.services.llm.transport import StreamTransport, build_headers

CANCELLED_MESSAGE = "Request cancelled"


@dataclass(eq=False)
class _Exchange:
    placeholder_id: int
    body: Dict[str, Any]
    log_entry: Dict[str, Any] = field(default_factory=dict, repr=False)
    outcome: SessionState = SessionState.SENDING
    task: asyncio.Task | None = field(default=None, repr=False)


async def guard_idle(
    chunks: AsyncIterable[bytes], idle_timeout_s: float | None
) -> AsyncIterator[bytes]:
    """Re-yield ``chunks``; raise StreamIdleTimeoutError when one takes too long."""
    iterator = chunks.__aiter__()
    while True:
        try:
            if idle_timeout_s:
                chunk = await asyncio.wait_for(iterator.__anext__(), idle_timeout_s)
            else:
                chunk = await iterator.__anext__()
        except StopAsyncIteration:
            return
        except asyncio.TimeoutError:
            raise StreamIdleTimeoutError(
                f"No data received for {idle_timeout_s:g} seconds"
            ) from None
        yield chunk


def _log_cancelled(log_entry: Dict[str, Any], reason: str = CANCELLED_MESSAGE) -> None:
    log_entry["response"]["error"] = "Cancelled"
    log_entry["response"]["error_detail"] = reason


class ChatSessionController:
    def __init__(
        self,
        settings: EndpointSettings,
        *,
        conversation: Conversation | None = None,
        transport: StreamTransport | None = None,
    ):
        self.settings = settings
        self.conversation = conversation if conversation is not None else Conversation()
        self.transport = transport or StreamTransport(
            api_key=settings.api_key, timeout_s=settings.timeout_s
        )
        self.state = SessionState.IDLE
        self.last_exchange_terminated: bool | None = None
        self._exchange: _Exchange | None = None

    @property
    def is_busy(self) -> bool:
        return self.state.is_active

    def build_request_body(self, content: str) -> Dict[str, Any]:
        body: Dict[str, Any] = {"model": self.settings.model, "stream": True}
        if self.settings.request_format == "chat":
            body["messages"] = self.conversation.history()
        else:
            body["prompt"] = content
        return body

    async def send(self, content: str) -> SessionState | None:
        """Run one exchange for ``content``.

        Returns None without touching the conversation when ``content`` is
        blank or another exchange is still active. Otherwise returns the final
        state, ``completed`` or ``errored``.
        """
        if not content or not content.strip() or self.is_busy:
            return None

        self.conversation.append("user", content)
        body = self.build_request_body(content)
        placeholder = self.conversation.append("assistant", "")
        self.state = SessionState.SENDING
        self.last_exchange_terminated = None

        exchange = _Exchange(placeholder_id=placeholder.id, body=body)
        # The task may be cancelled before its first step
        exchange.log_entry = create_log_entry(
            self.settings.url,
            "POST",
            build_headers(self.settings.api_key),
            body,
            streaming=True,
        )
        add_llm_log(exchange.log_entry)
        self._exchange = exchange
        exchange.task = asyncio.create_task(self._run(exchange))
        try:
            await asyncio.wait({exchange.task})
        except asyncio.CancelledError:
            # Caller went away; tear the exchange down with it
            self.cancel()
            raise
        return exchange.outcome

    def cancel(self, reason: str = CANCELLED_MESSAGE) -> bool:
        """Stop the active exchange, if any.

        The placeholder receives the error text right away and the exchange is
        detached, so frames still in flight are dropped. The HTTP stream is
        released when the cancelled task unwinds.
        """
        exchange = self._exchange
        if exchange is None:
            return False
        self._fail(exchange, reason)
        _log_cancelled(exchange.log_entry, reason)
        finish_log_entry(exchange.log_entry)
        if exchange.task is not None and not exchange.task.done():
            exchange.task.cancel()
        return True

    async def _run(self, exchange: _Exchange) -> None:
        url = self.settings.url
        log_entry = exchange.log_entry
        decoder = FrameDecoder()
        accumulator = DeltaAccumulator()

        try:
            async with self.transport.post(url, exchange.body) as response:
                log_entry["response"]["status_code"] = response.status_code
                self._transition(exchange, SessionState.STREAMING)
                guarded = guard_idle(response.chunks, self.settings.idle_timeout_s)
                # Readers left suspended after the terminal frame are closed here
                async with aclosing(response.chunks), aclosing(guarded) as chunks:
                    async with aclosing(decoder.iter_frames(chunks)) as frames:
                        async for frame in frames:
                            log_entry["response"]["frames"].append(
                                frame.model_dump(exclude_none=True)
                            )
                            delta = accumulator.feed(frame)
                            log_entry["response"]["full_content"] = delta.content
                            self._apply(exchange, delta.content)
            log_entry["response"]["terminated"] = accumulator.done
            self._complete(exchange, terminated=accumulator.done)
        except ServiceError as e:
            if isinstance(e, HttpStatusError):
                log_entry["response"]["status_code"] = e.upstream_status
            log_entry["response"]["error"] = type(e).__name__
            log_entry["response"]["error_detail"] = e.detail
            self._fail(exchange, e.detail)
        except asyncio.CancelledError:
            if log_entry["response"]["error"] is None:
                _log_cancelled(log_entry)
            raise
        except Exception as e:
            log_entry["response"]["error"] = type(e).__name__
            log_entry["response"]["error_detail"] = str(e)
            self._fail(exchange, f"An internal error occurred: {e}")
        finally:
            log_entry["response"]["skipped_lines"] = decoder.skipped_lines
            finish_log_entry(log_entry)

    def _is_active(self, exchange: _Exchange) -> bool:
        return self._exchange is exchange

    def _transition(self, exchange: _Exchange, state: SessionState) -> None:
        if self._is_active(exchange):
            self.state = state
            exchange.outcome = state

    def _apply(self, exchange: _Exchange, content: str) -> None:
        if self._is_active(exchange):
            self.conversation.replace_last(exchange.placeholder_id, content)

    def _complete(self, exchange: _Exchange, *, terminated: bool) -> None:
        if not self._is_active(exchange):
            return
        self.last_exchange_terminated = terminated
        self._transition(exchange, SessionState.COMPLETED)
        self._exchange = None

    def _fail(self, exchange: _Exchange, detail: str) -> None:
        if not self._is_active(exchange):
            return
        self.conversation.replace_last(
            exchange.placeholder_id, f"Error: {detail}", is_error=True
        )
        self._transition(exchange, SessionState.ERRORED)
        self._exchange = None


def create_controller(
    machine: Dict[str, Any] | None = None,
    *,
    transport: StreamTransport | None = None,
) -> ChatSessionController:
    """Build a controller from the machine config (loaded if not given)."""
    if machine is None:
        machine = load_machine_config()
    return ChatSessionController(
        resolve_endpoint_settings(machine), transport=transport
    )
