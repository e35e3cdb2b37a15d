# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Pydantic models for conversation state, wire frames and chat API bodies."""

from __future__ import annotations

import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictStr,
    model_validator,
)


class SessionState(str, Enum):
    """Lifecycle of one user-submit-to-completion exchange."""

    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ERRORED = "errored"

    @property
    def is_active(self) -> bool:
        return self in (SessionState.SENDING, SessionState.STREAMING)


class Message(BaseModel):
    """One turn in the conversation.

    ``id`` and ``role`` are frozen once created; only ``content`` and
    ``is_error`` change, and only on the placeholder of an active exchange.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: int = Field(frozen=True)
    role: Literal["user", "assistant"] = Field(frozen=True)
    content: str = ""
    created_at: str = Field(
        default_factory=lambda: datetime.datetime.now().isoformat(), frozen=True
    )
    is_error: bool = False


class FrameMessage(BaseModel):
    role: str = "assistant"
    content: StrictStr | None = None


class StreamFrame(BaseModel):
    """One JSON object decoded from one line of the response body.

    Providers add fields such as ``done_reason`` or ``eval_count``; they are
    ignored. Known fields are typed strictly: a ``done`` of ``"yes"`` or ``1`` makes the
    line malformed rather than terminal.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    model: str = ""
    created_at: str | None = None
    message: FrameMessage | None = None
    response: StrictStr | None = None
    done: StrictBool = False

    @model_validator(mode="before")
    @classmethod
    def _require_frame_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            raise ValueError("frame must be a JSON object")
        if not any(key in data for key in ("done", "message", "response")):
            raise ValueError("frame carries none of done/message/response")
        if data.get("message") == {}:
            data = {**data, "message": None}
        return data

    @property
    def delta(self) -> str:
        """Content carried by this frame: message.content, else response."""
        if self.message is not None and self.message.content is not None:
            return self.message.content
        return self.response or ""


class ChatStateResponse(BaseModel):
    """Response body for ``GET /api/v1/chat``."""

    model: str
    state: SessionState
    messages: list[Message]


class SendRequest(BaseModel):
    content: str = ""
