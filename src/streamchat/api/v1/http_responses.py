# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""JSON envelopes shared by the v1 routes: ``{"ok": bool, ...}``."""

from fastapi.responses import JSONResponse

from streamchat.services.chat.chat_session import ChatSessionController


def ok_json(status_code: int = 200, **extra: object) -> JSONResponse:
    body: dict[str, object] = {"ok": True}
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body)


def error_json(detail: str, status_code: int = 400, **extra: object) -> JSONResponse:
    body: dict[str, object] = {"ok": False, "detail": detail}
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body)


def session_json(controller: ChatSessionController, **extra: object) -> JSONResponse:
    """ok_json carrying the session state and the conversation snapshot."""
    return ok_json(
        state=controller.state.value,
        messages=controller.conversation.snapshot(),
        **extra,
    )
