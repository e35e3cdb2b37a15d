# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the chat unit so this responsibility stays isolated, testable, and easy to evolve.

API endpoints through which a presentation layer reads the conversation and
submits or cancels exchanges.
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from streamchat.api.v1.http_responses import ok_json, session_json
from streamchat.models.chat import ChatStateResponse, SendRequest
from streamchat.services.chat.chat_session import ChatSessionController
from streamchat.services.exceptions import BadRequestError, ConflictError

router = APIRouter(tags=["Chat"])


def get_controller(request: Request) -> ChatSessionController:
    return request.app.state.chat_controller


@router.get("/chat", response_model=ChatStateResponse)
async def api_get_chat(request: Request) -> ChatStateResponse:
    """Return the model in use, the session state and all messages."""
    controller = get_controller(request)
    return ChatStateResponse(
        model=controller.settings.model,
        state=controller.state,
        messages=controller.conversation.messages,
    )


@router.post("/chat/send")
async def api_chat_send(payload: SendRequest, request: Request) -> JSONResponse:
    """Run one exchange and answer once it completed or errored.

    Body JSON: {"content": str}
    """
    controller = get_controller(request)
    if not payload.content.strip():
        raise BadRequestError("content must not be empty")
    if controller.is_busy:
        raise ConflictError("A response is still streaming")

    await controller.send(payload.content)
    return session_json(controller, terminated=controller.last_exchange_terminated)


@router.post("/chat/cancel")
async def api_chat_cancel(request: Request) -> JSONResponse:
    """Cancel the active exchange, if any."""
    controller = get_controller(request)
    cancelled = controller.cancel()
    return ok_json(cancelled=cancelled, state=controller.state.value)
