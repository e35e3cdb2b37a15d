# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the main unit so this responsibility stays isolated, testable, and easy to evolve.

Main application entry point for the streamchat API server.
Includes configuration setup, error handling, and router registration.
"""

from __future__ import annotations

import argparse
from typing import Optional
import os

from fastapi import FastAPI, APIRouter, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from streamchat.services.chat.chat_session import (
    ChatSessionController,
    create_controller,
)
from streamchat.api.v1.http_responses import error_json
from streamchat.services.exceptions import ServiceError

# Import API routers
from streamchat.api.v1.chat import router as chat_router
from streamchat.api.v1.debug import router as debug_router


def create_app(controller: ChatSessionController | None = None) -> FastAPI:
    """Create the FastAPI app.

    The chat controller is built from the machine config unless one is
    passed in. One app serves one conversation.
    """

    app = FastAPI(title="streamchat")
    app.state.chat_controller = controller or create_controller()

    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=r"http://(localhost|127\.0\.0\.1)(:\d+)?",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    api_v1_router = APIRouter(prefix="/api/v1")
    api_v1_router.include_router(chat_router)
    api_v1_router.include_router(debug_router)
    api_v1_router.add_api_route(
        "/health", endpoint=lambda: {"status": "ok"}, methods=["GET"]
    )
    app.include_router(api_v1_router)

    # --------------- global exception handler ---------------
    @app.exception_handler(ServiceError)
    async def _service_error_handler(
        _request: Request, exc: ServiceError
    ) -> JSONResponse:
        return error_json(exc.detail, status_code=exc.status_code)

    return app


def build_arg_parser() -> argparse.ArgumentParser:
    """Build Arg Parser."""
    parser = argparse.ArgumentParser(
        prog="streamchat",
        description="Run the streamchat FastAPI server",
    )
    parser.add_argument(
        "--host", default="127.0.0.1", help="Host to bind (default: 127.0.0.1)"
    )
    parser.add_argument(
        "--port", type=int, default=8000, help="Port to bind (default: 8000)"
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to machine.json (overrides STREAMCHAT_CONFIG)",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["critical", "error", "warning", "info", "debug", "trace"],
        help="Log level for the server (default: info)",
    )
    parser.add_argument(
        "--llm-dump",
        action="store_true",
        help="Dump every streamed exchange to a file",
    )
    parser.add_argument(
        "--llm-dump-path",
        default=None,
        help="Path for the exchange dump file (overrides default)",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """CLI entrypoint to run the server via a normal Python invocation.

    Examples:
      python -m streamchat.main --help
      python -m streamchat.main --host 0.0.0.0 --port 8000 --llm-dump
    """
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if args.config:
        os.environ["STREAMCHAT_CONFIG"] = args.config
    if args.llm_dump:
        os.environ["STREAMCHAT_LLM_DUMP"] = "1"
    if args.llm_dump_path:
        os.environ["STREAMCHAT_LLM_DUMP_PATH"] = args.llm_dump_path

    # Import uvicorn lazily so that importing this module doesn't require it for tests/tools
    import uvicorn  # type: ignore

    # The controller holds the conversation in memory, so a single worker
    uvicorn.run(
        create_app(),
        host=args.host,
        port=args.port,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
