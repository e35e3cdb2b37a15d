# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Read and clear the in-memory exchange log."""

from fastapi import APIRouter

from streamchat.services.exceptions import NotFoundError
from streamchat.services.llm.llm_logging import llm_logs

router = APIRouter(prefix="/debug", tags=["debug"])


@router.get("/llm_logs")
async def list_llm_logs(limit: int | None = None):
    """Logged exchanges, oldest first; ``limit`` keeps only the newest ones."""
    if limit is not None and limit >= 0:
        return llm_logs[-limit:] if limit else []
    return llm_logs


@router.get("/llm_logs/{log_id}")
async def get_llm_log(log_id: str):
    for entry in llm_logs:
        if entry.get("id") == log_id:
            return entry
    raise NotFoundError(f"No log entry {log_id}")


@router.delete("/llm_logs")
async def clear_llm_logs():
    """Clear the exchange logs."""
    llm_logs.clear()
    return {"status": "ok"}
