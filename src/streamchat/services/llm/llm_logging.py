# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the llm logging unit so this responsibility stays isolated, testable, and easy to evolve.

Every streamed exchange is recorded as one structured log entry. Entries live
in memory (served by the debug endpoint) and can be dumped to a file.
"""

from __future__ import annotations

import datetime
import json
import os
import uuid
from typing import Any, Dict, List

MAX_LOG_ENTRIES = 100

# Global list to store LLM communication logs for the current session
llm_logs: List[Dict[str, Any]] = []

_SECRET_BODY_KEYS = ("api_key", "secret", "password")
_SECRET_HEADERS = ("authorization", "x-api-key")


def add_llm_log(log_entry: Dict[str, Any]):
    """Add a log entry to the global list, keeping only the last 100 entries.

    If STREAMCHAT_LLM_DUMP is set, also append the raw log to a file.
    """
    if log_entry not in llm_logs:
        llm_logs.append(log_entry)
        if len(llm_logs) > MAX_LOG_ENTRIES:
            llm_logs.pop(0)

    if os.getenv("STREAMCHAT_LLM_DUMP") == "1":
        _dump_log_entry(log_entry)


def _dump_log_entry(log_entry: Dict[str, Any]) -> None:
    default_path = os.path.join("data", "logs", "llm_raw.log")
    log_path = os.getenv("STREAMCHAT_LLM_DUMP_PATH") or default_path
    log_dir = os.path.dirname(log_path)
    try:
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        # Frames are collapsed to one line each for readability
        processed_entry = json.loads(json.dumps(log_entry, default=str))
        frames = processed_entry.get("response", {}).get("frames")
        collapsed_frames = []
        if isinstance(frames, list):
            collapsed_frames = [json.dumps(frame) for frame in frames]
            processed_entry["response"]["frames"] = collapsed_frames

        log_text = json.dumps(processed_entry, indent=2, default=str)
        for frame in collapsed_frames:
            log_text = log_text.replace(json.dumps(frame), frame)

        with open(log_path, "a", encoding="utf-8") as f:
            f.write("=" * 80 + "\n")
            f.write(f"TIMESTAMP: {datetime.datetime.now().isoformat()}\n")
            f.write("-" * 80 + "\n")
            f.write(log_text + "\n")
            f.write("=" * 80 + "\n\n")
    except OSError:
        # Dumping is a development aid; the exchange itself must not fail
        pass


def create_log_entry(
    url: str, method: str, headers: Dict[str, str], body: Any, streaming: bool = False
) -> Dict[str, Any]:
    """Create a new log entry structure."""
    safe_body = body
    if isinstance(body, dict):
        safe_body = body.copy()
        for key in _SECRET_BODY_KEYS:
            if key in safe_body:
                safe_body[key] = "REDACTED"

    return {
        "id": str(uuid.uuid4()),
        "timestamp_start": datetime.datetime.now().isoformat(),
        "timestamp_end": None,
        "request": {
            "url": url,
            "method": method,
            "headers": {
                k: ("***" if k.lower() in _SECRET_HEADERS else v)
                for k, v in headers.items()
            },
            "body": safe_body,
        },
        "response": {
            "status_code": None,
            "streaming": streaming,
            "frames": [] if streaming else None,
            "full_content": "" if streaming else None,
            "skipped_lines": 0,
            "terminated": None,
            "error": None,
            "error_detail": None,
        },
    }


def finish_log_entry(log_entry: Dict[str, Any]) -> None:
    """Stamp the end time and re-log so the dump carries the final state."""
    log_entry["timestamp_end"] = datetime.datetime.now().isoformat()
    add_llm_log(log_entry)
