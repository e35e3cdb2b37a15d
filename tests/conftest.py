# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the conftest unit so this responsibility stays isolated, testable, and easy to evolve."""

import os
import tempfile
import pytest
from pathlib import Path

from streamchat.services.llm.llm_logging import llm_logs

_ISOLATED_ENV = (
    "STREAMCHAT_CONFIG",
    "STREAMCHAT_LLM_DUMP",
    "STREAMCHAT_LLM_DUMP_PATH",
    "OLLAMA_BASE_URL",
    "OLLAMA_MODEL",
    "OLLAMA_API_KEY",
    "OLLAMA_TIMEOUT_S",
    "OLLAMA_IDLE_TIMEOUT_S",
)


@pytest.fixture(scope="session", autouse=True)
def session_temp_env():
    """Keep the developer's config and OLLAMA_* variables out of the tests.

    STREAMCHAT_CONFIG points at a file that does not exist, so the built-in
    defaults apply unless a test writes its own config.
    """
    temp_dir = tempfile.TemporaryDirectory(prefix="streamchat_test_session_")
    originals = {name: os.environ.pop(name, None) for name in _ISOLATED_ENV}
    os.environ["STREAMCHAT_CONFIG"] = str(Path(temp_dir.name) / "machine.json")

    yield

    temp_dir.cleanup()
    for name, value in originals.items():
        if value is not None:
            os.environ[name] = value
        else:
            os.environ.pop(name, None)


@pytest.fixture(autouse=True)
def clear_llm_logs():
    llm_logs.clear()
    yield
    llm_logs.clear()
