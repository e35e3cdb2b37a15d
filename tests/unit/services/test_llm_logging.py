# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

import os
import tempfile
from pathlib import Path
from unittest import TestCase

from streamchat.services.llm.llm_logging import (
    MAX_LOG_ENTRIES,
    add_llm_log,
    create_log_entry,
    finish_log_entry,
    llm_logs,
)


class LlmLoggingTest(TestCase):
    def test_secrets_are_redacted(self):
        entry = create_log_entry(
            "http://fake/api/generate",
            "POST",
            {"Content-Type": "application/json", "Authorization": "Bearer tok"},
            {"model": "m", "api_key": "sk-123"},
            streaming=True,
        )
        self.assertEqual(entry["request"]["headers"]["Authorization"], "***")
        self.assertEqual(entry["request"]["body"]["api_key"], "REDACTED")
        self.assertEqual(entry["response"]["frames"], [])
        self.assertEqual(entry["response"]["full_content"], "")

    def test_ring_keeps_newest_entries(self):
        entries = [create_log_entry(f"u{i}", "POST", {}, None) for i in range(105)]
        for entry in entries:
            add_llm_log(entry)
        self.assertEqual(len(llm_logs), MAX_LOG_ENTRIES)
        self.assertIs(llm_logs[-1], entries[-1])
        self.assertEqual(llm_logs[0]["request"]["url"], "u5")

    def test_finish_does_not_duplicate(self):
        entry = create_log_entry("u", "POST", {}, None, streaming=True)
        add_llm_log(entry)
        finish_log_entry(entry)
        self.assertEqual(len(llm_logs), 1)
        self.assertIsNotNone(entry["timestamp_end"])

    def test_dump_to_file_when_enabled(self):
        with tempfile.TemporaryDirectory() as td:
            dump_path = Path(td) / "logs" / "dump.log"
            os.environ["STREAMCHAT_LLM_DUMP"] = "1"
            os.environ["STREAMCHAT_LLM_DUMP_PATH"] = str(dump_path)
            try:
                entry = create_log_entry("u", "POST", {}, {"prompt": "hi"}, True)
                entry["response"]["frames"].append({"response": "Hi", "done": False})
                add_llm_log(entry)
            finally:
                os.environ.pop("STREAMCHAT_LLM_DUMP")
                os.environ.pop("STREAMCHAT_LLM_DUMP_PATH")

            text = dump_path.read_text(encoding="utf-8")
        self.assertIn("TIMESTAMP:", text)
        self.assertIn('{"response": "Hi", "done": false}', text)
