# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
# Purpose: Defines the conversation unit so this responsibility stays isolated, testable, and easy to evolve.

"""In-memory, append-only conversation log.

Only two mutations exist: appending a message and replacing the content of
the most recent message when it is an assistant message.
"""

from __future__ import annotations

import itertools
from typing import Any, Dict, Iterator, List, Literal

from streamchat.models.chat import Message


class Conversation:
    def __init__(self):
        self._messages: List[Message] = []
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    def last(self) -> Message | None:
        return self._messages[-1] if self._messages else None

    def append(self, role: Literal["user", "assistant"], content: str = "") -> Message:
        message = Message(id=next(self._ids), role=role, content=content)
        self._messages.append(message)
        return message

    def replace_last(
        self, message_id: int, content: str, *, is_error: bool = False
    ) -> Message:
        """Replace the content of the last message, which must be ``message_id``.

        Raises ValueError if that message is no longer the most recent one or
        is not an assistant message.
        """
        last = self.last()
        if last is None or last.id != message_id:
            raise ValueError(f"Message {message_id} is not the most recent message")
        if last.role != "assistant":
            raise ValueError("Only assistant messages can be rewritten")
        last.content = content
        last.is_error = is_error
        return last

    def history(self) -> List[Dict[str, str]]:
        """Role/content pairs for a chat-style request; errors and empty
        placeholders are left out."""
        return [
            {"role": m.role, "content": m.content}
            for m in self._messages
            if not m.is_error and m.content
        ]

    def snapshot(self) -> List[Dict[str, Any]]:
        return [m.model_dump() for m in self._messages]
