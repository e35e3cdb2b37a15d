# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the frame decoder unit so this responsibility stays isolated, testable, and easy to evolve.

Turns a chunked byte stream of newline-delimited JSON into ``StreamFrame``
objects. Chunks may split lines and multi-byte characters anywhere; the
decoder keeps the unfinished tail until the next chunk completes it.
"""

from __future__ import annotations

import codecs
import json as _json
from typing import AsyncIterable, AsyncIterator, List

from pydantic import ValidationError

from streamchat.models.chat import StreamFrame
from streamchat.services.exceptions import FrameParseError


def parse_frame(line: str) -> StreamFrame:
    """Parse one complete body line into a frame.

    Raises FrameParseError for anything that is not a frame-shaped JSON object.
    """
    try:
        data = _json.loads(line)
    except ValueError as e:
        raise FrameParseError(line, f"invalid JSON ({e})") from e
    try:
        return StreamFrame.model_validate(data)
    except ValidationError as e:
        raise FrameParseError(line, "not a stream frame") from e


class FrameDecoder:
    """Stateful line splitter and frame parser for one response body.

    Not restartable: create a new decoder per stream.
    """

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        # Pieces of the unfinished line; none of them contains a newline
        self._pending: List[str] = []
        self.terminated = False
        self.skipped_lines = 0

    @property
    def buffer(self) -> str:
        return "".join(self._pending)

    def feed(self, chunk: bytes) -> List[StreamFrame]:
        """Consume one chunk and return the frames it completed, in order."""
        if self.terminated:
            return []
        text = self._decoder.decode(chunk)
        if "\n" not in text:
            if text:
                self._pending.append(text)
            return []
        head, *lines, tail = text.split("\n")
        self._pending.append(head)
        lines.insert(0, "".join(self._pending))
        self._pending = [tail] if tail else []
        return self._parse_lines(lines)

    def finish(self) -> List[StreamFrame]:
        """Flush at end of stream; a last line may lack its newline."""
        if self.terminated:
            return []
        self._pending.append(self._decoder.decode(b"", final=True))
        tail = "".join(self._pending)
        self._pending = []
        return self._parse_lines(tail.split("\n"))

    def _parse_lines(self, lines: List[str]) -> List[StreamFrame]:
        frames: List[StreamFrame] = []
        for line in lines:
            line = line.rstrip("\r")
            if not line.strip():
                continue
            try:
                frame = parse_frame(line)
            except FrameParseError:
                self.skipped_lines += 1
                continue
            frames.append(frame)
            if frame.done:
                self.terminated = True
                # Anything after the terminal frame is never looked at
                self._pending = []
                break
        return frames

    async def iter_frames(
        self, chunks: AsyncIterable[bytes]
    ) -> AsyncIterator[StreamFrame]:
        """Yield frames lazily; stop reading chunks after the terminal frame."""
        async for chunk in chunks:
            for frame in self.feed(chunk):
                yield frame
            if self.terminated:
                return
        for frame in self.finish():
            yield frame
