# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Folds stream frames into the cumulative assistant reply."""

from __future__ import annotations

from typing import AsyncIterable, AsyncIterator, NamedTuple

from streamchat.models.chat import StreamFrame


class AccumulatedDelta(NamedTuple):
    content: str
    done: bool


class DeltaAccumulator:
    """Concatenates deltas in arrival order. No reordering, no dedup."""

    def __init__(self):
        self.content = ""
        self.done = False

    def feed(self, frame: StreamFrame) -> AccumulatedDelta:
        self.content += frame.delta
        self.done = self.done or frame.done
        return AccumulatedDelta(self.content, frame.done)


async def accumulate(
    frames: AsyncIterable[StreamFrame],
) -> AsyncIterator[AccumulatedDelta]:
    """Yield the running content after every frame."""
    accumulator = DeltaAccumulator()
    async for frame in frames:
        yield accumulator.feed(frame)
