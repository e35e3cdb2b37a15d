# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

import unittest

from streamchat.models.chat import StreamFrame
from streamchat.services.llm.delta_accumulator import DeltaAccumulator, accumulate


def _frame(delta: str, done: bool = False) -> StreamFrame:
    return StreamFrame(response=delta, done=done)


class DeltaAccumulatorTest(unittest.TestCase):
    def test_running_content_in_arrival_order(self):
        acc = DeltaAccumulator()
        results = [acc.feed(_frame(d)) for d in ("Hi", " there", "", "!")]
        self.assertEqual(
            [r.content for r in results], ["Hi", "Hi there", "Hi there", "Hi there!"]
        )
        self.assertFalse(any(r.done for r in results))

    def test_terminal_frame_flagged(self):
        acc = DeltaAccumulator()
        acc.feed(_frame("a"))
        result = acc.feed(_frame("b", done=True))
        self.assertEqual(result.content, "ab")
        self.assertTrue(result.done)
        self.assertTrue(acc.done)

    def test_no_dedup_of_repeated_deltas(self):
        acc = DeltaAccumulator()
        for d in ("ha", "ha", "ha"):
            acc.feed(_frame(d))
        self.assertEqual(acc.content, "hahaha")


class AccumulateTest(unittest.IsolatedAsyncioTestCase):
    async def test_fold_yields_once_per_frame(self):
        async def frames():
            yield _frame("x")
            yield StreamFrame(message={"role": "assistant", "content": "y"})
            yield _frame("z", done=True)

        results = [r async for r in accumulate(frames())]
        self.assertEqual([r.content for r in results], ["x", "xy", "xyz"])
        self.assertEqual([r.done for r in results], [False, False, True])


if __name__ == "__main__":
    unittest.main()
