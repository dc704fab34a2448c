#!/usr/bin/env python3
# Copyright 2025 icecake0141
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# This file was created or modified with the assistance of an AI (Large Language Model).
# Review for correctness and security.

"""
Unit tests for pinggraph.render_loop module.

The loop runs against a fake clock whose event source advances time, so the
tick schedule is deterministic.
"""

import math
import os
import sys
import unittest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))

from pinggraph.config import SCALE_LINEAR, SCALE_LOG, ProbeConfig  # noqa: E402  # pylint: disable=wrong-import-position
from pinggraph.input_keys import (  # noqa: E402  # pylint: disable=wrong-import-position
    EVENT_QUIT,
    EVENT_RESIZE,
    EVENT_TOGGLE_SCALE,
)
from pinggraph.render_loop import (  # noqa: E402  # pylint: disable=wrong-import-position
    RenderLoop,
    next_scale,
    series_max,
    transform_series,
)
from pinggraph.series import Measurement, SeriesStore  # noqa: E402  # pylint: disable=wrong-import-position


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class ScriptedEvents:
    """Event source that advances the fake clock by each requested wait."""

    def __init__(self, clock, events):
        self.clock = clock
        self.events = list(events)
        self.waits = []

    def __call__(self, timeout):
        self.waits.append(timeout)
        self.clock.now += timeout
        if self.events:
            return self.events.pop(0)
        return EVENT_QUIT


class TestTransforms(unittest.TestCase):
    """Tests for chart value transforms."""

    def test_linear_is_identity(self):
        self.assertEqual(transform_series([1.0, 10.0, 500.0], SCALE_LINEAR), [1.0, 10.0, 500.0])

    def test_log_maps_positive_values(self):
        for actual, expected in zip(transform_series([1.0, 10.0, 1000.0], SCALE_LOG), [0.0, 1.0, 3.0]):
            self.assertAlmostEqual(actual, expected)

    def test_log_maps_non_positive_to_zero(self):
        self.assertEqual(transform_series([0.0, -5.0], SCALE_LOG), [0.0, 0.0])

    def test_series_max(self):
        self.assertEqual(series_max([]), 0.0)
        self.assertEqual(series_max([3.0, 9.0, 1.0]), 9.0)

    def test_next_scale_toggles(self):
        self.assertEqual(next_scale(SCALE_LINEAR), SCALE_LOG)
        self.assertEqual(next_scale(SCALE_LOG), SCALE_LINEAR)


class TestRenderLoop(unittest.TestCase):
    """Tests for RenderLoop."""

    def setUp(self):
        self.store = SeriesStore()
        self.config = ProbeConfig.create(timeout_ms=150, dead_timeout_ms=500)
        self.frames = []
        self.clock = FakeClock()

    def _loop(self, events=(), **kwargs):
        self.events = ScriptedEvents(self.clock, events)
        return RenderLoop(self.store, self.config, self.frames.append, self.events, clock=self.clock, **kwargs)

    def test_frame_uses_sentinel_for_lost_samples(self):
        self.store.append(Measurement(1, 20.0))
        self.store.append(Measurement(2))
        frame = self._loop().build_frame()
        self.assertEqual(frame.values, [20.0, 500.0])
        self.assertEqual(frame.max_value, 500.0)
        self.assertIn("N lost: 1", frame.stats_text)

    def test_log_scale_frame(self):
        self.store.append(Measurement(1, 100.0))
        self.store.append(Measurement(2))
        frame = self._loop(scale=SCALE_LOG).build_frame()
        self.assertAlmostEqual(frame.values[0], 2.0)
        self.assertAlmostEqual(frame.values[1], math.log10(500.0))
        self.assertAlmostEqual(frame.max_value, math.log10(500.0))

    def test_elapsed_measured_from_start(self):
        loop = self._loop(started_at=0.0)
        self.clock.now = 12.5
        self.assertIn("RunTime: 12.50 s", loop.build_frame().stats_text)

    def test_ticks_once_per_second(self):
        loop = self._loop(events=[None, None, None])
        loop.run()
        self.assertEqual(len(self.frames), 4)
        self.assertEqual(self.events.waits, [1.0, 1.0, 1.0, 1.0])
        self.assertFalse(self.store.running)

    def test_quit_stops_session(self):
        loop = self._loop(events=[EVENT_QUIT])
        loop.run()
        self.assertFalse(self.store.running)
        self.assertEqual(loop.frames_drawn, 1)

    def test_toggle_redraws_immediately(self):
        self.store.append(Measurement(1, 10.0))
        loop = self._loop(events=[EVENT_TOGGLE_SCALE])
        loop.run()
        # Initial tick, redraw on toggle, then the next scheduled tick
        self.assertEqual(len(self.frames), 3)
        self.assertEqual(self.frames[0].scale, SCALE_LINEAR)
        self.assertEqual(self.frames[1].scale, SCALE_LOG)
        self.assertAlmostEqual(self.frames[1].values[0], 1.0)
        self.assertEqual(self.frames[2].scale, SCALE_LOG)

    def test_resize_resets_and_redraws_last_frame(self):
        resets = []
        loop = self._loop(events=[EVENT_RESIZE], on_resize=lambda: resets.append(True))
        loop.run()
        self.assertEqual(resets, [True])
        self.assertEqual(len(self.frames), 3)
        self.assertIs(self.frames[0], self.frames[1])

    def test_no_draw_after_stop(self):
        loop = self._loop()
        self.store.stop()
        self.assertIsNone(loop.tick())
        loop.run()
        self.assertEqual(self.frames, [])

    def test_engine_error_shown(self):
        self.store.fail("ICMP socket unusable")
        frame = self._loop().build_frame()
        self.assertEqual(frame.engine_error, "ICMP socket unusable")
        self.assertIn("Probe engine stopped: ICMP socket unusable", frame.stats_text)

    def test_falls_behind_without_burst(self):
        loop = self._loop()

        def slow_draw(frame):
            self.frames.append(frame)
            self.clock.now += 3.5

        loop._draw = slow_draw  # pylint: disable=protected-access
        loop.run()
        # One tick, then a full tick period of waiting before the quit event
        self.assertEqual(len(self.frames), 1)
        self.assertEqual(self.events.waits, [1.0])


if __name__ == "__main__":
    unittest.main()
