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
Render loop for PingGraph.

Runs on the main thread. Once per tick it snapshots the series, recomputes the
statistics and hands a Frame to the display; between ticks it waits for
keyboard events (quit, scale toggle, resize). It never waits on the probe
thread: each tick shows whatever the store holds at that moment.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from pinggraph.config import SCALE_LINEAR, SCALE_LOG, ProbeConfig
from pinggraph.input_keys import EVENT_QUIT, EVENT_RESIZE, EVENT_TOGGLE_SCALE
from pinggraph.series import SeriesStore
from pinggraph.stats import compute_stats, format_stats_text

logger = logging.getLogger(__name__)

TICK_SECONDS = 1.0


@dataclass(frozen=True)
class Frame:
    """Everything the display needs for one redraw."""

    values: List[float]
    max_value: float
    stats_text: str
    scale: str
    engine_error: Optional[str] = None


def transform_series(values: Sequence[float], scale: str) -> List[float]:
    """
    Transform chart values for the selected scale.

    Linear is the identity. Log maps v > 0 to log10(v) and anything else to 0.
    """
    if scale == SCALE_LOG:
        return [math.log10(value) if value > 0 else 0.0 for value in values]
    return list(values)


def series_max(values: Sequence[float]) -> float:
    """Maximum of the chart values, 0.0 for an empty series."""
    return max(values) if values else 0.0


def next_scale(scale: str) -> str:
    return SCALE_LOG if scale == SCALE_LINEAR else SCALE_LINEAR


class RenderLoop:
    """
    Periodic snapshot, statistics and redraw driver.

    Args:
        store: Shared series store (read-only use, plus stop() on quit)
        config: Session configuration
        draw: Callable receiving each Frame
        read_event: Callable(timeout) returning an event name or None; it may
                    return early, the loop re-computes the remaining wait
        started_at: Session start on the clock's timebase (defaults to now)
        scale: Initial chart scale
        tick_seconds: Redraw period
        clock: Monotonic clock
        on_resize: Called on a resize event before the redraw
    """

    def __init__(
        self,
        store: SeriesStore,
        config: ProbeConfig,
        draw: Callable[[Frame], None],
        read_event: Callable[[float], Optional[str]],
        started_at: Optional[float] = None,
        scale: str = SCALE_LINEAR,
        tick_seconds: float = TICK_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        on_resize: Optional[Callable[[], None]] = None,
    ) -> None:
        self.store = store
        self.config = config
        self.scale = scale
        self.tick_seconds = tick_seconds
        self.frames_drawn = 0
        self.last_frame: Optional[Frame] = None
        self._draw = draw
        self._read_event = read_event
        self._clock = clock
        self._on_resize = on_resize
        self.started_at = clock() if started_at is None else started_at

    def build_frame(self, now: Optional[float] = None) -> Frame:
        """Snapshot the series and derive chart values and statistics text."""
        if now is None:
            now = self._clock()
        snapshot = self.store.snapshot()
        raw_values = [sample.plot_value(self.config.dead_timeout_ms) for sample in snapshot]
        values = transform_series(raw_values, self.scale)
        stats = compute_stats(snapshot, self.config.timeout_ms, now - self.started_at)
        stats_text = format_stats_text(stats, self.config)
        engine_error = self.store.engine_error
        if engine_error:
            stats_text = f"{stats_text}\n\nProbe engine stopped: {engine_error}"
        return Frame(values, series_max(values), stats_text, self.scale, engine_error)

    def tick(self, now: Optional[float] = None) -> Optional[Frame]:
        """
        Build and draw one frame.

        Returns:
            The drawn Frame, or None when the session is no longer running
        """
        if not self.store.running:
            return None
        frame = self.build_frame(now)
        self._draw(frame)
        self.last_frame = frame
        self.frames_drawn += 1
        return frame

    def handle_event(self, event: Optional[str]) -> None:
        """Apply one keyboard or terminal event."""
        if event == EVENT_QUIT:
            logger.info("Quit requested")
            self.store.stop()
        elif event == EVENT_TOGGLE_SCALE:
            self.scale = next_scale(self.scale)
            logger.debug("Chart scale set to %s", self.scale)
            self.tick()
        elif event == EVENT_RESIZE:
            if self._on_resize is not None:
                self._on_resize()
            if self.last_frame is not None and self.store.running:
                self._draw(self.last_frame)

    def run(self) -> None:
        """Draw immediately, then once per tick until the session stops."""
        next_tick = self._clock()
        while self.store.running:
            now = self._clock()
            remaining = next_tick - now
            if remaining <= 0:
                self.tick(now)
                next_tick += self.tick_seconds
                now = self._clock()
                if next_tick <= now:
                    # Fell behind; skip the missed ticks.
                    next_tick = now + self.tick_seconds
                continue
            event = self._read_event(remaining)
            if event is not None:
                self.handle_event(event)
