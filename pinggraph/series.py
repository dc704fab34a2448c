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
# Review required for correctness, security, and licensing.

"""
Thread-safe measurement series for PingGraph.

This module provides the SeriesStore shared by the probe thread (sole writer)
and the render loop (reader). A single lock guards the series, the running
flag and the probe engine's stop reason, so readers always see a consistent
point-in-time copy.
"""

import threading
from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class Measurement:
    """
    One probe outcome.

    latency_ms is None for a lost sample (timeout, send or receive error,
    unparsable or unexpected reply).
    """

    sequence: int
    latency_ms: Optional[float] = None

    @property
    def lost(self) -> bool:
        return self.latency_ms is None

    def plot_value(self, dead_timeout_ms: float) -> float:
        """Return the latency, or the dead-timeout sentinel for a lost sample."""
        return dead_timeout_ms if self.latency_ms is None else self.latency_ms


class SeriesStore:
    """
    Append-only series of measurements plus the session running flag.

    Measurements are frozen, so a snapshot never exposes a partially
    constructed entry. The store never evicts: the series lives as long as the
    session.
    """

    def __init__(self) -> None:
        # Reentrant: stop() may run from a signal handler on the thread holding it.
        self._lock = threading.RLock()
        self._series: List[Measurement] = []
        self._running = True
        self._engine_error: Optional[str] = None
        # Shares the store lock so stop() never takes a second, non-reentrant lock.
        self._cond = threading.Condition(self._lock)

    def append(self, measurement: Measurement) -> None:
        """
        Append the next measurement. Called only by the probe engine.

        Raises:
            ValueError: If the sequence number is not exactly one past the last
        """
        with self._lock:
            expected = len(self._series) + 1
            if measurement.sequence != expected:
                raise ValueError(f"Measurement sequence {measurement.sequence} out of order (expected {expected}).")
            self._series.append(measurement)

    def snapshot(self) -> List[Measurement]:
        """Return an ordered copy of all measurements recorded so far."""
        with self._lock:
            return list(self._series)

    def __len__(self) -> int:
        with self._lock:
            return len(self._series)

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    def stop(self) -> None:
        """Clear the running flag. Safe to call from any thread or signal handler."""
        with self._cond:
            self._running = False
            self._cond.notify_all()

    def wait_stopped(self, timeout: float) -> bool:
        """
        Block for up to timeout seconds or until the session is stopped.

        Returns:
            True if the session has been stopped
        """
        with self._cond:
            return self._cond.wait_for(lambda: not self._running, timeout)

    def fail(self, reason: str) -> None:
        """Record why the probe engine stopped on its own."""
        with self._lock:
            self._engine_error = reason

    @property
    def engine_error(self) -> Optional[str]:
        with self._lock:
            return self._engine_error
