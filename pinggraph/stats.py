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
# Review required for correctness, security, and licensing.

"""
Statistics computation for PingGraph.

This module derives the displayed metrics (average, min/max, standard
deviation, jitter, timeout and loss percentages, longest timeout run) from a
snapshot of the measurement series, and formats the statistics panel text.
"""

import math
from typing import List, Sequence, TypedDict

from pinggraph.config import ProbeConfig
from pinggraph.series import Measurement


class StatsSnapshot(TypedDict):
    """Summary statistics derived from one series snapshot."""

    average: float
    minimum: float
    maximum: float
    stddev: float
    jitter: float
    percent_over_timeout: float
    percent_lost: float
    total: int
    timeout_count: int
    lost_count: int
    longest_timeout_run: int
    elapsed: float


def valid_latencies(samples: Sequence[Measurement]) -> List[float]:
    """Return the measured latencies in emission order, skipping lost samples."""
    return [sample.latency_ms for sample in samples if sample.latency_ms is not None]


def compute_population_stddev(values: Sequence[float], mean: float) -> float:
    """Population standard deviation (divides by count)."""
    if not values:
        return 0.0
    return math.sqrt(math.fsum((value - mean) ** 2 for value in values) / len(values))


def compute_jitter(values: Sequence[float]) -> float:
    """
    Mean absolute difference between consecutive values.

    Args:
        values: Valid latencies in emission order

    Returns:
        Jitter in the unit of values, or 0.0 with fewer than two values
    """
    if len(values) < 2:
        return 0.0
    diffs = [abs(current - previous) for previous, current in zip(values, values[1:])]
    return math.fsum(diffs) / len(diffs)


def is_timeout_sample(sample: Measurement, timeout_ms: float) -> bool:
    """True for a lost sample or a latency at or above the timeout."""
    return sample.latency_ms is None or sample.latency_ms >= timeout_ms


def compute_longest_run(samples: Sequence[Measurement], timeout_ms: float) -> int:
    """
    Longest contiguous run of lost or at-or-over-timeout samples.

    Args:
        samples: The unfiltered series in sequence order
        timeout_ms: Probe timeout in milliseconds

    Returns:
        Length of the longest run (0 for an empty series)
    """
    longest = 0
    current = 0
    for sample in samples:
        if is_timeout_sample(sample, timeout_ms):
            current += 1
            longest = max(longest, current)
        else:
            current = 0
    return longest


def compute_stats(samples: Sequence[Measurement], timeout_ms: float, elapsed: float) -> StatsSnapshot:
    """
    Compute summary statistics for a series snapshot.

    All numeric fields are 0 when there are no valid latencies, and both
    percentages are 0 for an empty series.

    Args:
        samples: Snapshot of the series in sequence order
        timeout_ms: Probe timeout in milliseconds
        elapsed: Session wall-clock time in seconds

    Returns:
        StatsSnapshot dictionary
    """
    valid = valid_latencies(samples)
    total = len(samples)

    average = minimum = maximum = stddev = jitter = 0.0
    if valid:
        average = math.fsum(valid) / len(valid)
        minimum = min(valid)
        maximum = max(valid)
        stddev = compute_population_stddev(valid, average)
        jitter = compute_jitter(valid)

    over_timeout = sum(1 for value in valid if value > timeout_ms)
    lost_count = total - len(valid)
    timeout_count = sum(1 for sample in samples if is_timeout_sample(sample, timeout_ms))

    return {
        "average": average,
        "minimum": minimum,
        "maximum": maximum,
        "stddev": stddev,
        "jitter": jitter,
        "percent_over_timeout": (over_timeout / total * 100) if total > 0 else 0.0,
        "percent_lost": (lost_count / total * 100) if total > 0 else 0.0,
        "total": total,
        "timeout_count": timeout_count,
        "lost_count": lost_count,
        "longest_timeout_run": compute_longest_run(samples, timeout_ms),
        "elapsed": max(0.0, elapsed),
    }


def format_stats_text(stats: StatsSnapshot, config: ProbeConfig) -> str:
    """
    Format the statistics panel text.

    Args:
        stats: Result of compute_stats
        config: Session configuration (shown in the settings block)

    Returns:
        Multi-line string for the statistics panel
    """
    lines = [
        f"Average: {stats['average']:.2f} ms",
        f"Max: {stats['maximum']:.2f} ms",
        f"Min: {stats['minimum']:.2f} ms",
        f"Std Dev: {stats['stddev']:.2f} ms",
        f"Jitter: {stats['jitter']:.2f} ms",
        f"% Timeout(>): {stats['percent_over_timeout']:.2f}%",
        f"% Lost(=): {stats['percent_lost']:.2f}%",
        f"Total N: {stats['total']}",
        f"N timeout: {stats['timeout_count']}",
        f"Max N SEQ tim.: {stats['longest_timeout_run']}",
        f"N lost: {stats['lost_count']}",
        "---settings---",
        f"-W timeout: {config.timeout_ms} ms",
        f"-D: {config.dead_timeout_ms:.0f} ms",
        f"-i interval: {config.interval:.2f} s",
        "",
        f"RunTime: {stats['elapsed']:.2f} s",
        "",
        "Press 'q' to quit",
        "Press 'l' to toggle scale",
    ]
    return "\n".join(lines)


def format_session_summary(stats: StatsSnapshot, host_label: str) -> str:
    """One-line summary printed after the session ends."""
    received = stats["total"] - stats["lost_count"]
    return (
        f"{host_label}: {received}/{stats['total']} replies, {stats['lost_count']} lost "
        f"({stats['percent_lost']:.1f}% loss), avg {stats['average']:.2f} ms, "
        f"jitter {stats['jitter']:.2f} ms over {stats['elapsed']:.1f}s"
    )
