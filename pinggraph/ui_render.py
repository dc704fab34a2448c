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
PingGraph UI Rendering Module

This module draws the full-screen terminal view: a boxed latency chart on
top and a boxed statistics panel below. It contains ANSI text utilities,
layout computation, the ASCII chart builder and a diff-based screen writer.
"""

import os
import re
import sys
from typing import List, Optional, Sequence, Tuple

from pinggraph.config import SCALE_LOG
from pinggraph.render_loop import Frame

ANSI_RESET = "\x1b[0m"
ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;]*m")
CHART_COLOR = "\x1b[32m"  # Green
CHART_MARKER = "*"
CHART_HEIGHT_RATIO = 0.7

# Global state for rendering
LAST_RENDER_LINES: Optional[List[str]] = None


# ============================================================================
# ANSI/Text Utility Functions
# ============================================================================


def truncate_visible(text: str, width: int) -> Tuple[str, int]:
    """
    Truncate text to a visible width, preserving ANSI codes.

    Returns:
        Tuple of (truncated_text, visible_count)
    """
    result = []
    visible_count = 0
    index = 0
    while index < len(text) and visible_count < width:
        if text[index] == "\x1b":
            match = ANSI_ESCAPE_RE.match(text, index)
            if match:
                result.append(match.group(0))
                index = match.end()
                continue
        result.append(text[index])
        index += 1
        visible_count += 1
    truncated = "".join(result)
    if "\x1b[" in truncated and not truncated.endswith(ANSI_RESET):
        truncated += ANSI_RESET
    return truncated, visible_count


def pad_visible(text: str, width: int) -> str:
    """Pad text to a visible width, preserving ANSI codes."""
    truncated, visible_count = truncate_visible(text, width)
    if visible_count < width:
        truncated += " " * (width - visible_count)
    return truncated


def colorize_markers(line: str, use_color: bool) -> str:
    """Color chart markers in a graph row."""
    if not use_color or CHART_MARKER not in line:
        return line
    return line.replace(CHART_MARKER, f"{CHART_COLOR}{CHART_MARKER}{ANSI_RESET}")


# ============================================================================
# Layout/Geometry Functions
# ============================================================================


def get_terminal_size(fallback: Tuple[int, int] = (80, 24)) -> os.terminal_size:
    """
    Get the terminal size by directly querying the terminal.

    os.get_terminal_size() queries the terminal itself rather than the
    COLUMNS/LINES environment variables, so the size follows resizes.

    Args:
        fallback: Tuple of (columns, lines) used when no stream is a terminal
    """
    for stream in (sys.stdout, sys.stderr, sys.stdin):
        try:
            if stream.isatty():
                return os.get_terminal_size(stream.fileno())
        except (AttributeError, ValueError, OSError):
            continue
    return os.terminal_size(fallback)


def compute_layout(term_height: int, ratio: float = CHART_HEIGHT_RATIO) -> Tuple[int, int]:
    """
    Split the terminal rows between chart and statistics boxes.

    Returns:
        Tuple of (chart_height, stats_height)
    """
    if term_height <= 0:
        return 0, 0
    chart_height = int(round(term_height * ratio))
    chart_height = max(1, min(term_height, chart_height))
    return chart_height, term_height - chart_height


# ============================================================================
# Box/Padding Utilities
# ============================================================================


def pad_lines(lines: Sequence[str], width: int, height: int) -> List[str]:
    """Pad lines to fill the specified width and height."""
    padded = [pad_visible(line, width) for line in lines[:height]]
    while len(padded) < height:
        padded.append("".ljust(width))
    return padded


def box_lines(lines: Sequence[str], width: int, height: int, title: str = "") -> List[str]:
    """Draw a box around lines, with an optional title in the top border."""
    if width < 2 or height < 3:
        return pad_lines(lines, width, height)
    inner_width = width - 2
    inner_lines = pad_lines(lines, inner_width, height - 2)
    border = "-" * inner_width
    top = border
    if title:
        label = f" {title} "[:inner_width]
        top = label + border[len(label) :]
    boxed = [f"+{top}+"]
    boxed.extend(f"|{line}|" for line in inner_lines)
    boxed.append(f"+{border}+")
    return boxed


# ============================================================================
# Graph Utilities
# ============================================================================


def resample_values(values: Sequence[float], target_width: int) -> List[float]:
    """Resample values to fit a target width."""
    if target_width <= 0 or not values:
        return []
    if target_width == 1:
        return [values[-1]]
    if len(values) == 1:
        return [values[0]]
    if len(values) <= target_width:
        return list(values)

    last_index = len(values) - 1
    return [values[round(i * last_index / (target_width - 1))] for i in range(target_width)]


def build_ascii_graph(values: Sequence[float], width: int, height: int, max_value: float) -> List[str]:
    """
    Build an ASCII graph scaled to [0, max_value].

    Values are drawn left to right from the first column; values above
    max_value are clamped to the top row.
    """
    if width <= 0 or height <= 0:
        return []

    grid = [[" " for _ in range(width)] for _ in range(height)]
    span = max_value if max_value > 0 else 1.0
    for x, value in enumerate(values[:width]):
        fraction = min(1.0, max(0.0, value / span))
        y = height - 1 - int(round(fraction * (height - 1)))
        grid[y][x] = CHART_MARKER

    return ["".join(row) for row in grid]


def format_axis_value(value: float, scale: str) -> str:
    if scale == SCALE_LOG:
        return f"{value:.2f}"
    return f"{value:.0f}"


def render_chart(frame: Frame, title: str, width: int, height: int, use_color: bool = False) -> List[str]:
    """Render the boxed chart for a frame."""
    if width <= 0 or height <= 0:
        return []
    inner_width = max(0, width - 2)
    inner_height = max(0, height - 2)

    tick_labels = [
        format_axis_value(frame.max_value, frame.scale),
        format_axis_value(frame.max_value / 2, frame.scale),
        format_axis_value(0.0, frame.scale),
    ]
    axis_width = max(len(label) for label in tick_labels)
    graph_width = max(1, inner_width - axis_width - 3)

    if len(frame.values) < 2:
        graph_lines = [" " * graph_width for _ in range(inner_height)]
        if inner_height > 0:
            message = "Waiting for samples..."[:graph_width].center(graph_width)
            graph_lines[inner_height // 2] = message
    else:
        resampled = resample_values(frame.values, graph_width)
        graph_lines = build_ascii_graph(resampled, graph_width, inner_height, frame.max_value)

    tick_positions = {
        0: tick_labels[0],
        max(0, inner_height // 2): tick_labels[1],
        max(0, inner_height - 1): tick_labels[2],
    }
    rows = []
    for index, line in enumerate(graph_lines):
        label = tick_positions.get(index, "").rjust(axis_width)
        rows.append(f"{label} | {colorize_markers(line, use_color)}")

    scale_label = "log10 ms" if frame.scale == SCALE_LOG else "ms"
    return box_lines(rows, width, height, title=f"{title} [{scale_label}]")


def flow_columns(lines: Sequence[str], width: int, height: int) -> List[str]:
    """Flow lines top-to-bottom into as many equal columns as needed to fit height."""
    if height <= 0 or len(lines) <= height:
        return list(lines)
    lines = [line for line in lines if line.strip()]
    if not lines:
        return []
    chunks = [lines[start : start + height] for start in range(0, len(lines), height)]
    column_width = max(1, width // len(chunks))
    rows = []
    for row in range(min(height, len(chunks[0]))):
        cells = [pad_visible(chunk[row] if row < len(chunk) else "", column_width) for chunk in chunks]
        rows.append("".join(cells).rstrip())
    return rows


def render_stats_panel(frame: Frame, width: int, height: int) -> List[str]:
    """Render the boxed statistics panel for a frame."""
    lines = flow_columns(frame.stats_text.splitlines(), max(0, width - 2), max(0, height - 2))
    return box_lines(lines, width, height, title="Statistics")


def build_screen_lines(frame: Frame, title: str, width: int, height: int, use_color: bool = False) -> List[str]:
    """Compose chart and statistics boxes into full-screen lines."""
    chart_height, stats_height = compute_layout(height)
    lines = render_chart(frame, title, width, chart_height, use_color)
    lines.extend(render_stats_panel(frame, width, stats_height))
    return lines


def build_chart_title(host: str, ipv6: bool) -> str:
    family = "IPv6" if ipv6 else "IPv4"
    return f"Ping response times to {family} {host}"


# ============================================================================
# Screen Output
# ============================================================================


def render_display(lines: Sequence[str]) -> None:
    """Write lines to the terminal, redrawing only rows that changed."""
    global LAST_RENDER_LINES
    combined_lines = list(lines)
    if not combined_lines:
        return

    if LAST_RENDER_LINES is None:
        sys.stdout.write("\x1b[2J\x1b[H")
        output_chunks = []
        for index, line in enumerate(combined_lines):
            output_chunks.append(f"\x1b[{index + 1};1H\x1b[2K{line}")
        sys.stdout.write("".join(output_chunks))
        sys.stdout.flush()
        LAST_RENDER_LINES = combined_lines
        return

    max_lines = max(len(LAST_RENDER_LINES), len(combined_lines))
    output_chunks = []
    for index in range(max_lines):
        previous_line = LAST_RENDER_LINES[index] if index < len(LAST_RENDER_LINES) else None
        current_line = combined_lines[index] if index < len(combined_lines) else ""
        if previous_line == current_line and index < len(combined_lines):
            continue
        output_chunks.append(f"\x1b[{index + 1};1H\x1b[2K{current_line}")

    if output_chunks:
        sys.stdout.write("".join(output_chunks))
        sys.stdout.flush()

    LAST_RENDER_LINES = combined_lines


def reset_display() -> None:
    """Forget the previous frame so the next render clears the screen."""
    global LAST_RENDER_LINES
    LAST_RENDER_LINES = None


class ScreenRenderer:
    """Draws frames full-screen and tracks terminal size changes."""

    def __init__(self, host: str, ipv6: bool, use_color: bool = False) -> None:
        self.title = build_chart_title(host, ipv6)
        self.use_color = use_color
        self._last_size: Optional[Tuple[int, int]] = None

    def size_changed(self) -> bool:
        """Return True if the terminal size differs from the last drawn frame."""
        size = get_terminal_size(fallback=(80, 24))
        return self._last_size is not None and (size.columns, size.lines) != self._last_size

    def reset(self) -> None:
        reset_display()

    def draw(self, frame: Frame) -> None:
        size = get_terminal_size(fallback=(80, 24))
        if self._last_size is not None and (size.columns, size.lines) != self._last_size:
            reset_display()
        self._last_size = (size.columns, size.lines)
        render_display(build_screen_lines(frame, self.title, size.columns, size.lines, self.use_color))


# ============================================================================
# Terminal Utilities
# ============================================================================


def prepare_terminal_for_exit() -> None:
    """Prepare the terminal for exit by moving below the drawn screen."""
    if not sys.stdout.isatty():
        return
    term_size = get_terminal_size(fallback=(80, 24))
    sys.stdout.write(f"\x1b[{term_size.lines};1H\n")
    sys.stdout.flush()
    reset_display()
