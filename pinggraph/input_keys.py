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
Keyboard input handling for PingGraph using the readchar library.

This module waits for keystrokes on stdin and maps them to the discrete
events consumed by the render loop: quitting and toggling the chart scale.
"""

import contextlib
import logging
import select
import sys
import termios
import time
import tty
from typing import Generator, Optional

import readchar
import readchar.key

logger = logging.getLogger(__name__)

EVENT_QUIT = "quit"
EVENT_TOGGLE_SCALE = "toggle_scale"
EVENT_RESIZE = "resize"

_KEY_EVENTS = {
    "q": EVENT_QUIT,
    "Q": EVENT_QUIT,
    readchar.key.CTRL_C: EVENT_QUIT,
    "l": EVENT_TOGGLE_SCALE,
    "L": EVENT_TOGGLE_SCALE,
}


@contextlib.contextmanager
def terminal_cbreak_mode(fd: Optional[int] = None) -> Generator[None, None, None]:
    """Context manager that puts a terminal into cbreak mode and restores it on exit.

    Terminal state is restored even when a signal interrupts the caller, so
    the shell is never left unusable.

    Args:
        fd: Terminal file descriptor to configure. Defaults to ``sys.stdin.fileno()``.
    """
    if fd is None:
        fd = sys.stdin.fileno()
    try:
        old_settings = termios.tcgetattr(fd)
    except termios.error:
        # Not a real terminal (e.g. a pipe or test mock)
        old_settings = None
    if old_settings is None:
        yield
        return
    try:
        tty.setcbreak(fd)
        yield
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)


def key_to_event(key: Optional[str]) -> Optional[str]:
    """Map a key string to a render loop event name, or None if unbound."""
    if not key:
        return None
    return _KEY_EVENTS.get(key)


def read_key(timeout: float = 0.0) -> Optional[str]:
    """
    Wait up to timeout seconds for a key on stdin and read it.

    Returns:
        The key string as returned by readchar, or None if no input arrived
        (or stdin is not a terminal)
    """
    if not sys.stdin.isatty():
        time.sleep(max(0.0, timeout))
        return None

    ready, _, _ = select.select([sys.stdin], [], [], max(0.0, timeout))
    if not ready:
        return None

    try:
        return readchar.readkey()
    except KeyboardInterrupt:
        # readchar raises on Ctrl-C instead of returning it
        return readchar.key.CTRL_C


def poll_event(timeout: float) -> Optional[str]:
    """Wait up to timeout seconds for a key and return its event name."""
    key = read_key(timeout)
    event = key_to_event(key)
    if key and event is None:
        logger.debug("Ignoring unbound key %r", key)
    return event
