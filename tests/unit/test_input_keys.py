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
Unit tests for pinggraph.input_keys module.

Covers key-to-event mapping, read_key with and without a terminal, and the
terminal_cbreak_mode context manager on a real PTY.
"""

import os
import pty
import sys
import termios
import unittest
from unittest.mock import MagicMock, patch

# Add parent directory to path to import pinggraph
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))

import readchar.key  # noqa: E402

from pinggraph.input_keys import (  # noqa: E402, isort: skip
    EVENT_QUIT,
    EVENT_TOGGLE_SCALE,
    key_to_event,
    poll_event,
    read_key,
    terminal_cbreak_mode,
)


def _fake_stdin(is_tty: bool) -> MagicMock:
    stdin = MagicMock()
    stdin.isatty.return_value = is_tty
    return stdin


class TestKeyToEvent(unittest.TestCase):
    """Test key bindings."""

    def test_quit_keys(self) -> None:
        for key in ("q", "Q", readchar.key.CTRL_C):
            self.assertEqual(key_to_event(key), EVENT_QUIT, msg=repr(key))

    def test_toggle_scale_keys(self) -> None:
        self.assertEqual(key_to_event("l"), EVENT_TOGGLE_SCALE)
        self.assertEqual(key_to_event("L"), EVENT_TOGGLE_SCALE)

    def test_unbound_keys(self) -> None:
        for key in ("x", " ", readchar.key.UP, "", None):
            self.assertIsNone(key_to_event(key), msg=repr(key))


class TestReadKey(unittest.TestCase):
    """Test read_key and poll_event."""

    @patch("pinggraph.input_keys.time.sleep")
    def test_non_tty_sleeps_and_returns_none(self, mock_sleep) -> None:
        with patch("sys.stdin", _fake_stdin(False)):
            self.assertIsNone(read_key(0.25))
        mock_sleep.assert_called_once_with(0.25)

    @patch("pinggraph.input_keys.select.select", return_value=([], [], []))
    def test_tty_without_input(self, mock_select) -> None:
        with patch("sys.stdin", _fake_stdin(True)):
            self.assertIsNone(read_key(0.5))
        self.assertEqual(mock_select.call_args[0][3], 0.5)

    @patch("pinggraph.input_keys.readchar.readkey", return_value="q")
    def test_tty_with_input(self, _mock_readkey) -> None:
        stdin = _fake_stdin(True)
        with patch("sys.stdin", stdin), patch("pinggraph.input_keys.select.select", return_value=([stdin], [], [])):
            self.assertEqual(read_key(0.1), "q")

    @patch("pinggraph.input_keys.readchar.readkey", side_effect=KeyboardInterrupt)
    def test_ctrl_c_from_readchar(self, _mock_readkey) -> None:
        stdin = _fake_stdin(True)
        with patch("sys.stdin", stdin), patch("pinggraph.input_keys.select.select", return_value=([stdin], [], [])):
            self.assertEqual(read_key(0.1), readchar.key.CTRL_C)

    @patch("pinggraph.input_keys.read_key", return_value="l")
    def test_poll_event_maps_key(self, _mock_read_key) -> None:
        self.assertEqual(poll_event(0.1), EVENT_TOGGLE_SCALE)

    @patch("pinggraph.input_keys.read_key", return_value="z")
    def test_poll_event_ignores_unbound_key(self, _mock_read_key) -> None:
        self.assertIsNone(poll_event(0.1))


class TestTerminalCbreakMode(unittest.TestCase):
    """Test terminal_cbreak_mode on a PTY."""

    def setUp(self) -> None:
        self.master_fd, self.slave_fd = pty.openpty()

    def tearDown(self) -> None:
        for fd in (self.master_fd, self.slave_fd):
            try:
                os.close(fd)
            except OSError:
                pass

    def test_canonical_mode_disabled_inside_context(self) -> None:
        with terminal_cbreak_mode(self.slave_fd):
            lflag = termios.tcgetattr(self.slave_fd)[3]
            self.assertFalse(lflag & termios.ICANON)

    def test_settings_restored_after_exception(self) -> None:
        original = termios.tcgetattr(self.slave_fd)
        with self.assertRaises(RuntimeError):
            with terminal_cbreak_mode(self.slave_fd):
                raise RuntimeError("boom")
        self.assertEqual(termios.tcgetattr(self.slave_fd), original)

    def test_non_terminal_fd_is_passthrough(self) -> None:
        read_fd, write_fd = os.pipe()
        try:
            entered = False
            with terminal_cbreak_mode(read_fd):
                entered = True
            self.assertTrue(entered)
        finally:
            os.close(read_fd)
            os.close(write_fd)


if __name__ == "__main__":
    unittest.main()
