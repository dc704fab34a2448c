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
Command-line interface for PingGraph.

This module contains the main entry point and command-line argument handling.
"""

import argparse
import logging
import os
import signal
import sys
import time
from typing import Any, Callable, Dict, List, Optional

from pinggraph.config import (
    DEFAULT_DEAD_TIMEOUT_MS,
    DEFAULT_INTERVAL_SECONDS,
    DEFAULT_TIMEOUT_MS,
    SCALE_LINEAR,
    SCALES,
    ConfigError,
    ProbeConfig,
    load_config,
)
from pinggraph.input_keys import EVENT_RESIZE, poll_event, terminal_cbreak_mode
from pinggraph.prober import ProbeEngine, ProbeSocketError
from pinggraph.render_loop import RenderLoop
from pinggraph.resolver import ResolutionError, resolve_address
from pinggraph.series import SeriesStore
from pinggraph.stats import compute_stats, format_session_summary
from pinggraph.ui_render import ScreenRenderer, prepare_terminal_for_exit

logger = logging.getLogger(__name__)

# Longest single wait for a key, so resizes are noticed between ticks.
_INPUT_POLL_SECONDS = 0.25


def _configure_logging(log_level: str, log_file: Optional[str]) -> None:
    """Configure logging handlers for CLI execution."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        # File logging replaces stderr output while the screen is drawn
        handlers = [logging.FileHandler(os.path.expanduser(log_file), encoding="utf-8")]
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(message)s",
        handlers=handlers,
        force=True,
    )


# Hardcoded defaults for config-overridable fields.
# Applied after config merging for any field still set to None.
_HARDCODED_DEFAULTS: Dict[str, Any] = {
    "timeout": DEFAULT_TIMEOUT_MS,
    "interval": DEFAULT_INTERVAL_SECONDS,
    "dead_timeout": DEFAULT_DEAD_TIMEOUT_MS,
    "ipv6": False,
    "unprivileged": False,
    "scale": SCALE_LINEAR,
    "log_level": "WARNING",
}


def _apply_config_to_args(args: argparse.Namespace, config: Dict[str, Any]) -> None:
    """
    Overlay config file values onto a parsed argument namespace.

    Only fields that are still ``None`` (i.e. not explicitly set on the CLI)
    are updated. A config-supplied ``host`` is used only when no host was
    given on the command line.

    Args:
        args: Namespace returned by ``argparse.ArgumentParser.parse_args()``.
        config: Dictionary of values loaded from the config file.
    """
    for key, value in config.items():
        if key == "log_level":
            value = str(value).upper()
        if hasattr(args, key) and getattr(args, key) is None:
            setattr(args, key, value)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="PingGraph - Graph ICMP echo round-trip times to a single host in the terminal",
        epilog="Raw ICMP sockets need root or CAP_NET_RAW; use --unprivileged for datagram ICMP sockets.",
    )
    parser.add_argument(
        "-W",
        "--timeout",
        type=int,
        default=None,
        help=f"Time in milliseconds to wait for each reply (default: {DEFAULT_TIMEOUT_MS})",
    )
    parser.add_argument(
        "-i",
        "--interval",
        type=float,
        default=None,
        help=f"Interval in seconds between probes (default: {DEFAULT_INTERVAL_SECONDS})",
    )
    parser.add_argument(
        "-D",
        "--dead-timeout",
        dest="dead_timeout",
        type=float,
        default=None,
        help="Value in milliseconds plotted for lost probes; must be between the timeout "
        f"and 10000 (default: {DEFAULT_DEAD_TIMEOUT_MS:g})",
    )
    parser.add_argument(
        "-6",
        "--ipv6",
        action="store_true",
        default=None,
        help="Probe the host over IPv6 instead of IPv4",
    )
    parser.add_argument(
        "--unprivileged",
        action="store_true",
        default=None,
        help="Use unprivileged datagram ICMP sockets instead of raw sockets",
    )
    parser.add_argument(
        "-s",
        "--scale",
        type=str,
        default=None,
        choices=list(SCALES),
        help="Initial chart scale (linear|log); press 'l' to toggle at runtime",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Optional log file path; log output then stays off the terminal",
    )
    parser.add_argument(
        "--no-config",
        action="store_true",
        default=False,
        help="Skip loading ~/.pinggraph.conf config file",
    )
    parser.add_argument("host", nargs="?", default=None, help="Host to ping (IP address or hostname)")
    return parser


def build_probe_config(args: argparse.Namespace) -> ProbeConfig:
    """Build the validated session configuration from parsed arguments."""
    return ProbeConfig.create(
        timeout_ms=args.timeout,
        interval=args.interval,
        dead_timeout_ms=args.dead_timeout,
        ipv6=args.ipv6,
        privileged=not args.unprivileged,
    )


def handle_options(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse and validate command-line arguments."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Load and apply config file unless --no-config was given
    if not args.no_config:
        try:
            config = load_config()
            _apply_config_to_args(args, config)
        except ValueError as exc:
            parser.error(str(exc))

    # Apply hardcoded defaults for any config-overridable field still at None
    for field, default in _HARDCODED_DEFAULTS.items():
        if getattr(args, field, None) is None:
            setattr(args, field, default)

    if not args.host:
        parser.error("a host to ping is required.")

    try:
        build_probe_config(args)
    except ConfigError as exc:
        parser.error(str(exc))
    return args


def _install_signal_handlers(store: SeriesStore) -> Dict[int, Any]:
    """Route SIGINT/SIGTERM to a clean session stop and return the previous handlers."""

    def _handle_signal(signum: int, _frame: Any) -> None:
        logger.info("Received signal %d, stopping", signum)
        store.stop()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, _handle_signal)
    return previous


def _restore_signal_handlers(previous: Dict[int, Any]) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)


def _make_event_reader(screen: ScreenRenderer) -> Callable[[float], Optional[str]]:
    """Build the render loop's event source: keys plus terminal resizes."""

    def read_event(timeout: float) -> Optional[str]:
        if screen.size_changed():
            return EVENT_RESIZE
        return poll_event(min(timeout, _INPUT_POLL_SECONDS))

    return read_event


def run(args: argparse.Namespace) -> int:
    """
    Run the PingGraph monitor with parsed arguments.

    Returns:
        Process exit status (0 on a clean quit, 1 on a startup failure)
    """
    _configure_logging(getattr(args, "log_level", "WARNING"), getattr(args, "log_file", None))
    config = build_probe_config(args)

    try:
        address = resolve_address(args.host, ipv6=config.ipv6)
    except ResolutionError as exc:
        logger.debug("Resolution of %s failed: %s", args.host, exc)
        print(f"Could not resolve host {args.host}. Exiting.", file=sys.stderr)
        return 1

    store = SeriesStore()
    engine = ProbeEngine(address, config, store)
    try:
        engine.open()
    except ProbeSocketError as exc:
        logger.error("%s", exc)
        print(str(exc), file=sys.stderr)
        return 1

    logger.info(
        "Pinging %s (%s) with timeout=%dms, interval=%.2fs, dead-timeout=%.0fms",
        args.host,
        address,
        config.timeout_ms,
        config.interval,
        config.dead_timeout_ms,
    )
    started_at = time.monotonic()
    engine.start()
    previous_handlers = _install_signal_handlers(store)

    screen = ScreenRenderer(args.host, config.ipv6, use_color=sys.stdout.isatty())
    loop = RenderLoop(
        store,
        config,
        draw=screen.draw,
        read_event=_make_event_reader(screen),
        started_at=started_at,
        scale=args.scale,
        on_resize=screen.reset,
    )
    try:
        if sys.stdin.isatty():
            with terminal_cbreak_mode(sys.stdin.fileno()):
                loop.run()
        else:
            loop.run()
    finally:
        store.stop()
        if not engine.join(timeout=config.interval + config.timeout_seconds + 1.0):
            logger.warning("Probe thread did not stop in time")
        _restore_signal_handlers(previous_handlers)
        prepare_terminal_for_exit()

    print("Exiting...")
    stats = compute_stats(store.snapshot(), config.timeout_ms, time.monotonic() - started_at)
    print(format_session_summary(stats, f"{args.host} ({address})"))
    return 0


def main() -> None:
    """Main entrypoint for the CLI - parses arguments and runs the application."""
    args = handle_options()
    sys.exit(run(args))
