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
ICMP probe engine for PingGraph.

The engine runs on its own thread. Each cycle builds an echo request with the
next sequence number, sends it, waits up to the configured timeout for the
matching echo reply and appends exactly one Measurement to the shared
SeriesStore. Lost samples (timeout, send/receive errors, unparsable or
unexpected replies) are recorded with no latency; the render side substitutes
the dead-timeout sentinel.
"""

import errno
import logging
import os
import socket
import threading
import time
from typing import Any, Optional

from pinggraph.config import ProbeConfig
from pinggraph.icmp import (
    RECEIVE_BUFFER_SIZE,
    MarshalError,
    ReplyParseError,
    build_echo_request,
    destination,
    open_icmp_socket,
    parse_reply,
    receives_ip_header,
)
from pinggraph.series import Measurement, SeriesStore

logger = logging.getLogger(__name__)

# errno values after which the socket cannot be used again
_FATAL_SOCKET_ERRNOS = frozenset((errno.EBADF, errno.ENOTSOCK))


class ProbeSocketError(OSError):
    """Raised when the ICMP socket cannot be opened."""


class ProbeEngine:
    """
    Sends one echo request per interval and records the outcome.

    Args:
        address: Resolved target address (literal IPv4/IPv6)
        config: Session probe configuration
        store: Shared series store; the engine is its only writer
        sock: Optional pre-opened socket (tests inject fakes here)
        identifier: Echo identifier; defaults to the low 16 bits of the PID
    """

    def __init__(
        self,
        address: str,
        config: ProbeConfig,
        store: SeriesStore,
        sock: Optional[Any] = None,
        identifier: Optional[int] = None,
    ) -> None:
        self.address = address
        self.config = config
        self.store = store
        self.identifier = (os.getpid() & 0xFFFF) if identifier is None else identifier
        self._sock = sock
        self._sequence = 0
        self._destination = destination(address, config.ipv6)
        self._has_ip_header = receives_ip_header(config.ipv6, config.privileged)
        self._thread: Optional[threading.Thread] = None

    @property
    def sequence(self) -> int:
        """Sequence number of the last completed probe cycle."""
        return self._sequence

    def open(self) -> None:
        """
        Open the ICMP socket if none was injected.

        Raises:
            ProbeSocketError: If the socket cannot be created
        """
        if self._sock is not None:
            return
        try:
            self._sock = open_icmp_socket(self.config.ipv6, self.config.privileged)
        except OSError as exc:
            kind = "raw" if self.config.privileged else "datagram"
            hint = (
                "Run as root or grant CAP_NET_RAW, or retry with --unprivileged."
                if self.config.privileged
                else "Check net.ipv4.ping_group_range or run with raw sockets as root."
            )
            raise ProbeSocketError(
                f"Error opening {self.config.family_label} ICMP {kind} socket: {exc}. {hint}"
            ) from exc
        logger.info("Opened %s ICMP socket (identifier=%d)", self.config.family_label, self.identifier)

    def close(self) -> None:
        """Close the socket; safe to call repeatedly."""
        if self._sock is None:
            return
        try:
            self._sock.close()
        finally:
            self._sock = None

    def start(self) -> threading.Thread:
        """Open the socket and run the probe loop on a new thread."""
        self.open()
        self._thread = threading.Thread(target=self.run, name="pinggraph-probe", daemon=True)
        self._thread.start()
        return self._thread

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the probe thread to finish.

        Returns:
            True if the thread has stopped (or was never started)
        """
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def run(self) -> None:
        """Probe until the session stops or a fatal error occurs."""
        logger.info("Probing %s every %.3fs (timeout=%dms)", self.address, self.config.interval, self.config.timeout_ms)
        try:
            while self.store.running:
                if not self.probe_once():
                    break
                if self.store.wait_stopped(self.config.interval):
                    break
        finally:
            self.close()
            logger.info("Probe engine stopped after %d probes", self._sequence)

    def probe_once(self) -> bool:
        """
        Run one BUILD, SEND, AWAIT_REPLY, CLASSIFY cycle.

        Returns:
            False when a fatal error stopped the engine, True otherwise
        """
        sequence = self._sequence + 1
        try:
            packet = build_echo_request(self.identifier, sequence, ipv6=self.config.ipv6)
        except MarshalError as exc:
            self._fail(str(exc))
            return False

        latency_ms: Optional[float] = None
        try:
            latency_ms = self._exchange(packet, sequence)
        except OSError as exc:
            if exc.errno in _FATAL_SOCKET_ERRNOS:
                self._fail(f"ICMP socket unusable: {exc}")
                return False
            logger.warning("Error pinging %s (seq=%d): %s", self.address, sequence, exc)

        self._sequence = sequence
        self.store.append(Measurement(sequence, latency_ms))
        return True

    def _fail(self, reason: str) -> None:
        logger.error("Probe engine stopped: %s", reason)
        self.store.fail(reason)

    def _exchange(self, packet: bytes, sequence: int) -> Optional[float]:
        """
        Send one request and wait for its reply.

        Returns:
            Round-trip latency in milliseconds, or None for a lost sample

        Raises:
            OSError: On send failure or a non-timeout receive failure
        """
        if self._sock is None:
            raise OSError(errno.EBADF, "ICMP socket is not open")
        sent = self._sock.sendto(packet, self._destination)
        start = time.perf_counter()
        if sent != len(packet):
            logger.warning("Sent %d bytes, expected to send %d bytes", sent, len(packet))

        deadline = start + self.config.timeout_seconds
        while True:
            remaining = deadline - time.perf_counter()
            if remaining <= 0:
                logger.debug("Ping to %s timed out (seq=%d)", self.address, sequence)
                return None
            self._sock.settimeout(remaining)
            try:
                data, peer = self._sock.recvfrom(RECEIVE_BUFFER_SIZE)
            except socket.timeout:
                logger.debug("Ping to %s timed out (seq=%d)", self.address, sequence)
                return None
            received = time.perf_counter()

            try:
                message = parse_reply(data, ipv6=self.config.ipv6, has_ip_header=self._has_ip_header)
            except ReplyParseError as exc:
                logger.warning("Error parsing ICMP reply from %s: %s", peer, exc)
                return None

            if message.is_echo_request:
                # Our own request looped back (e.g. pinging localhost).
                continue
            if self.config.ipv6 and message.is_neighbor_discovery:
                continue
            if not message.is_echo_reply:
                logger.warning("Received non-echo reply from %s: type=%d", peer, message.icmp_type)
                return None
            if not self._matches(message.identifier, message.sequence, sequence):
                logger.debug(
                    "Ignoring echo reply id=%s seq=%s while waiting for seq=%d",
                    message.identifier,
                    message.sequence,
                    sequence,
                )
                continue

            latency_ms = (received - start) * 1000.0
            if latency_ms > self.config.timeout_ms:
                logger.debug(
                    "Ping response time %.2f ms exceeded timeout of %d ms", latency_ms, self.config.timeout_ms
                )
            return latency_ms

    def _matches(self, identifier: Optional[int], wire_sequence: Optional[int], sequence: int) -> bool:
        if wire_sequence != (sequence & 0xFFFF):
            return False
        # Datagram sockets get their identifier rewritten by the kernel.
        if self.config.privileged and identifier != self.identifier:
            return False
        return True
