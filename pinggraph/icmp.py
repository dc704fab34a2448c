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
ICMP echo message codec and socket helpers for PingGraph.

Echo requests are marshalled and replies are parsed with scapy. Sockets are
plain kernel ICMP sockets:

  - Raw sockets (SOCK_RAW) need CAP_NET_RAW or root. IPv4 raw sockets
    deliver the IP header in front of every ICMP message.
  - Datagram sockets (SOCK_DGRAM) work unprivileged where the kernel allows
    it (Linux: net.ipv4.ping_group_range). The kernel rewrites the echo
    identifier, and replies arrive without an IP header.
  - IPv6 sockets never deliver the IPv6 header, and the kernel fills in the
    ICMPv6 checksum.
"""

import socket
import struct
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from scapy.layers.inet import ICMP, IP
from scapy.layers.inet6 import ICMPv6EchoReply, ICMPv6EchoRequest
from scapy.packet import Raw

ICMP_ECHO_REPLY = 0
ICMP_ECHO_REQUEST = 8
ICMPV6_ECHO_REQUEST = 128
ICMPV6_ECHO_REPLY = 129
# Router and neighbor discovery (solicitation, advertisement, redirect)
ICMPV6_NDP_TYPES = frozenset(range(133, 138))

ICMP_HEADER_LENGTH = 8
IPV4_MIN_HEADER_LENGTH = 20
RECEIVE_BUFFER_SIZE = 1500

PAYLOAD = b"HELLO-PING"


class ICMPError(Exception):
    """Base class for ICMP codec errors."""


class MarshalError(ICMPError):
    """Raised when an echo request cannot be built."""


class ReplyParseError(ICMPError):
    """Raised when received bytes do not decode as an ICMP message."""


@dataclass(frozen=True)
class ICMPMessage:
    """Decoded view of an inbound ICMP message."""

    icmp_type: int
    identifier: Optional[int] = None
    sequence: Optional[int] = None

    @property
    def is_echo_reply(self) -> bool:
        return self.icmp_type in (ICMP_ECHO_REPLY, ICMPV6_ECHO_REPLY)

    @property
    def is_echo_request(self) -> bool:
        return self.icmp_type in (ICMP_ECHO_REQUEST, ICMPV6_ECHO_REQUEST)

    @property
    def is_neighbor_discovery(self) -> bool:
        return self.icmp_type in ICMPV6_NDP_TYPES


def build_echo_request(identifier: int, sequence: int, ipv6: bool = False, payload: bytes = PAYLOAD) -> bytes:
    """
    Marshal an ICMP (or ICMPv6) echo request.

    Args:
        identifier: Echo identifier (0-65535)
        sequence: Sequence number; sent on the wire modulo 65536
        ipv6: Build an ICMPv6 echo request instead of ICMPv4
        payload: Fixed echo payload

    Returns:
        The encoded ICMP message (without IP header)

    Raises:
        MarshalError: If the identifier is out of range or encoding fails
    """
    if not 0 <= identifier <= 0xFFFF:
        raise MarshalError(f"ICMP identifier {identifier} does not fit in 16 bits.")
    if sequence < 0:
        raise MarshalError(f"ICMP sequence {sequence} must not be negative.")
    wire_sequence = sequence & 0xFFFF
    try:
        if ipv6:
            # Checksum 0 leaves the field for the kernel to fill in.
            message = ICMPv6EchoRequest(id=identifier, seq=wire_sequence, data=payload, cksum=0)
        else:
            message = ICMP(type=ICMP_ECHO_REQUEST, code=0, id=identifier, seq=wire_sequence) / Raw(load=payload)
        return bytes(message)
    except (struct.error, TypeError, ValueError) as exc:
        raise MarshalError(f"Error marshalling ICMP message: {exc}") from exc


def _parse_icmpv4(data: bytes, has_ip_header: bool) -> ICMPMessage:
    if has_ip_header:
        if len(data) < IPV4_MIN_HEADER_LENGTH:
            raise ReplyParseError(f"Packet shorter than minimum IP header length ({len(data)} bytes).")
        header_length = (data[0] & 0x0F) * 4
        if header_length < IPV4_MIN_HEADER_LENGTH or len(data) < header_length + ICMP_HEADER_LENGTH:
            raise ReplyParseError(f"Packet shorter than IP header + ICMP header ({len(data)} bytes).")
        packet = IP(data)
        if not packet.haslayer(ICMP):
            raise ReplyParseError(f"IP packet does not carry ICMP (protocol {packet.proto}).")
        icmp = packet[ICMP]
    else:
        if len(data) < ICMP_HEADER_LENGTH:
            raise ReplyParseError(f"Packet shorter than ICMP header ({len(data)} bytes).")
        icmp = ICMP(data)
    if icmp.type in (ICMP_ECHO_REPLY, ICMP_ECHO_REQUEST):
        return ICMPMessage(icmp.type, icmp.id, icmp.seq)
    return ICMPMessage(icmp.type)


def _parse_icmpv6(data: bytes) -> ICMPMessage:
    if len(data) < ICMP_HEADER_LENGTH:
        raise ReplyParseError(f"Packet shorter than ICMPv6 header ({len(data)} bytes).")
    icmp_type = data[0]
    if icmp_type == ICMPV6_ECHO_REPLY:
        echo = ICMPv6EchoReply(data)
    elif icmp_type == ICMPV6_ECHO_REQUEST:
        echo = ICMPv6EchoRequest(data)
    else:
        return ICMPMessage(icmp_type)
    return ICMPMessage(icmp_type, echo.id, echo.seq)


def parse_reply(data: bytes, ipv6: bool = False, has_ip_header: bool = True) -> ICMPMessage:
    """
    Decode an inbound ICMP message.

    Args:
        data: Bytes received from the ICMP socket
        ipv6: Decode as ICMPv6
        has_ip_header: Whether an IPv4 header precedes the ICMP message
                       (ignored for IPv6)

    Returns:
        ICMPMessage; identifier and sequence are set only for echo messages

    Raises:
        ReplyParseError: If the data is truncated or cannot be decoded
    """
    try:
        if ipv6:
            return _parse_icmpv6(data)
        return _parse_icmpv4(data, has_ip_header)
    except (struct.error, IndexError, TypeError, ValueError) as exc:
        raise ReplyParseError(f"Error parsing ICMP reply: {exc}") from exc


def open_icmp_socket(ipv6: bool = False, privileged: bool = True) -> socket.socket:
    """
    Open an ICMP socket for the given family.

    Raises:
        OSError: If the socket cannot be created (PermissionError when the
                 process lacks the privileges for the socket kind)
    """
    family = socket.AF_INET6 if ipv6 else socket.AF_INET
    proto = socket.IPPROTO_ICMPV6 if ipv6 else socket.IPPROTO_ICMP
    kind = socket.SOCK_RAW if privileged else socket.SOCK_DGRAM
    return socket.socket(family, kind, proto)


def receives_ip_header(ipv6: bool, privileged: bool) -> bool:
    """Return True when the socket kind prefixes replies with the IPv4 header."""
    return privileged and not ipv6


def destination(address: str, ipv6: bool = False) -> Union[Tuple[str, int], Tuple[str, int, int, int]]:
    """Build the sockaddr tuple for sendto()."""
    if ipv6:
        return (address, 0, 0, 0)
    return (address, 0)
