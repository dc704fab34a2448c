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
Hostname resolution for PingGraph.

Resolves a target hostname to exactly one address of the requested family.
"""

import logging
import socket

logger = logging.getLogger(__name__)


class ResolutionError(OSError):
    """Raised when a hostname has no usable address of the requested family."""


def resolve_address(host: str, ipv6: bool = False) -> str:
    """
    Resolve a hostname to one IPv4 or IPv6 address.

    The first address of the requested family reported by the lookup wins.

    Args:
        host: Hostname or literal IP address
        ipv6: Resolve an IPv6 address instead of IPv4

    Returns:
        The address as a string

    Raises:
        ResolutionError: If the lookup fails or yields no address of the family
    """
    family = socket.AF_INET6 if ipv6 else socket.AF_INET
    family_label = "IPv6" if ipv6 else "IPv4"
    try:
        addr_info = socket.getaddrinfo(host, None, socket.AF_UNSPEC, socket.SOCK_RAW)
    except (socket.gaierror, UnicodeError, OSError) as exc:
        raise ResolutionError(f"Failed to resolve hostname {host} with error: {exc}") from exc

    # getaddrinfo returns tuples: (family, type, proto, canonname, sockaddr)
    for entry_family, _socktype, _proto, _canonname, sockaddr in addr_info:
        if entry_family == family:
            address = str(sockaddr[0])
            logger.debug("Resolved %s to %s address %s", host, family_label, address)
            return address

    raise ResolutionError(f"No {family_label} address found for host {host}")
