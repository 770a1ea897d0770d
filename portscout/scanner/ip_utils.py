"""IP helpers and target name resolution."""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket

from ..errors import ResolutionError

logger = logging.getLogger(__name__)


def to_ip_address(value: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    """Convert a host value to an ``ipaddress`` object when possible."""
    if not value:
        return None

    host = value.strip().lower()
    if host == "localhost":
        return ipaddress.ip_address("127.0.0.1")

    try:
        return ipaddress.ip_address(host.strip("[]"))
    except ValueError:
        return None


async def resolve_target(host: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address:
    """Resolve ``host`` to exactly one address.

    Literal addresses (and ``localhost``) are returned without a lookup.
    Otherwise the first IPv4 or IPv6 entry from the system resolver wins.
    Raises :class:`ResolutionError` when the lookup fails or is empty.
    """
    literal = to_ip_address(host)
    if literal is not None:
        return literal

    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(host.strip(), None, type=socket.SOCK_STREAM)
    except (socket.gaierror, UnicodeError) as exc:
        raise ResolutionError(f"Failed to resolve hostname: {exc}") from exc

    for family, _, _, _, sockaddr in infos:
        if family in (socket.AF_INET, socket.AF_INET6):
            address = ipaddress.ip_address(sockaddr[0])
            logger.debug("Resolved %s -> %s", host, address)
            return address

    raise ResolutionError("Could not resolve hostname to any IP address")
