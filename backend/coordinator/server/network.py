"""LAN addresses this host can be reached on, for players joining over a local network."""

from __future__ import annotations

import ipaddress
import socket

import structlog
from pydantic import BaseModel

logger = structlog.get_logger()

# connect() on a UDP socket only selects a route; nothing is sent
_ROUTE_TARGET = ("10.255.255.255", 1)


class NetworkInterface(BaseModel):
    name: str
    address: str


def _hostname_addresses(hostname: str) -> list[str]:
    try:
        infos = socket.getaddrinfo(hostname, None, family=socket.AF_INET, type=socket.SOCK_STREAM)
    except OSError as e:
        logger.debug("hostname lookup failed", hostname=hostname, error=str(e))
        return []
    return [sockaddr[0] for _family, _type, _proto, _canon, sockaddr in infos]


def _route_address() -> str | None:
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(_ROUTE_TARGET)
            return sock.getsockname()[0]
    except OSError as e:
        logger.debug("outbound route lookup failed", error=str(e))
        return None


def lan_interfaces() -> list[NetworkInterface]:
    """
    Return the non-loopback IPv4 addresses of this host, in discovery order.

    Combines the addresses the host name resolves to with the source address
    of the default outbound route. Each entry is named after the host.
    """
    hostname = socket.gethostname()
    interfaces: list[NetworkInterface] = []
    seen: set[str] = set()
    for address in [*_hostname_addresses(hostname), _route_address()]:
        if address is None or address in seen:
            continue
        seen.add(address)
        ip = ipaddress.ip_address(address)
        if ip.is_loopback or ip.is_unspecified:
            continue
        interfaces.append(NetworkInterface(name=hostname, address=address))
    return interfaces


def log_lan_addresses() -> None:
    """Log where LAN players can reach this coordinator."""
    interfaces = lan_interfaces()
    if not interfaces:
        logger.info("no LAN address found, only local clients can connect")
    for interface in interfaces:
        logger.info("LAN address available", interface=interface.name, address=interface.address)
