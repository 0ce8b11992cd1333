# nodectl/api/address.py
"""Parsing of self-describing API address strings (/ip4/<host>/tcp/<port>)."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass

from nodectl.errors import AddressParseError

_HOST_FAMILIES = {"ip4", "ip6", "dns", "dns4", "dns6"}
_APP_PROTOCOLS = {"http", "https"}


@dataclass(frozen=True)
class ApiAddress:
    """A parsed API address."""

    host: str
    port: int
    family: str = "ip4"
    protocol: str = "http"

    @property
    def url(self) -> str:
        host = f"[{self.host}]" if self.family == "ip6" else self.host
        return f"{self.protocol}://{host}:{self.port}"

    def __str__(self) -> str:
        suffix = "" if self.protocol == "http" else f"/{self.protocol}"
        return f"/{self.family}/{self.host}/tcp/{self.port}{suffix}"


def parse_api_addr(addr: str) -> ApiAddress:
    """
    Parse an address such as "/ip4/127.0.0.1/tcp/5001" or "/dns4/node/tcp/443/https".

    Raises:
        AddressParseError: If the string is not a host/tcp address
    """
    parts = addr.strip().rstrip("/").split("/")
    if len(parts) < 5 or parts[0] != "":
        raise AddressParseError(f"Invalid API address: {addr!r}")

    _, family, host, transport, port_text, *rest = parts
    if family not in _HOST_FAMILIES:
        raise AddressParseError(f"Unsupported address family {family!r} in {addr!r}")
    if transport != "tcp":
        raise AddressParseError(f"Expected tcp transport in {addr!r}, got {transport!r}")
    if not port_text.isdigit() or not 0 < int(port_text) <= 65535:
        raise AddressParseError(f"Invalid port {port_text!r} in {addr!r}")
    if len(rest) > 1 or (rest and rest[0] not in _APP_PROTOCOLS):
        raise AddressParseError(f"Unsupported protocol suffix in {addr!r}")
    if not host:
        raise AddressParseError(f"Missing host in {addr!r}")

    try:
        if family == "ip4":
            ipaddress.IPv4Address(host)
        elif family == "ip6":
            ipaddress.IPv6Address(host)
    except ValueError as e:
        raise AddressParseError(f"Invalid {family} host {host!r} in {addr!r}") from e

    return ApiAddress(
        host=host,
        port=int(port_text),
        family=family,
        protocol=rest[0] if rest else "http",
    )
