"""IPv4/IPv6 socket addresses and name resolution."""

from __future__ import annotations

import socket
from ipaddress import IPv4Address
from typing import Any, Union

from .exceptions import TaggedError

SockAddr = Union[tuple, str, bytes]

_INTERNET_FAMILIES = (socket.AF_INET, socket.AF_INET6)
_AI_ALL = getattr(socket, "AI_ALL", 0)


def _normalize(family: int, sockaddr: Any) -> SockAddr:
    """Bring a socket-module address into one canonical shape per family."""
    if family == socket.AF_INET:
        host, port = sockaddr[0], sockaddr[1]
        return (str(host), int(port))
    if family == socket.AF_INET6:
        host, port, *rest = sockaddr
        flowinfo, scope_id = (list(rest) + [0, 0])[:2]
        return (str(host), int(port), int(flowinfo), int(scope_id))
    if isinstance(sockaddr, (str, bytes)):
        return sockaddr
    return tuple(sockaddr)


class Address:
    """A socket address, built by resolving a host and a port or service."""

    __slots__ = ("_family", "_sockaddr")

    def __init__(self, host: str, port: int | str = 0) -> None:
        """Numeric ``port``: ``host`` must be a dotted quad; string ``port``: resolve both."""
        if isinstance(port, str):
            service, flags = port, _AI_ALL
        else:
            if not 0 <= port <= 0xFFFF:
                raise ValueError(f"port out of range: {port}")
            service = str(port)
            flags = socket.AI_NUMERICHOST | socket.AI_NUMERICSERV

        try:
            results = socket.getaddrinfo(host, service, socket.AF_INET, 0, 0, flags)
        except socket.gaierror as exc:
            raise TaggedError(
                f"getaddrinfo({host}, {service})", exc.errno or 0, exc.strerror or str(exc)
            ) from exc

        if not results:
            raise RuntimeError("getaddrinfo returned successfully but with no results")

        family, _type, _proto, _canon, sockaddr = results[0]
        self._family = socket.AddressFamily(family)
        self._sockaddr = _normalize(family, sockaddr)

    @classmethod
    def from_sockaddr(cls, family: int, sockaddr: Any) -> Address:
        """Wrap an address as returned by the socket module (e.g. getsockname())."""
        address = cls.__new__(cls)
        address._family = socket.AddressFamily(family)
        address._sockaddr = _normalize(family, sockaddr)
        return address

    @classmethod
    def from_ipv4_numeric(cls, value: int) -> Address:
        """An IPv4 address (port 0) from its 32-bit numeric value."""
        return cls.from_sockaddr(socket.AF_INET, (str(IPv4Address(value)), 0))

    def ip_port(self) -> tuple[str, int]:
        """The numeric host string and port."""
        if self._family not in _INTERNET_FAMILIES:
            raise RuntimeError("ip_port() called on non-Internet address")
        try:
            host, service = socket.getnameinfo(
                self._sockaddr, socket.NI_NUMERICHOST | socket.NI_NUMERICSERV
            )
        except socket.gaierror as exc:
            raise TaggedError("getnameinfo", exc.errno or 0, exc.strerror or str(exc)) from exc
        return host, int(service)

    def ip(self) -> str:
        return self.ip_port()[0]

    def port(self) -> int:
        return self.ip_port()[1]

    def ipv4_numeric(self) -> int:
        """The IPv4 address as an integer in host byte order."""
        if self._family != socket.AF_INET:
            raise RuntimeError("ipv4_numeric called on non-IPV4 address")
        return int(IPv4Address(self._sockaddr[0]))

    def family(self) -> socket.AddressFamily:
        return self._family

    def sockaddr(self) -> SockAddr:
        """The address in the form the socket module expects."""
        return self._sockaddr

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Address):
            return NotImplemented
        return self._family == other._family and self._sockaddr == other._sockaddr

    def __hash__(self) -> int:
        return hash((int(self._family), self._sockaddr))

    def __str__(self) -> str:
        if self._family in _INTERNET_FAMILIES:
            ip, port = self.ip_port()
            return f"{ip}:{port}"
        return "(non-Internet address)"

    def __repr__(self) -> str:
        return f"Address({self._family.name}, {self._sockaddr!r})"