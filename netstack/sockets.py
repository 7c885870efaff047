"""Network sockets built on reference-counted file descriptors."""

from __future__ import annotations

import socket
import struct
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Optional, Union

from .address import Address
from .exceptions import UnixError, check_system_call
from .file_descriptor import READ_BUFFER_SIZE, BytesLike, FileDescriptor

_SO_DOMAIN = getattr(socket, "SO_DOMAIN", 39)
_SO_PROTOCOL = getattr(socket, "SO_PROTOCOL", 38)
_SO_BINDTODEVICE = getattr(socket, "SO_BINDTODEVICE", 25)
_SOL_PACKET = getattr(socket, "SOL_PACKET", 263)
_AF_PACKET = getattr(socket, "AF_PACKET", 17)
_PACKET_ADD_MEMBERSHIP = getattr(socket, "PACKET_ADD_MEMBERSHIP", 1)
_PACKET_MR_PROMISC = 1
_PACKET_MREQ = struct.Struct("iHH8s")


class Socket(FileDescriptor):
    """Base class for network sockets; normally used through a subclass."""

    def __init__(
        self,
        domain: int,
        type: int,
        protocol: int = 0,
        fd: Union[FileDescriptor, int, None] = None,
    ) -> None:
        """Create a new socket, or adopt ``fd`` after checking its domain, type and protocol."""
        if fd is None:
            sock = check_system_call("socket", socket.socket, domain, type, protocol)
            super().__init__(sock.detach())
            return

        if isinstance(fd, FileDescriptor):
            self._wrapper = fd._wrapper
        else:
            super().__init__(fd)

        if self.getsockopt(socket.SOL_SOCKET, _SO_DOMAIN) != domain:
            raise RuntimeError("socket domain mismatch")
        if self.getsockopt(socket.SOL_SOCKET, socket.SO_TYPE) != type:
            raise RuntimeError("socket type mismatch")
        if self.getsockopt(socket.SOL_SOCKET, _SO_PROTOCOL) != protocol:
            raise RuntimeError("socket protocol mismatch")

    @contextmanager
    def _borrowed(self, attempt: str) -> Iterator[socket.socket]:
        """A socket object viewing this descriptor, released without closing it."""
        sock = check_system_call(attempt, lambda: socket.socket(fileno=self.fd_num()))
        try:
            yield sock
        finally:
            sock.detach()

    def getsockopt(self, level: int, option: int) -> int:
        """The integer value of a socket option."""
        with self._borrowed("getsockopt") as sock:
            return self._check_call("getsockopt", sock.getsockopt, level, option)

    def setsockopt(self, level: int, option: int, value: Union[int, str, BytesLike]) -> None:
        """Set a socket option to an integer or to raw bytes (text is encoded)."""
        if isinstance(value, str):
            value = value.encode()
        elif isinstance(value, (bytearray, memoryview)):
            value = bytes(value)
        with self._borrowed("setsockopt") as sock:
            self._check_call("setsockopt", sock.setsockopt, level, option, value)

    def bind(self, address: Address) -> None:
        with self._borrowed("bind") as sock:
            self._check_call("bind", sock.bind, address.sockaddr())

    def bind_to_device(self, device_name: str) -> None:
        self.setsockopt(socket.SOL_SOCKET, _SO_BINDTODEVICE, device_name)

    def connect(self, address: Address) -> None:
        with self._borrowed("connect") as sock:
            self._check_call("connect", sock.connect, address.sockaddr())

    def shutdown(self, how: int) -> None:
        """Shut down reading, writing or both, counting it as a read and/or write."""
        with self._borrowed("shutdown") as sock:
            self._check_call("shutdown", sock.shutdown, how)
        if how == socket.SHUT_RD:
            self._register_read()
        elif how == socket.SHUT_WR:
            self._register_write()
        elif how == socket.SHUT_RDWR:
            self._register_read()
            self._register_write()
        else:
            raise RuntimeError("shutdown() called with invalid `how`")

    def local_address(self) -> Address:
        with self._borrowed("getsockname") as sock:
            name = self._check_call("getsockname", sock.getsockname)
            return Address.from_sockaddr(sock.family, name)

    def peer_address(self) -> Address:
        with self._borrowed("getpeername") as sock:
            name = self._check_call("getpeername", sock.getpeername)
            return Address.from_sockaddr(sock.family, name)

    def set_reuseaddr(self) -> None:
        """Allow the local address to be reused sooner."""
        self.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

    def raise_if_error(self) -> None:
        """Raise UnixError if the socket has a pending error."""
        socket_error = self.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
        if socket_error:
            raise UnixError("socket error", socket_error)


class DatagramSocket(Socket):
    """A socket that sends and receives whole datagrams."""

    def recv(self) -> tuple[Optional[Address], bytes]:
        """Receive one datagram and its sender; (None, b"") if a non-blocking socket has none."""
        with self._borrowed("recvfrom") as sock:
            family = sock.family
            result = self._check_call("recvfrom", sock.recvmsg, READ_BUFFER_SIZE)

        if isinstance(result, int):
            self._register_read()
            return None, b""

        data, _ancdata, flags, source = result
        if flags & socket.MSG_TRUNC:
            raise RuntimeError("recvfrom (oversized datagram)")

        self._register_read()
        return Address.from_sockaddr(family, source if source is not None else ""), data

    def sendto(self, destination: Address, payload: BytesLike) -> None:
        with self._borrowed("sendto") as sock:
            self._check_call("sendto", sock.sendto, payload, destination.sockaddr())
        self._register_write()

    def send(self, payload: BytesLike) -> None:
        """Send a datagram to the connected peer."""
        with self._borrowed("send") as sock:
            self._check_call("send", sock.send, payload)
        self._register_write()


class UDPSocket(DatagramSocket):
    """An unbound, unconnected UDP socket."""

    def __init__(self) -> None:
        super().__init__(socket.AF_INET, socket.SOCK_DGRAM)


class TCPSocket(Socket):
    """A TCP socket, new or adopted from a connected descriptor."""

    def __init__(self, fd: Union[FileDescriptor, int, None] = None) -> None:
        if fd is None:
            super().__init__(socket.AF_INET, socket.SOCK_STREAM)
        else:
            super().__init__(socket.AF_INET, socket.SOCK_STREAM, socket.IPPROTO_TCP, fd)

    def listen(self, backlog: int = 16) -> None:
        with self._borrowed("listen") as sock:
            self._check_call("listen", sock.listen, backlog)

    def accept(self) -> TCPSocket:
        """Wait for and return a new connection."""
        self._register_read()
        with self._borrowed("accept") as sock:
            connection, _peer = check_system_call("accept", sock.accept)
        return TCPSocket(FileDescriptor(connection.detach()))


class PacketSocket(DatagramSocket):
    """A link-layer packet socket."""

    def __init__(self, type: int, protocol: int) -> None:
        super().__init__(_AF_PACKET, type, protocol)

    def set_promiscuous(self) -> None:
        """Put the bound interface into promiscuous mode."""
        local = self.local_address()
        if local.family() != _AF_PACKET:
            raise RuntimeError("Address conversion failure")
        ifname = local.sockaddr()[0]
        ifindex = check_system_call("if_nametoindex", socket.if_nametoindex, ifname)
        request = _PACKET_MREQ.pack(ifindex, _PACKET_MR_PROMISC, 0, b"")
        self.setsockopt(_SOL_PACKET, _PACKET_ADD_MEMBERSHIP, request)


class LocalStreamSocket(Socket):
    """A Unix-domain stream socket adopted from a descriptor."""

    def __init__(self, fd: Union[FileDescriptor, int]) -> None:
        super().__init__(socket.AF_UNIX, socket.SOCK_STREAM, 0, fd)


class LocalDatagramSocket(DatagramSocket):
    """An unbound, unconnected Unix-domain datagram socket."""

    def __init__(self) -> None:
        super().__init__(socket.AF_UNIX, socket.SOCK_DGRAM)