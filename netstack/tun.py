"""Handles on existing Linux TUN and TAP devices."""

from __future__ import annotations

import fcntl
import os
import struct

from .exceptions import check_system_call
from .file_descriptor import FileDescriptor

CLONE_DEVICE = "/dev/net/tun"
IFNAMSIZ = 16
IFF_TUN = 0x0001
IFF_TAP = 0x0002
IFF_NO_PI = 0x1000
TUNSETIFF = 0x400454CA

_IFREQ = struct.Struct("16sh22x")


def _make_ifreq(devname: str, is_tun: bool) -> bytes:
    """An ifreq naming the device (truncated and NUL-terminated) with TUN/TAP flags."""
    name = devname.encode().split(b"\0", 1)[0][: IFNAMSIZ - 1]
    flags = (IFF_TUN if is_tun else IFF_TAP) | IFF_NO_PI
    return _IFREQ.pack(name, flags)


class TunTapFD(FileDescriptor):
    """A descriptor attached to an existing persistent TUN or TAP device."""

    def __init__(self, devname: str, is_tun: bool) -> None:
        super().__init__(
            check_system_call("open", os.open, CLONE_DEVICE, os.O_RDWR | os.O_CLOEXEC)
        )
        self._check_call(
            "ioctl", fcntl.ioctl, self.fd_num(), TUNSETIFF, _make_ifreq(devname, is_tun)
        )


class TunFD(TunTapFD):
    """A TUN device: reads and writes IP datagrams."""

    def __init__(self, devname: str) -> None:
        super().__init__(devname, True)


class TapFD(TunTapFD):
    """A TAP device: reads and writes Ethernet frames."""

    def __init__(self, devname: str) -> None:
        super().__init__(devname, False)