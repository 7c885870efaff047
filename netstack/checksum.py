"""The Internet checksum (ones' complement sum of 16-bit words)."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Union

BytesLike = Union[bytes, bytearray, memoryview]


class InternetChecksum:
    """Incrementally computes the Internet checksum over a byte sequence."""

    def __init__(self, initial_sum: int = 0) -> None:
        self._sum = initial_sum & 0xFFFFFFFF
        self._odd = False

    def add(self, data: BytesLike | Iterable[BytesLike]) -> None:
        """Add bytes, or every chunk of an iterable of byte chunks."""
        if isinstance(data, (bytes, bytearray, memoryview)):
            for byte in bytes(data):
                self._sum = (self._sum + (byte if self._odd else byte << 8)) & 0xFFFFFFFF
                self._odd = not self._odd
        else:
            for chunk in data:
                self.add(chunk)

    def value(self) -> int:
        """The 16-bit checksum of everything added so far."""
        total = self._sum
        while total > 0xFFFF:
            total = (total >> 16) + (total & 0xFFFF)
        return ~total & 0xFFFF