"""Parsing and serializing big-endian wire formats over lists of byte chunks."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from typing import Any, Protocol, Union

BytesLike = Union[bytes, bytearray, memoryview]


class _BufferList:
    """A queue of byte chunks from which a prefix can be consumed."""

    def __init__(self, buffers: Iterable[BytesLike]) -> None:
        self._buffers: deque[bytes] = deque(bytes(b) for b in buffers)
        self._size = sum(len(b) for b in self._buffers)
        self._skip = 0

    def __len__(self) -> int:
        return self._size

    def take(self, n: int) -> bytes:
        parts = []
        remaining = n
        while remaining and self._buffers:
            front = self._buffers[0]
            chunk = front[self._skip : self._skip + remaining]
            parts.append(chunk)
            self._skip += len(chunk)
            self._size -= len(chunk)
            remaining -= len(chunk)
            if self._skip == len(front):
                self._buffers.popleft()
                self._skip = 0
        return b"".join(parts)

    def dump_all(self) -> list[bytes]:
        if self._size == 0:
            out: list[bytes] = []
        else:
            out = [self._buffers[0][self._skip :], *list(self._buffers)[1:]]
        self._buffers.clear()
        self._skip = 0
        self._size = 0
        return out

    def views(self) -> list[memoryview]:
        if self._size == 0:
            return []
        views = []
        skip = self._skip
        for buf in self._buffers:
            views.append(memoryview(buf)[skip:])
            skip = 0
        return views


class Parser:
    """Reads fields from a list of byte chunks, recording rather than raising errors."""

    def __init__(self, buffers: BytesLike | Iterable[BytesLike]) -> None:
        if isinstance(buffers, (bytes, bytearray, memoryview)):
            buffers = [buffers]
        self._input = _BufferList(buffers)
        self._error = False

    def has_error(self) -> bool:
        return self._error

    def set_error(self) -> None:
        self._error = True

    def remove_prefix(self, n: int) -> None:
        """Discard the next ``n`` bytes (or all that remain)."""
        self._input.take(n)

    def _check_size(self, size: int) -> bool:
        if size > len(self._input):
            self._error = True
        return not self._error

    def integer(self, size: int) -> int:
        """Read a big-endian unsigned integer of ``size`` bytes; 0 on error."""
        if not self._check_size(size):
            return 0
        return int.from_bytes(self._input.take(size), "big")

    def string(self, length: int) -> bytes:
        """Read exactly ``length`` bytes; empty on error."""
        if not self._check_size(length):
            return b""
        return self._input.take(length)

    def all_remaining(self) -> list[bytes]:
        """Consume and return every remaining chunk."""
        return self._input.dump_all()

    def buffer(self) -> list[memoryview]:
        """Views of the remaining chunks, without consuming them."""
        return self._input.views()


class Serializer:
    """Builds a list of byte chunks from integers and raw buffers."""

    def __init__(self, initial: BytesLike = b"") -> None:
        self._output: list[bytes] = []
        self._current = bytearray(initial)

    def integer(self, value: int, size: int) -> None:
        """Append ``value`` as a big-endian unsigned integer of ``size`` bytes."""
        mask = (1 << (8 * size)) - 1
        self._current += (value & mask).to_bytes(size, "big")

    def buffer(self, data: BytesLike | Iterable[BytesLike]) -> None:
        """Append a chunk (or each chunk of an iterable) as its own output piece."""
        if isinstance(data, (bytes, bytearray, memoryview)):
            self.flush()
            self._output.append(bytes(data))
        else:
            for chunk in data:
                self.buffer(chunk)

    def flush(self) -> None:
        self._output.append(bytes(self._current))
        self._current.clear()

    def output(self) -> list[bytes]:
        self.flush()
        return list(self._output)


class _Serializable(Protocol):
    def serialize(self, serializer: Serializer) -> None: ...


def serialize(obj: _Serializable) -> list[bytes]:
    """Serialize ``obj`` into a list of byte chunks."""
    serializer = Serializer()
    obj.serialize(serializer)
    return serializer.output()


def parse(obj: Any, buffers: BytesLike | Iterable[BytesLike], *args: Any) -> bool:
    """Parse ``buffers`` into ``obj``; return True if no error was recorded."""
    parser = Parser(buffers)
    obj.parse(parser, *args)
    return not parser.has_error()