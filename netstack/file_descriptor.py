"""Reference-counted handles to kernel file descriptors."""

from __future__ import annotations

import errno
import os
import sys
from collections.abc import Iterable
from typing import Any, Callable, TypeVar, Union

from .exceptions import UnixError, check_system_call

T = TypeVar("T")
BytesLike = Union[bytes, bytearray, memoryview]

READ_BUFFER_SIZE = 16384

_WOULD_BLOCK = (errno.EAGAIN, errno.EINPROGRESS)


class _FDWrapper:
    """Owns a kernel descriptor; closes it when the last handle goes away."""

    __slots__ = ("fd", "eof", "closed", "non_blocking", "read_count", "write_count")

    def __init__(self, fd: int) -> None:
        self.fd = fd
        self.eof = False
        self.closed = True  # not owned until validated below
        self.non_blocking = False
        self.read_count = 0
        self.write_count = 0
        if fd < 0:
            raise RuntimeError(f"invalid fd number:{fd}")
        self.non_blocking = not check_system_call("fcntl", os.get_blocking, fd)
        self.closed = False

    def call(self, attempt: str, func: Callable[..., T], *args: Any) -> T | int:
        """Run a system call; a would-block error on a non-blocking fd yields 0."""
        try:
            return func(*args)
        except OSError as exc:
            if self.non_blocking and exc.errno in _WOULD_BLOCK:
                return 0
            raise UnixError(attempt, exc.errno or 0) from exc

    def close(self) -> None:
        self.call("close", os.close, self.fd)
        self.eof = self.closed = True

    def __del__(self) -> None:
        if getattr(self, "closed", True):
            return
        try:
            self.close()
        except Exception as exc:  # never raise from a finalizer
            print(f"Exception destructing FDWrapper: {exc}", file=sys.stderr)


class FileDescriptor:
    """A handle on a file descriptor; duplicates share the descriptor and its state."""

    def __init__(self, fd: int) -> None:
        self._wrapper = _FDWrapper(fd)

    def _check_call(self, attempt: str, func: Callable[..., T], *args: Any) -> T | int:
        return self._wrapper.call(attempt, func, *args)

    def _set_eof(self) -> None:
        self._wrapper.eof = True

    def _register_read(self) -> None:
        self._wrapper.read_count += 1

    def _register_write(self) -> None:
        self._wrapper.write_count += 1

    def read(self, size: int | None = None) -> bytes:
        """Read up to ``size`` bytes (default 16384); b"" with eof() set at end of file."""
        size = size or READ_BUFFER_SIZE
        try:
            data = os.read(self.fd_num(), size)
        except OSError as exc:
            if self._wrapper.non_blocking and exc.errno in _WOULD_BLOCK:
                return b""
            raise UnixError("read", exc.errno or 0) from exc

        self._register_read()
        if not data:
            self._set_eof()
        return data

    def readv(self, sizes: Iterable[int]) -> list[bytes]:
        """Scatter-read into buffers of the given sizes; the last one gets 16384 bytes."""
        sizes = list(sizes)
        if not sizes:
            return []
        sizes[-1] = READ_BUFFER_SIZE
        buffers = [bytearray(n) for n in sizes]

        try:
            count = os.readv(self.fd_num(), buffers)
        except OSError as exc:
            if self._wrapper.non_blocking and exc.errno in _WOULD_BLOCK:
                return [b"" for _ in buffers]
            raise UnixError("read", exc.errno or 0) from exc

        self._register_read()

        pieces = []
        remaining = count
        for buf in buffers:
            take = min(remaining, len(buf))
            pieces.append(bytes(buf[:take]))
            remaining -= take
        return pieces

    def write(self, data: BytesLike | Iterable[BytesLike]) -> int:
        """Write a buffer (or gather-write several); return the number of bytes written."""
        if isinstance(data, (bytes, bytearray, memoryview)):
            chunks = [data]
        else:
            chunks = list(data)
        total = sum(memoryview(chunk).nbytes for chunk in chunks)

        written = self._check_call("writev", os.writev, self.fd_num(), chunks)
        self._register_write()

        if written == 0 and total != 0:
            raise RuntimeError("write returned 0 given non-empty input buffer")
        if written > total:
            raise RuntimeError("write wrote more than length of input buffer")
        return written

    def close(self) -> None:
        self._wrapper.close()

    def duplicate(self) -> FileDescriptor:
        """Another handle sharing this descriptor."""
        copy = FileDescriptor.__new__(FileDescriptor)
        copy._wrapper = self._wrapper
        return copy

    def set_blocking(self, blocking: bool) -> None:
        self._check_call("fcntl", os.set_blocking, self.fd_num(), blocking)
        self._wrapper.non_blocking = not blocking

    def fd_num(self) -> int:
        return self._wrapper.fd

    def eof(self) -> bool:
        return self._wrapper.eof

    def closed(self) -> bool:
        return self._wrapper.closed

    def read_count(self) -> int:
        return self._wrapper.read_count

    def write_count(self) -> int:
        return self._wrapper.write_count

    def __enter__(self) -> FileDescriptor:
        return self

    def __exit__(self, *args: object) -> None:
        if not self.closed():
            self.close()