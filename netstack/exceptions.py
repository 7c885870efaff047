"""Error types and helpers for checking system calls."""

from __future__ import annotations

import os
from typing import Any, Callable, TypeVar

T = TypeVar("T")


class TaggedError(RuntimeError):
    """An error carrying a numeric code and the attempted operation."""

    def __init__(self, attempt: str, error_code: int, description: str) -> None:
        super().__init__(f"{attempt}: {description}")
        self.attempt = attempt
        self.error_code = error_code
        self.description = description


class UnixError(TaggedError):
    """An error reported by the operating system through errno."""

    def __init__(self, attempt: str, errno_value: int) -> None:
        super().__init__(attempt, errno_value, os.strerror(errno_value))


def check_system_call(attempt: str, func: Callable[..., T], *args: Any) -> T:
    """Call ``func(*args)``, turning any OSError into a UnixError tagged with ``attempt``."""
    try:
        return func(*args)
    except OSError as exc:
        raise UnixError(attempt, exc.errno or 0) from exc


def notnull(context: str, value: T | None) -> T:
    """Return ``value``, raising RuntimeError if it is None."""
    if value is None:
        raise RuntimeError(f"{context}: returned null pointer")
    return value