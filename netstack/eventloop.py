"""An event loop that polls file descriptors and runs callbacks for ready ones."""

from __future__ import annotations

import errno
import select
import socket
import sys
import weakref
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Callable, Optional, Union

from .exceptions import UnixError, check_system_call
from .file_descriptor import FileDescriptor

Callback = Callable[[], None]
Interest = Callable[[], bool]

MAX_CATEGORIES = 64
_BUSY_WAIT_LIMIT = 128
_ERROR_EVENTS = select.POLLERR | select.POLLNVAL
_ALWAYS_REPORTED = select.POLLERR | select.POLLHUP | select.POLLNVAL


def _always() -> bool:
    return True


def _nothing() -> None:
    return None


class Direction(IntEnum):
    """Whether a rule waits for its descriptor to be readable or writable."""

    In = select.POLLIN
    Out = select.POLLOUT


class Result(Enum):
    """Outcome of one call to EventLoop.wait_next_event."""

    Success = "success"
    Timeout = "timeout"
    Exit = "exit"


@dataclass(eq=False)
class _BasicRule:
    category_id: int
    interest: Interest
    callback: Callback
    cancel_requested: bool = False


@dataclass(eq=False)
class _FDRule(_BasicRule):
    fd: Optional[FileDescriptor] = None
    direction: Direction = Direction.In
    cancel: Callback = _nothing
    error: Callback = _nothing

    def service_count(self) -> int:
        assert self.fd is not None
        if self.direction == Direction.In:
            return self.fd.read_count()
        return self.fd.write_count()


class RuleHandle:
    """A handle that can cancel a rule without keeping it alive."""

    def __init__(self, rule: _BasicRule) -> None:
        self._rule = weakref.ref(rule)

    def cancel(self) -> None:
        """Ask the loop to drop the rule; its cancel callback is not called."""
        rule = self._rule()
        if rule is not None:
            rule.cancel_requested = True


def _socket_error(fd_num: int) -> Optional[int]:
    """The pending SO_ERROR of a socket, or None if the descriptor is not a socket."""
    try:
        sock = socket.socket(fileno=fd_num)
    except OSError as exc:
        if exc.errno == errno.ENOTSOCK:
            return None
        raise UnixError("getsockopt", exc.errno or 0) from exc
    try:
        return check_system_call(
            "getsockopt", sock.getsockopt, socket.SOL_SOCKET, socket.SO_ERROR
        )
    finally:
        sock.detach()


class EventLoop:
    """Waits for events on file descriptors and runs the matching callbacks."""

    def __init__(self) -> None:
        self._categories: list[str] = []
        self._fd_rules: list[_FDRule] = []
        self._non_fd_rules: list[_BasicRule] = []

    def add_category(self, name: str) -> int:
        """Register a named category of rules and return its id."""
        if len(self._categories) >= MAX_CATEGORIES:
            raise RuntimeError("maximum categories reached")
        self._categories.append(name)
        return len(self._categories) - 1

    def _category_id(self, category: Union[int, str]) -> int:
        if isinstance(category, str):
            return self.add_category(category)
        if not 0 <= category < len(self._categories):
            raise IndexError("bad category_id")
        return category

    def _name(self, rule: _BasicRule) -> str:
        return self._categories[rule.category_id]

    def add_rule(
        self,
        category: Union[int, str],
        callback: Callback,
        interest: Interest = _always,
    ) -> RuleHandle:
        """Add a rule not tied to a descriptor; a string category is created first."""
        category_id = self._category_id(category)
        rule = _BasicRule(category_id, interest, callback)
        self._non_fd_rules.append(rule)
        return RuleHandle(rule)

    def add_fd_rule(
        self,
        category: Union[int, str],
        fd: FileDescriptor,
        direction: Direction,
        callback: Callback,
        interest: Interest = _always,
        cancel: Callback = _nothing,
        error: Callback = _nothing,
    ) -> RuleHandle:
        """Add a rule that runs ``callback`` when ``fd`` is ready in ``direction``."""
        category_id = self._category_id(category)
        rule = _FDRule(
            category_id,
            interest,
            callback,
            fd=fd.duplicate(),
            direction=Direction(direction),
            cancel=cancel,
            error=error,
        )
        self._fd_rules.append(rule)
        return RuleHandle(rule)

    def _serve_non_fd_rules(self) -> bool:
        for rule in list(self._non_fd_rules):
            if rule.cancel_requested:
                self._non_fd_rules.remove(rule)
                continue

            fired = False
            iterations = 0
            while rule.interest():
                iterations += 1
                if iterations > _BUSY_WAIT_LIMIT:
                    raise RuntimeError(
                        f'EventLoop: busy wait detected: rule "{self._name(rule)}" '
                        f"is still interested after {iterations} iterations"
                    )
                fired = True
                rule.callback()

            if fired:
                return True  # only serve one rule on each iteration
        return False

    def _drop(self, rule: _FDRule) -> None:
        if rule in self._fd_rules:
            self._fd_rules.remove(rule)

    def wait_next_event(self, timeout_ms: int) -> Result:
        """Serve at most one ready rule, waiting up to ``timeout_ms`` (negative: forever)."""
        if self._serve_non_fd_rules():
            return Result.Success

        polled: list[tuple[_FDRule, int]] = []
        something_to_poll = False
        for rule in list(self._fd_rules):
            assert rule.fd is not None
            if rule.cancel_requested:
                # cancelled from outside: the cancel callback is not called
                self._drop(rule)
                continue
            if rule.direction == Direction.In and rule.fd.eof():
                rule.cancel()
                self._drop(rule)
                continue
            if rule.fd.closed():
                rule.cancel()
                self._drop(rule)
                continue

            if rule.interest():
                polled.append((rule, int(rule.direction)))
                something_to_poll = True
            else:
                polled.append((rule, 0))  # placeholder: errors are still reported

        if not something_to_poll:
            return Result.Exit

        poller = select.poll()
        wanted: dict[int, int] = {}
        for rule, events in polled:
            assert rule.fd is not None
            fd_num = rule.fd.fd_num()
            wanted[fd_num] = wanted.get(fd_num, 0) | events
        for fd_num, events in wanted.items():
            poller.register(fd_num, events)

        ready = check_system_call("poll", poller.poll, timeout_ms)
        if not ready:
            return Result.Timeout
        fd_revents = dict(ready)

        for rule, events in polled:
            assert rule.fd is not None
            revents = fd_revents.get(rule.fd.fd_num(), 0) & (events | _ALWAYS_REPORTED)

            if revents & _ERROR_EVENTS:
                socket_error = _socket_error(rule.fd.fd_num())
                if socket_error is None:
                    print(
                        f'error on polled file descriptor for rule "{self._name(rule)}"',
                        file=sys.stderr,
                    )
                elif socket_error:
                    print(
                        f'error on polled socket for rule "{self._name(rule)}": '
                        f"{UnixError('socket', socket_error).description}",
                        file=sys.stderr,
                    )
                rule.error()
                rule.cancel()
                self._drop(rule)
                continue

            poll_ready = bool(revents & events)
            poll_hup = bool(revents & select.POLLHUP)
            if poll_hup and ((events and not poll_ready) or rule.direction == Direction.Out):
                # hangup with nothing else to offer: this descriptor is defunct
                rule.cancel()
                self._drop(rule)
                continue

            if poll_ready:
                count_before = rule.service_count()
                rule.callback()
                if (
                    count_before == rule.service_count()
                    and not rule.fd.closed()
                    and rule.interest()
                ):
                    raise RuntimeError(
                        f'EventLoop: busy wait detected: rule "{self._name(rule)}" '
                        "did not read/write fd and is still interested"
                    )
                return Result.Success  # only serve one rule on each iteration

        return Result.Success