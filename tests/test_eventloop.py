import os
import select

import pytest

from netstack.eventloop import Direction, EventLoop, Result
from netstack.file_descriptor import FileDescriptor


@pytest.fixture
def pipe():
    read_fd, write_fd = os.pipe()
    reader = FileDescriptor(read_fd)
    writer = FileDescriptor(write_fd)
    yield reader, writer
    for fd in (reader, writer):
        if not fd.closed():
            fd.close()


def test_direction_from_poll_flag_drives_rule(pipe):
    reader, writer = pipe
    loop = EventLoop()
    received = []
    loop.add_fd_rule(
        "reader", reader, Direction(select.POLLIN), lambda: received.append(reader.read())
    )
    writer.write(b"polled")
    assert loop.wait_next_event(1000) is Result.Success
    assert received == [b"polled"]


def test_categories_are_numbered_in_order():
    loop = EventLoop()
    assert loop.add_category("first") == 0
    assert loop.add_category("second") == 1


def test_category_limit():
    loop = EventLoop()
    for index in range(64):
        assert loop.add_category(f"c{index}") == index
    with pytest.raises(RuntimeError, match="maximum categories reached"):
        loop.add_category("one too many")


def test_bad_category_id_is_rejected(pipe):
    loop = EventLoop()
    with pytest.raises(IndexError, match="bad category_id"):
        loop.add_rule(0, lambda: None)
    reader, _ = pipe
    with pytest.raises(IndexError, match="bad category_id"):
        loop.add_fd_rule(3, reader, Direction.In, lambda: None)


def test_no_rules_means_exit():
    assert EventLoop().wait_next_event(0) is Result.Exit


def test_non_fd_rule_runs_while_interested():
    loop = EventLoop()
    calls = []
    category = loop.add_category("counter")
    loop.add_rule(category, lambda: calls.append(1), lambda: len(calls) < 3)
    assert loop.wait_next_event(0) is Result.Success
    assert len(calls) == 3
    assert loop.wait_next_event(0) is Result.Exit


def test_non_fd_busy_wait_detected():
    loop = EventLoop()
    loop.add_rule("spinner", lambda: None)
    with pytest.raises(RuntimeError, match='busy wait detected: rule "spinner"'):
        loop.wait_next_event(0)


def test_cancelled_rule_is_removed():
    loop = EventLoop()
    calls = []
    handle = loop.add_rule("cancelled", lambda: calls.append(1))
    handle.cancel()
    assert loop.wait_next_event(0) is Result.Exit
    assert calls == []


def test_read_rule_fires_when_data_arrives(pipe):
    reader, writer = pipe
    loop = EventLoop()
    received = []
    loop.add_fd_rule("reader", reader, Direction.In, lambda: received.append(reader.read()))
    writer.write(b"hello")
    assert loop.wait_next_event(1000) is Result.Success
    assert received == [b"hello"]
    assert reader.read_count() == 1


def test_timeout_when_nothing_ready(pipe):
    reader, _ = pipe
    loop = EventLoop()
    loop.add_fd_rule("reader", reader, Direction.In, lambda: reader.read())
    assert loop.wait_next_event(0) is Result.Timeout


def test_uninterested_fd_rule_means_exit(pipe):
    reader, _ = pipe
    loop = EventLoop()
    loop.add_fd_rule("idle", reader, Direction.In, lambda: reader.read(), lambda: False)
    assert loop.wait_next_event(0) is Result.Exit


def test_fd_busy_wait_detected(pipe):
    reader, writer = pipe
    loop = EventLoop()
    loop.add_fd_rule("lazy", reader, Direction.In, lambda: None)
    writer.write(b"x")
    with pytest.raises(RuntimeError, match='rule "lazy" did not read/write fd'):
        loop.wait_next_event(1000)


def test_write_rule_fires_when_writable(pipe):
    reader, writer = pipe
    loop = EventLoop()
    sent = []
    loop.add_fd_rule(
        "writer",
        writer,
        Direction.Out,
        lambda: sent.append(writer.write(b"abc")),
        lambda: not sent,
    )
    assert loop.wait_next_event(1000) is Result.Success
    assert sent == [3]
    assert reader.read() == b"abc"
    assert loop.wait_next_event(0) is Result.Exit


def test_hangup_cancels_read_rule(pipe):
    reader, writer = pipe
    loop = EventLoop()
    cancels = []
    received = []
    loop.add_fd_rule(
        "reader",
        reader,
        Direction.In,
        lambda: received.append(reader.read()),
        cancel=lambda: cancels.append(1),
    )
    writer.write(b"last")
    writer.close()
    assert loop.wait_next_event(1000) is Result.Success
    assert received == [b"last"]
    assert loop.wait_next_event(1000) is Result.Success
    assert cancels == [1]
    assert loop.wait_next_event(0) is Result.Exit


def test_eof_cancels_read_rule(pipe):
    reader, writer = pipe
    loop = EventLoop()
    cancels = []
    loop.add_fd_rule(
        "reader", reader, Direction.In, lambda: None, cancel=lambda: cancels.append(1)
    )
    writer.close()
    assert reader.read() == b""
    assert reader.eof()
    assert loop.wait_next_event(0) is Result.Exit
    assert cancels == [1]


def test_closed_fd_cancels_rule(pipe):
    _, writer = pipe
    loop = EventLoop()
    cancels = []
    loop.add_fd_rule(
        "writer", writer, Direction.Out, lambda: None, cancel=lambda: cancels.append(1)
    )
    writer.close()
    assert loop.wait_next_event(0) is Result.Exit
    assert cancels == [1]


def test_error_on_write_end_calls_error_and_cancel(pipe):
    reader, writer = pipe
    loop = EventLoop()
    events = []
    loop.add_fd_rule(
        "writer",
        writer,
        Direction.Out,
        lambda: events.append("callback"),
        cancel=lambda: events.append("cancel"),
        error=lambda: events.append("error"),
    )
    reader.close()
    assert loop.wait_next_event(1000) is Result.Success
    assert events == ["error", "cancel"]
    assert loop.wait_next_event(0) is Result.Exit


def test_external_cancel_skips_cancel_callback(pipe):
    reader, writer = pipe
    loop = EventLoop()
    cancels = []
    handle = loop.add_fd_rule(
        "reader", reader, Direction.In, lambda: reader.read(), cancel=lambda: cancels.append(1)
    )
    writer.write(b"data")
    handle.cancel()
    assert loop.wait_next_event(0) is Result.Exit
    assert cancels == []


def test_only_one_rule_served_per_call():
    loop = EventLoop()
    first, second = [], []
    loop.add_rule("first", lambda: first.append(1), lambda: not first)
    loop.add_rule("second", lambda: second.append(1), lambda: not second)
    assert loop.wait_next_event(0) is Result.Success
    assert (len(first), len(second)) == (1, 0)
    assert loop.wait_next_event(0) is Result.Success
    assert (len(first), len(second)) == (1, 1)
    assert loop.wait_next_event(0) is Result.Exit