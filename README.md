# netstack

Building blocks for working with network protocols in user space on Linux. The package
has no dependencies outside the standard library.

## What is inside

- `netstack.checksum.InternetChecksum` computes the Internet ones'-complement checksum
  incrementally. `add()` takes bytes or an iterable of byte chunks, and `value()` returns
  the 16-bit result.
- `netstack.parser`:
  - `Parser` reads big-endian integers (`integer(size)`) and byte strings (`string(length)`)
    from a list of byte chunks. It does not raise when input is short. It records the
    problem instead, and you check it with `has_error()`.
  - `Serializer` writes big-endian integers and raw buffers into a list of byte chunks.
  - `serialize(obj)` and `parse(obj, buffers)` are shortcuts for objects that have
    `serialize`/`parse` methods.
- `netstack.ipv4`:
  - `IPv4Header` is a dataclass with the fields `ver`, `hlen`, `tos`, `length`, `id`, `df`,
    `mf`, `offset`, `ttl`, `proto`, `cksum`, `src` and `dst`.
  - `parse()` checks the version, the header length and the checksum, and skips any
    options.
  - `compute_checksum()` sets `cksum`. `pseudo_checksum()` gives the pseudo-header's share
    of a TCP checksum. `str()` gives a one-line summary.
  - `IPv4Datagram`, also available as `InternetDatagram`, pairs a header with a payload
    held as byte chunks.
- `netstack.rng.get_random_engine()` returns a `random.Random` seeded from the system's
  entropy source.
- `netstack.address.Address` holds a socket address.
  - `Address("10.0.0.1", 53)` takes a numeric IPv4 address and port.
    `Address("example.com", "http")` resolves a host name and a service name.
  - Other constructors are `Address.from_sockaddr()` and `Address.from_ipv4_numeric()`.
  - Accessors are `ip_port()`, `ip()`, `port()`, `ipv4_numeric()`, `family()` and
    `sockaddr()`.
  - Addresses can be compared and hashed.
- `netstack.file_descriptor.FileDescriptor` is a handle on a kernel file descriptor.
  - Handles made with `duplicate()` share the descriptor and its state.
  - It counts reads and writes (`read_count()`, `write_count()`) and tracks end of file
    (`eof()`) and closing (`closed()`).
  - It offers `read()`, scatter reads with `readv()` and gather writes with `write()`.
  - It can be used as a context manager.
- `netstack.sockets`:
  - `UDPSocket`, `TCPSocket` (with `listen()` and `accept()`), `PacketSocket` (with
    `set_promiscuous()`), `LocalStreamSocket` and `LocalDatagramSocket`.
  - They are built on `Socket` and `DatagramSocket`. `DatagramSocket` has `recv()`, which
    returns `(source, payload)`, plus `sendto()` and `send()`.
- `netstack.tun` has `TunFD` and `TapFD`, which attach to an existing persistent TUN or TAP
  device through `/dev/net/tun`.
- `netstack.eventloop.EventLoop` is a `poll`-based loop.
  - `add_rule()` registers callbacks that run while an interest function returns true.
  - `add_fd_rule()` registers callbacks that run when a `FileDescriptor` is readable
    (`Direction.In`) or writable (`Direction.Out`).
  - `wait_next_event(timeout_ms)` serves at most one rule. It returns `Result.Success`,
    `Result.Timeout` or `Result.Exit`.
  - A `RuleHandle` cancels a rule.
- `netstack.exceptions`:
  - `TaggedError` and `UnixError` are raised when a system call or name lookup fails.
  - `check_system_call()` turns an `OSError` into a `UnixError`.
  - `notnull()` rejects `None`.

## Installing

```
pip install .
```

To also install what the test suite needs:

```
pip install ".[test]"
```

## Examples

Build an IPv4 header, serialize it and parse it back:

```python
from netstack.ipv4 import IPv4Header
from netstack.parser import Parser, serialize

header = IPv4Header(length=40, src=0x0A000001, dst=0x0A000002)
header.compute_checksum()
wire = serialize(header)

parsed = IPv4Header()
parser = Parser(wire)
parsed.parse(parser)
assert not parser.has_error()
print(parsed)  # IPv4 len=40 protocol=6 ttl=128 src=10.0.0.1 dst=10.0.0.2
```

A UDP round trip on the loopback interface:

```python
from netstack.address import Address
from netstack.sockets import UDPSocket

receiver = UDPSocket()
receiver.bind(Address("127.0.0.1", 0))
sender = UDPSocket()
sender.sendto(receiver.local_address(), b"hello")
source, payload = receiver.recv()
```

Waiting for a descriptor to become readable:

```python
import os

from netstack.eventloop import Direction, EventLoop
from netstack.file_descriptor import FileDescriptor

read_end, write_end = (FileDescriptor(n) for n in os.pipe())
write_end.write(b"ping")

loop = EventLoop()
loop.add_fd_rule("pipe", read_end, Direction.In, lambda: print(read_end.read()))
loop.wait_next_event(1000)
```

## What it does not do

The package provides the pieces for carrying packets: headers, checksums, sockets, TUN/TAP
access and an event loop. It has no TCP implementation of its own. There is no sender,
receiver, stream reassembly or sequence-number arithmetic. It also provides no command-line
program.

## Running the tests

```
pytest
```