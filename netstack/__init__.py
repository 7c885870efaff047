"""User-space networking building blocks: IPv4 headers, checksums, parsers, sockets, TUN/TAP devices and a poll-based event loop."""

__version__ = "0.1.0"