[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "netstack"
version = "0.1.0"
description = "Building blocks for user-space networking: IPv4 headers, checksums, parsers, sockets, TUN/TAP devices and a poll-based event loop"
requires-python = ">=3.10"
dependencies = []
keywords = ["networking", "ipv4", "checksum", "sockets", "tun", "tap", "event-loop"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["netstack"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
