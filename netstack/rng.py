"""A well-seeded pseudo-random generator."""

from __future__ import annotations

import random
import secrets


def get_random_engine() -> random.Random:
    """Return a generator seeded with 32768 bits from the system's entropy source."""
    return random.Random(secrets.randbits(32 * 1024))