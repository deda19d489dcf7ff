"""
Identifier generation

Federations, accreditations, capabilities, events and commands all get
time-ordered UUIDv7-style identifiers with a short type prefix, so an id
found in a log line says what kind of object it names.
"""

import secrets
import time
from typing import Protocol

FEDERATION_PREFIX = "fed"
ACCREDITATION_PREFIX = "acc"
CAPABILITY_PREFIX = "cap"
EVENT_PREFIX = "evt"
COMMAND_PREFIX = "cmd"


class IdFactory(Protocol):
    """Protocol for ID generation strategies"""

    def generate(self, prefix: str | None = None) -> str:
        """Generate a new unique ID"""
        ...


def _uuid7_hex() -> str:
    """
    Build a UUIDv7-like string

    First 48 bits: Unix timestamp in milliseconds, then the version nibble,
    12 random bits, the RFC 4122 variant and 62 random bits.
    """
    timestamp_48 = int(time.time() * 1000) & 0xFFFFFFFFFFFF
    rand_a = secrets.randbits(12)
    rand_b = secrets.randbits(62)

    time_high = (timestamp_48 >> 16) & 0xFFFFFFFF
    time_low = timestamp_48 & 0xFFFF
    version_and_rand = 0x7000 | rand_a
    variant_and_rand = 0x8000 | ((rand_b >> 48) & 0x3FFF)
    node = rand_b & 0xFFFFFFFFFFFF

    return (
        f"{time_high:08x}-{time_low:04x}-{version_and_rand:04x}-"
        f"{variant_and_rand:04x}-{node:012x}"
    )


def generate_id(prefix: str | None = None) -> str:
    """
    Generate a sortable unique identifier

    Args:
        prefix: Optional type prefix (e.g. "fed", "acc")

    Returns:
        "<prefix>-<uuid7>" or a bare UUIDv7-like string without prefix
    """
    value = _uuid7_hex()
    return f"{prefix}-{value}" if prefix else value


class DefaultIdFactory:
    """Default ID factory using UUIDv7-like generation"""

    def generate(self, prefix: str | None = None) -> str:
        return generate_id(prefix)


class SequentialIdFactory:
    """
    Deterministic ID factory for tests and replays

    Produces "<prefix>-000001", "<prefix>-000002", ... per prefix.
    """

    def __init__(self) -> None:
        self._counters: dict[str, int] = {}

    def generate(self, prefix: str | None = None) -> str:
        key = prefix or "id"
        self._counters[key] = self._counters.get(key, 0) + 1
        return f"{key}-{self._counters[key]:06d}"


default_id_factory = DefaultIdFactory()
