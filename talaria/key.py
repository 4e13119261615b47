"""Lexicographically sortable storage keys."""

from __future__ import annotations

import itertools
import math
import struct
import threading
from datetime import datetime

SIZE = 16
_MASK32 = 0xFFFFFFFF

_sequence = itertools.count(1)
_sequence_lock = threading.Lock()


def _rotl32(x: int, r: int) -> int:
    return ((x << r) | (x >> (32 - r))) & _MASK32


def murmur3_32(data: bytes, seed: int = 0) -> int:
    """Compute the 32-bit MurmurHash3 (x86) of data."""
    c1, c2 = 0xCC9E2D51, 0x1B873593
    h = seed & _MASK32
    length = len(data)
    body = length - length % 4

    for (k,) in struct.iter_unpack("<I", data[:body]):
        k = (k * c1) & _MASK32
        k = _rotl32(k, 15)
        k = (k * c2) & _MASK32
        h ^= k
        h = _rotl32(h, 13)
        h = (h * 5 + 0xE6546B64) & _MASK32

    tail = data[body:]
    if tail:
        k = int.from_bytes(tail, "little")
        k = (k * c1) & _MASK32
        k = _rotl32(k, 15)
        k = (k * c2) & _MASK32
        h ^= k

    h ^= length
    h ^= h >> 16
    h = (h * 0x85EBCA6B) & _MASK32
    h ^= h >> 13
    h = (h * 0xC2B2AE35) & _MASK32
    h ^= h >> 16
    return h


def _next_sequence() -> int:
    with _sequence_lock:
        return next(_sequence) & _MASK32


def new_key(event_name: str, tsi: datetime | int | float) -> bytes:
    """Build a key from the event hash, the time in unix seconds and a sequence number."""
    seconds = math.floor(tsi.timestamp() if isinstance(tsi, datetime) else tsi)
    return struct.pack(
        ">IQI",
        murmur3_32(event_name.encode("utf-8")),
        seconds & 0xFFFFFFFFFFFFFFFF,
        _next_sequence(),
    )


def hash_of(key: bytes) -> int:
    """Return the event hash stored at the start of a key."""
    return struct.unpack_from(">I", key)[0]


def clone(key: bytes) -> bytes:
    """Return an independent copy of a key."""
    return bytes(key)


def prefix_of(seek: bytes, until: bytes) -> bytes:
    """Return the common leading bytes of two keys."""
    common = bytearray()
    for a, b in zip(seek, until):
        if a != b:
            break
        common.append(a)
    return bytes(common)


def first() -> bytes:
    """Return the smallest possible key."""
    return bytes(SIZE)


def last() -> bytes:
    """Return the largest possible key."""
    return b"\xff" * SIZE