"""Structural content hashing for expression nodes.

Hashes are 64-bit, deterministic across runs and processes: leaf payloads are
hashed with BLAKE2b (8-byte digest) and interior nodes mix their variant tag
with the children's hashes. Python's builtin ``hash`` of strings is salted per
process, so it is never used here.
"""

import hashlib
from enum import IntEnum
from typing import Iterable

MASK64 = (1 << 64) - 1

_GOLDEN = 0x9E3779B97F4A7C15
_PERSON = b"symalg-node"


class HashTag(IntEnum):
    """Variant tags mixed into every node hash."""
    NUMBER = 1
    SYMBOL = 2
    CONSTANT = 3
    ADD = 4
    MUL = 5
    POW = 6
    FUNCTION = 7
    COMPLEX = 8
    DERIVATIVE = 9
    INTEGRAL = 10
    LIMIT = 11


def mix64(h: int) -> int:
    """SplitMix64 finalizer."""
    h &= MASK64
    h ^= h >> 30
    h = (h * 0xBF58476D1CE4E5B9) & MASK64
    h ^= h >> 27
    h = (h * 0x94D049BB133111EB) & MASK64
    h ^= h >> 31
    return h


def leaf_hash(tag: int, payload: str) -> int:
    """Hash a leaf from its tag and a canonical string payload."""
    digest = hashlib.blake2b(payload.encode("utf-8"), digest_size=8, person=_PERSON).digest()
    return mix64(int.from_bytes(digest, "little") ^ (tag * _GOLDEN))


def node_hash(tag: int, child_hashes: Iterable[int], extra: str = "") -> int:
    """Combine a tag, ordered child hashes and an optional string payload."""
    h = mix64(tag * _GOLDEN)
    if extra:
        h = mix64(h ^ leaf_hash(tag, extra))
    for i, child in enumerate(child_hashes):
        # Position-dependent so that child order matters
        h = mix64(h + _GOLDEN * (i + 1) ^ child)
    return h
