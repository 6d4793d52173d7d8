from __future__ import annotations

import hashlib

LUCK_MANTISSA_BITS = 53


def cell_luck(key: str) -> float:
    """Map a text key onto a reproducible float in [0, 1)."""
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    raw = int.from_bytes(digest[:8], byteorder="big", signed=False)
    return (raw >> (64 - LUCK_MANTISSA_BITS)) / float(2**LUCK_MANTISSA_BITS)


def spawn_key(i: int, j: int) -> str:
    return f"spawn:{i},{j}"


def value_key(i: int, j: int) -> str:
    return f"value:{i},{j}"
