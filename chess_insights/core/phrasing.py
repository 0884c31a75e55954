# chess_insights/core/phrasing.py
"""
Deterministic choice among alternative phrasings.

Rule-based text picks one of several equivalent sentences to avoid monotony.
The choice is derived from a stable hash of the inputs rather than a random
number generator, so re-analyzing the same game always yields the same text
and tests can assert on it.
"""

import zlib
from typing import Any, Sequence, TypeVar

T = TypeVar("T")


def pick_variant(options: Sequence[T], *key_parts: Any, seed: int = 0) -> T:
    """
    Picks one element of `options`, determined by `key_parts` and `seed`.

    Raises:
        ValueError: If `options` is empty.
    """
    if not options:
        raise ValueError("Cannot pick a variant from an empty sequence.")
    key = "|".join(str(part) for part in (seed, *key_parts)).encode("utf-8")
    return options[zlib.crc32(key) % len(options)]
