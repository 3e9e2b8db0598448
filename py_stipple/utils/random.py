"""
Random number generation utilities.

Every stippling run owns its own NumPy ``Generator``. There is no module
level generator: callers pass a seed (or a ready generator) explicitly so
initial sampling and jitter can be reproduced.
"""

import hashlib
from typing import Optional, Union

import numpy as np

SeedLike = Union[None, int, str, np.random.Generator]


def _seed_from_string(seed: str) -> int:
    """Map a seed string to a stable 64-bit integer."""
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "little")


def make_rng(seed: SeedLike = None) -> np.random.Generator:
    """
    Build a random generator for a stippling run.

    Args:
        seed: ``None`` for fresh OS entropy, an int, a string such as
            ``"test_seed"`` (hashed to a stable integer), or an existing
            generator which is returned unchanged

    Returns:
        NumPy Generator
    """
    if isinstance(seed, np.random.Generator):
        return seed
    if isinstance(seed, str):
        seed = _seed_from_string(seed)
    return np.random.default_rng(seed)


def describe_seed(seed: Optional[SeedLike]) -> str:
    """Short printable form of a seed for log events."""
    if seed is None:
        return "entropy"
    if isinstance(seed, np.random.Generator):
        return "generator"
    return str(seed)
