"""
Uniform sampling of unique cards from a pool.

Card draws are not security sensitive, so the stdlib ``random`` generator is
used on purpose.
"""
from __future__ import annotations

import random
from typing import List, Optional, Sequence, TypeVar

T = TypeVar("T")


def shuffle(pool: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Full Fisher-Yates shuffle of a copy of ``pool``."""
    rng = rng or random
    a = list(pool)
    for i in range(len(a) - 1, 0, -1):
        j = rng.randint(0, i)
        a[i], a[j] = a[j], a[i]
    return a


def sample(pool: Sequence[T], k: int, rng: Optional[random.Random] = None) -> List[T]:
    """Pick ``k`` distinct positions of ``pool`` uniformly at random.

    Requesting the whole pool returns a full shuffle. Otherwise only the first
    ``k`` slots are shuffled (partial Fisher-Yates). The swaps are tracked in a
    dict instead of a copy of the pool, so the cost is O(k) even for large pools.
    The caller is responsible for clamping ``k``.
    """
    n = len(pool)
    if k < 0 or k > n:
        raise ValueError(f"k must be within [0, {n}], got {k}")
    if k == 0:
        return []
    if k == n:
        return shuffle(pool, rng)

    rng = rng or random
    swapped: dict[int, int] = {}
    out: List[T] = []
    for i in range(k):
        j = rng.randrange(i, n)
        at_i = swapped.get(i, i)
        at_j = swapped.get(j, j)
        swapped[i] = at_j
        swapped[j] = at_i
        out.append(pool[at_j])
    return out
