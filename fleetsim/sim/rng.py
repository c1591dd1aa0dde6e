from __future__ import annotations

"""
File: fleetsim/sim/rng.py
Purpose: Seeded random source shared by scenario generation and planning hooks.
"""

import random
from typing import MutableSequence, Sequence, TypeVar

T = TypeVar("T")


class DeterministicRng:
    """Seeded RNG; use this instead of the module-level random functions."""
    def __init__(self, seed: int) -> None:
        self.seed = seed
        self._random = random.Random(seed)

    def next_int(self, min_inclusive: int, max_exclusive: int) -> int:
        """Return an int in [min_inclusive, max_exclusive)."""
        return self._random.randrange(min_inclusive, max_exclusive)

    def next_float01(self) -> float:
        return self._random.random()

    def next_float(self, min_inclusive: float, max_exclusive: float) -> float:
        return min_inclusive + (max_exclusive - min_inclusive) * self.next_float01()

    def next_bool(self, p_true: float) -> bool:
        if p_true <= 0:
            return False
        if p_true >= 1:
            return True
        return self.next_float01() < p_true

    def shuffle(self, items: MutableSequence[T]) -> None:
        """Fisher-Yates shuffle in place."""
        for i in range(len(items) - 1, 0, -1):
            j = self.next_int(0, i + 1)
            items[i], items[j] = items[j], items[i]

    def pick(self, items: Sequence[T]) -> T:
        if not items:
            raise ValueError("cannot pick from an empty sequence")
        return items[self.next_int(0, len(items))]
