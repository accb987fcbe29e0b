"""
Injectable randomness for question selection.

PartSelector never touches the global ``random`` state; it asks a Sampler to
shuffle and take. Tests substitute deterministic samplers.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from typing import Protocol, TypeVar

T = TypeVar("T")


class Sampler(Protocol):
    """Shuffle/take-n abstraction."""

    def shuffle(self, items: Sequence[T]) -> list[T]:
        """Return a permuted copy of ``items``."""
        ...

    def sample(self, items: Sequence[T], k: int) -> list[T]:
        """Return the first ``k`` items of a shuffled copy (fewer if short)."""
        ...


class RandomSampler:
    """Uniform shuffling backed by a private ``random.Random`` instance."""

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng or random.Random()

    def shuffle(self, items: Sequence[T]) -> list[T]:
        shuffled = list(items)
        self._rng.shuffle(shuffled)
        return shuffled

    def sample(self, items: Sequence[T], k: int) -> list[T]:
        if k <= 0:
            return []
        return self.shuffle(items)[:k]
