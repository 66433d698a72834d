"""Seedable random source owned by a single generation run."""

from __future__ import annotations

import secrets
from typing import Optional, Sequence, TypeVar

import numpy as np

T = TypeVar("T")

SEED_BITS = 63


class RandomStream:
    """Injectable wrapper around a ``numpy.random.Generator``.

    Every random decision in the pipeline goes through one of these, so a
    universe is fully reproducible from ``seed``. Instances are never shared
    between generations.
    """

    def __init__(self, seed: Optional[int] = None):
        if seed is None:
            seed = secrets.randbits(SEED_BITS)
        self.seed = int(seed)
        # SeedSequence only takes non-negative entropy
        self._generator = np.random.default_rng(self.seed % (1 << 64))

    def __repr__(self) -> str:
        return f"RandomStream(seed={self.seed})"

    def random(self) -> float:
        """Float in [0, 1)."""
        return float(self._generator.random())

    def integer(self, low: int, high: int) -> int:
        """Integer in [low, high], both ends inclusive."""
        return int(self._generator.integers(low, high, endpoint=True))

    def choice(self, items: Sequence[T]) -> T:
        if not items:
            raise IndexError("Cannot choose from an empty sequence")
        return items[int(self._generator.integers(0, len(items)))]

    def sample(
        self,
        items: Sequence[T],
        k: int,
        weights: Optional[Sequence[float]] = None,
    ) -> list[T]:
        """Pick ``k`` distinct items, optionally weighted, without replacement.

        Weights are relative; they are normalised here. ``k`` larger than the
        population is clamped to the population size.
        """
        k = min(k, len(items))
        if k <= 0:
            return []
        p = None
        if weights is not None:
            if len(weights) != len(items):
                raise ValueError("weights must match items in length")
            w = np.asarray(weights, dtype=float)
            p = w / w.sum()
        indices = self._generator.choice(len(items), size=k, replace=False, p=p)
        return [items[int(i)] for i in indices]
