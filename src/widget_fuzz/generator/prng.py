"""Seedable 32-bit pseudo-random generator and the stream helpers built on it.

Every stochastic decision in the package (initial population, selection,
crossover points, mutation operators, random instances) draws from one
``RandomStream`` so a run is reproducible from its seed alone.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from typing import Final, TypeVar

T = TypeVar("T")

RandomSource = Callable[[], float]

_MASK_32: Final[int] = 0xFFFFFFFF
_GOLDEN_GAMMA: Final[int] = 0x6D2B79F5
_TWO_POW_32: Final[float] = 4294967296.0


def _imul(left: int, right: int) -> int:
    return (left * right) & _MASK_32


def mulberry32(seed: int) -> RandomSource:
    """Return a zero-argument generator yielding floats in ``[0, 1)``."""

    if isinstance(seed, bool) or not isinstance(seed, int):
        raise ValueError(f"seed must be an integer, got {type(seed).__name__}")
    state = seed & _MASK_32

    def next_float() -> float:
        nonlocal state
        state = (state + _GOLDEN_GAMMA) & _MASK_32
        z = state
        z = _imul(z ^ (z >> 15), z | 1)
        z ^= (z + _imul(z ^ (z >> 7), z | 61)) & _MASK_32
        return ((z ^ (z >> 14)) & _MASK_32) / _TWO_POW_32

    return next_float


def seeded(seed: int) -> RandomSource:
    """Alias kept for the public contract: ``seeded(seed)() -> float``."""

    return mulberry32(seed)


class RandomStream:
    """Convenience sampling over a single ``RandomSource``."""

    __slots__ = ("_source", "seed")

    def __init__(self, source: RandomSource, *, seed: int | None = None) -> None:
        if not callable(source):
            raise ValueError("random source must be callable")
        self._source = source
        self.seed = seed

    @classmethod
    def from_seed(cls, seed: int) -> RandomStream:
        return cls(mulberry32(seed), seed=seed)

    def random(self) -> float:
        return self._source()

    def __call__(self) -> float:
        return self._source()

    def randint(self, low: int, high: int) -> int:
        """Uniform integer in ``[low, high]``; collapses to ``low`` when ``high < low``."""

        if high <= low:
            return low
        return math.floor(self._source() * (high - low + 1) + low)

    def index(self, length: int) -> int:
        if length <= 0:
            raise ValueError("cannot pick an index from an empty range")
        return math.floor(self._source() * length)

    def choice(self, items: Sequence[T]) -> T:
        if not items:
            raise ValueError("cannot choose from an empty sequence")
        return items[self.index(len(items))]

    def chance(self, probability: float) -> bool:
        return self._source() < probability

    def weighted(self, options: Sequence[tuple[T, float]]) -> T:
        """Pick one option with probability proportional to its weight."""

        if not options:
            raise ValueError("cannot choose from an empty option list")
        total = sum(max(weight, 0.0) for _, weight in options)
        if total <= 0:
            return options[self.index(len(options))][0]
        target = self._source() * total
        cumulative = 0.0
        for value, weight in options:
            cumulative += max(weight, 0.0)
            if target < cumulative:
                return value
        return options[-1][0]


__all__ = ["RandomSource", "RandomStream", "mulberry32", "seeded"]
