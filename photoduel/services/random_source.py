"""
Random Source: injectable randomness for dealing and opponent play.

Production code uses the operating system's entropy pool. Tests pass a
SeededRandomSource (reproducible) or a scripted fake so hands, opponent
choices and comparison axes can be pinned down.
"""

import random
from collections.abc import Sequence
from typing import Protocol, TypeVar

T = TypeVar("T")


class RandomSource(Protocol):
    """Capability the engine needs from a random number generator."""

    def next_float(self) -> float:
        """Uniform float in [0.0, 1.0)."""
        ...

    def choose_one(self, items: Sequence[T]) -> T:
        """Uniformly pick one element of a non-empty sequence."""
        ...

    def shuffled(self, items: Sequence[T]) -> list[T]:
        """Return a uniformly shuffled copy, leaving `items` untouched."""
        ...


class _RandomAdapter:
    def __init__(self, rng: random.Random) -> None:
        self._rng = rng

    def next_float(self) -> float:
        return self._rng.random()

    def choose_one(self, items: Sequence[T]) -> T:
        if not items:
            raise ValueError("Cannot choose from an empty sequence")
        return self._rng.choice(items)

    def shuffled(self, items: Sequence[T]) -> list[T]:
        copy = list(items)
        self._rng.shuffle(copy)
        return copy


class SystemRandomSource(_RandomAdapter):
    """Non-reproducible source backed by random.SystemRandom (thread-safe)."""

    def __init__(self) -> None:
        super().__init__(random.SystemRandom())


class SeededRandomSource(_RandomAdapter):
    """Reproducible source for tests and replays."""

    def __init__(self, seed: int) -> None:
        super().__init__(random.Random(seed))


_default_source: SystemRandomSource | None = None


def get_random_source() -> RandomSource:
    """
    Get the shared random source.

    Returns:
        Singleton SystemRandomSource instance
    """
    global _default_source
    if _default_source is None:
        _default_source = SystemRandomSource()
    return _default_source
