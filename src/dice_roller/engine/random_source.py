"""Random sources the engine draws from.

The engine only ever calls ``uniform_int(low, high)`` (inclusive bounds), so
any object with that method can be injected: a seeded generator for
reproducible sessions or a fixed sequence for tests and replays.
"""
from __future__ import annotations

import random
from typing import Iterable, Protocol

from dice_roller.engine.errors import EvaluationError


class RandomSource(Protocol):
    def uniform_int(self, low: int, high: int) -> int: ...


class SystemRandomSource:
    """Owns a private ``random.Random`` so concurrent evaluations never share state."""

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(seed)

    def uniform_int(self, low: int, high: int) -> int:
        return self._rng.randint(low, high)


class SequenceRandomSource:
    """Replays a fixed sequence of values, in order."""

    def __init__(self, values: Iterable[int]) -> None:
        self._values = list(values)
        self._index = 0

    @property
    def remaining(self) -> int:
        return len(self._values) - self._index

    def uniform_int(self, low: int, high: int) -> int:
        if self._index >= len(self._values):
            raise EvaluationError(f"Random sequence exhausted after {len(self._values)} draws")
        value = self._values[self._index]
        if not low <= value <= high:
            raise EvaluationError(
                f"Draw {self._index} is {value}, outside [{low}, {high}]"
            )
        self._index += 1
        return value


class RecordingRandomSource:
    """Wraps another source and remembers every value it hands out."""

    def __init__(self, inner: RandomSource) -> None:
        self.inner = inner
        self.draws: list[int] = []

    def uniform_int(self, low: int, high: int) -> int:
        value = self.inner.uniform_int(low, high)
        self.draws.append(value)
        return value
