import random
from typing import Protocol, Sequence


class RandomSource(Protocol):
    def next(self) -> float:
        """Uniform value in [0, 1)."""
        ...


class SeededRandom:
    """Reproducible stream of floats seeded from a string."""

    def __init__(self, seed: str|int|None = None):
        self.seed = seed
        self._random = random.Random(seed)

    def next(self) -> float:
        return self._random.random()


class SequenceRandom:
    """Replays ``values`` in a loop."""

    def __init__(self, values: Sequence[float]):
        if len(values) == 0:
            raise ValueError("SequenceRandom needs at least one value")
        self.values = list(values)
        self.index = 0

    def next(self) -> float:
        value = self.values[self.index % len(self.values)]
        self.index += 1
        return value
