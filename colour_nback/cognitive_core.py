from __future__ import annotations

import math
import random
from collections.abc import Sequence
from enum import Enum
from typing import TypeVar

T = TypeVar("T")


class Phase(str, Enum):
    INSTRUCTIONS = "instructions"
    RUNNING = "running"
    RESULTS = "results"


class SeededRng:
    """Simple seeded RNG wrapper to keep deterministic streams explicit."""

    def __init__(self, seed: int) -> None:
        self._seed = int(seed)
        self._rng = random.Random(self._seed)

    @property
    def seed(self) -> int:
        return self._seed

    def random(self) -> float:
        return self._rng.random()

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def choice(self, seq: Sequence[T]) -> T:
        return self._rng.choice(seq)

    def uniform(self, a: float, b: float) -> float:
        return self._rng.uniform(a, b)


def new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def clamp(x: float, lo: float, hi: float) -> float:
    return lo if x <= lo else hi if x >= hi else float(x)


def clamp01(x: float) -> float:
    return 0.0 if x <= 0.0 else 1.0 if x >= 1.0 else float(x)


def round_half_up(x: float) -> int:
    # Matches the half-up rounding used for colour targets and match gaps.
    return int(math.floor(x + 0.5))


def mean(values: Sequence[float]) -> float | None:
    if not values:
        return None
    return float(sum(values)) / float(len(values))


def median(values: Sequence[float]) -> float | None:
    if not values:
        return None
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 1:
        return float(ordered[mid])
    return float(ordered[mid - 1] + ordered[mid]) / 2.0
