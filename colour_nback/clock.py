from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock abstraction.

    Core logic depends on this interface rather than calling real time directly.
    """

    def now(self) -> float:
        """Return monotonic seconds."""


class RealClock:
    """Production clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


@dataclass
class ManualClock:
    """Clock advanced explicitly by the caller (simulations, tests)."""

    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


class ReactionTimer:
    """Measures stimulus-to-click latency in milliseconds.

    The engine only ever sees the resulting duration, never the timestamps.
    """

    def __init__(self, clock: Clock, *, fallback_ms: float = 500.0) -> None:
        self._clock = clock
        self._fallback_ms = float(fallback_ms)
        self._stimulus_at_s: float | None = None

    def start_trial(self) -> None:
        self._stimulus_at_s = self._clock.now()

    def record_response(self) -> float:
        if self._stimulus_at_s is None:
            return self._fallback_ms
        return max(0.0, (self._clock.now() - self._stimulus_at_s) * 1000.0)

    def reset(self) -> None:
        self._stimulus_at_s = None
