from __future__ import annotations

from dataclasses import dataclass

from .cognitive_core import SeededRng, clamp, clamp01, round_half_up
from .working_memory import WorkingMemoryState


@dataclass(frozen=True, slots=True)
class MatchDecision:
    should_match: bool
    is_forced: bool = False


@dataclass(frozen=True, slots=True)
class MatchStats:
    trials_since_last_match: int
    max_gap: int
    recent_rate: float
    target_rate: float


def _max_gap(rate: float) -> int:
    return round_half_up(1.0 / rate) * 2


class MatchGenerator:
    """Decides per trial whether to request an intentional n-back match.

    Match history records what was actually shown (``register_actual_match``
    after generation), not what was requested.
    """

    WINDOW_SIZE = 20
    MIN_RATE = 0.20
    MAX_RATE = 0.45

    def __init__(self, rng: SeededRng, target_rate: float = 0.30) -> None:
        self._rng = rng
        self.target_rate = float(target_rate)
        self.recent_matches: list[bool] = []
        self.trials_since_last_match = 0
        self.max_gap = _max_gap(self.target_rate)

    def set_target_rate(self, rate: float) -> None:
        self.target_rate = clamp(rate, self.MIN_RATE, self.MAX_RATE)
        self.max_gap = _max_gap(self.target_rate)

    def recent_rate(self) -> float:
        if not self.recent_matches:
            return self.target_rate
        return sum(1 for m in self.recent_matches if m) / len(self.recent_matches)

    def should_create_match(self, memory_state: WorkingMemoryState) -> MatchDecision:
        if len(memory_state.recent_symbols) < memory_state.n:
            return MatchDecision(should_match=False)

        observed = self.recent_rate()
        probability = self.target_rate
        if observed < self.target_rate - 0.05:
            probability += 0.15
        elif observed > self.target_rate + 0.05:
            probability -= 0.15

        forced = self.trials_since_last_match > self.max_gap
        if forced:
            probability = 1.0
        else:
            probability += self.trials_since_last_match * 0.03

        should_match = self._rng.random() < clamp01(probability)
        return MatchDecision(should_match=should_match, is_forced=forced and should_match)

    def register_actual_match(self, did_match: bool) -> None:
        self.recent_matches.append(bool(did_match))
        if len(self.recent_matches) > self.WINDOW_SIZE:
            del self.recent_matches[0]
        self.trials_since_last_match = 0 if did_match else self.trials_since_last_match + 1

    @staticmethod
    def get_n_back_symbol(memory_state: WorkingMemoryState) -> str | None:
        return memory_state.n_back_symbol()

    def stats(self) -> MatchStats:
        return MatchStats(
            trials_since_last_match=self.trials_since_last_match,
            max_gap=self.max_gap,
            recent_rate=self.recent_rate(),
            target_rate=self.target_rate,
        )
