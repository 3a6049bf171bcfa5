from __future__ import annotations

import logging
from dataclasses import dataclass

from .results import RoundResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class UnlockRules:
    threshold_pct: int = 80
    min_trials: int = 20
    max_level: int = 6
    fallback_level: int = 1


@dataclass(slots=True)
class LevelProgress:
    """Which n-back levels the player may select."""

    highest_unlocked: int = 2
    rules: UnlockRules = UnlockRules()

    def is_locked(self, level: int) -> bool:
        return level > self.highest_unlocked

    def resolve_selected(self, saved_level: int | None) -> int:
        if saved_level is None or self.is_locked(saved_level):
            return self.rules.fallback_level
        return int(saved_level)

    def check_and_unlock(self, n_level: int, accuracy_pct: float, trials_played: int, load_ratio: float) -> bool:
        """Unlock the next level after a qualifying round at the current top level."""

        r = self.rules
        qualifies = (
            n_level == self.highest_unlocked
            and accuracy_pct >= r.threshold_pct
            and trials_played >= r.min_trials
            and load_ratio * 100.0 >= r.threshold_pct
        )
        if not qualifies or self.highest_unlocked >= r.max_level:
            return False
        self.highest_unlocked += 1
        logger.info(
            "unlocked level %d (%d trials at %.0f%%)", self.highest_unlocked, trials_played, accuracy_pct
        )
        return True

    def record_round(self, result: RoundResult) -> bool:
        return self.check_and_unlock(result.n, result.accuracy_pct, result.trials_shown, result.load_ratio)
