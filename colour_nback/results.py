from __future__ import annotations

from dataclasses import dataclass

from .cognitive_core import mean, median, round_half_up
from .round import NBackRound, StopReason, Trial


@dataclass(frozen=True, slots=True)
class RoundResult:
    """Summary + trial log for a finished round.

    ``accuracy`` is hits / (targets + false alarms): a miss and a false
    press both count against the player, correct rejections are neutral.
    """

    n: int
    seed: int
    trials_shown: int
    targets: int
    hits: int
    misses: int
    false_alarms: int
    correct_rejections: int
    accuracy: float
    mean_rt_ms: float | None
    median_rt_ms: float | None
    average_load: float
    load_ratio: float
    stop_reason: StopReason | None

    trials: list[Trial]

    @property
    def accuracy_pct(self) -> int:
        return round_half_up(self.accuracy * 100.0)

    @property
    def stopped_early(self) -> bool:
        return self.stop_reason in (StopReason.POOR_PERFORMANCE, StopReason.ERROR_RATE)


def round_result_from_round(game: NBackRound) -> RoundResult:
    """Build a RoundResult from a (usually finished) NBackRound."""

    trials = game.trials()
    n = game.n
    scored = [t for t in trials[n:] if t.responded]

    hits = sum(1 for t in scored if t.was_match and t.user_clicked)
    misses = sum(1 for t in scored if t.was_match and not t.user_clicked)
    false_alarms = sum(1 for t in scored if not t.was_match and t.user_clicked)
    correct_rejections = sum(1 for t in scored if not t.was_match and not t.user_clicked)
    targets = hits + misses

    denominator = targets + false_alarms
    accuracy = 0.0 if denominator == 0 else hits / denominator

    clicked_rts = [float(t.reaction_time_ms) for t in scored if t.user_clicked and t.reaction_time_ms is not None]

    avg_load = mean([float(t.current_load) for t in trials]) or 0.0

    return RoundResult(
        n=n,
        seed=game.engine.seed,
        trials_shown=len(trials),
        targets=targets,
        hits=hits,
        misses=misses,
        false_alarms=false_alarms,
        correct_rejections=correct_rejections,
        accuracy=float(accuracy),
        mean_rt_ms=mean(clicked_rts),
        median_rt_ms=median(clicked_rts),
        average_load=float(avg_load),
        load_ratio=float(avg_load) / float(n + 1),
        stop_reason=game.stop_reason,
        trials=trials,
    )
