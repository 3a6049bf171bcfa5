from __future__ import annotations

from colour_nback.progression import LevelProgress, UnlockRules
from colour_nback.results import RoundResult
from colour_nback.round import StopReason


def _result(n: int, *, hits: int, targets: int, trials: int, load_ratio: float) -> RoundResult:
    return RoundResult(
        n=n,
        seed=1,
        trials_shown=trials,
        targets=targets,
        hits=hits,
        misses=targets - hits,
        false_alarms=0,
        correct_rejections=trials - n - targets,
        accuracy=hits / targets,
        mean_rt_ms=500.0,
        median_rt_ms=500.0,
        average_load=load_ratio * (n + 1),
        load_ratio=load_ratio,
        stop_reason=StopReason.COMPLETED,
        trials=[],
    )


def test_unlock_requires_every_condition() -> None:
    assert not LevelProgress().check_and_unlock(2, 79, 40, 0.9)
    assert not LevelProgress().check_and_unlock(2, 90, 19, 0.9)
    assert not LevelProgress().check_and_unlock(2, 90, 40, 0.79)
    assert not LevelProgress().check_and_unlock(1, 90, 40, 0.9)

    progress = LevelProgress()
    assert progress.check_and_unlock(2, 80, 20, 0.9)
    assert progress.highest_unlocked == 3


def test_unlock_stops_at_max_level() -> None:
    progress = LevelProgress(highest_unlocked=6)
    assert not progress.check_and_unlock(6, 100, 40, 1.0)
    assert progress.highest_unlocked == 6

    custom = LevelProgress(highest_unlocked=3, rules=UnlockRules(max_level=3))
    assert not custom.check_and_unlock(3, 100, 40, 1.0)


def test_locked_selection_falls_back() -> None:
    progress = LevelProgress(highest_unlocked=3)
    assert progress.is_locked(4)
    assert not progress.is_locked(3)
    assert progress.resolve_selected(None) == 1
    assert progress.resolve_selected(5) == 1
    assert progress.resolve_selected(3) == 3


def test_record_round_uses_result_summary() -> None:
    progress = LevelProgress()
    assert progress.record_round(_result(2, hits=9, targets=10, trials=40, load_ratio=0.9))
    assert progress.highest_unlocked == 3

    assert not progress.record_round(_result(3, hits=5, targets=10, trials=40, load_ratio=0.9))
    assert progress.highest_unlocked == 3
