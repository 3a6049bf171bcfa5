from __future__ import annotations

import pytest

from colour_nback.clock import ManualClock
from colour_nback.cognitive_core import Phase
from colour_nback.engine import NBackEngine, NoPendingTileError
from colour_nback.results import round_result_from_round
from colour_nback.round import NBackRound, RoundConfig, StopReason
from colour_nback.simulation import AutopilotPlayer, PlayerProfile, run_simulated_round


def test_perfect_player_completes_round() -> None:
    engine = NBackEngine(start_n=2, seed=5)
    result = run_simulated_round(engine, AutopilotPlayer(seed=6))

    assert result.stop_reason is StopReason.COMPLETED
    assert not result.stopped_early
    assert result.trials_shown == 40
    assert result.hits + result.misses + result.false_alarms + result.correct_rejections == 38
    assert result.targets > 0
    assert result.misses == 0
    assert result.false_alarms == 0
    assert result.accuracy == pytest.approx(1.0)
    assert result.accuracy_pct == 100
    assert result.mean_rt_ms is not None and 400.0 <= result.mean_rt_ms <= 600.0
    assert result.seed == 5
    assert engine.get_stats().theta > 2.0


def test_pressing_on_everything_but_matches_stops_early() -> None:
    engine = NBackEngine(start_n=2, seed=7)
    player = AutopilotPlayer(seed=8, profile=PlayerProfile(hit_rate=0.0, false_alarm_rate=1.0))
    result = run_simulated_round(engine, player)

    assert result.stop_reason is StopReason.POOR_PERFORMANCE
    assert result.stopped_early
    assert result.trials_shown == 10
    assert result.hits == 0
    assert result.accuracy == 0.0
    # Stop test was cleared when the round ended.
    assert engine.trainer.sprt.trials_recorded == 0


def test_error_window_stop_without_sprt() -> None:
    engine = NBackEngine(start_n=2, seed=9)
    player = AutopilotPlayer(seed=10, profile=PlayerProfile(hit_rate=0.0, false_alarm_rate=1.0))
    # Disable the stop test so only the error window can end the round.
    engine.trainer.sprt.stop_bound = float("inf")
    result = run_simulated_round(engine, player)

    assert result.stop_reason is StopReason.ERROR_RATE
    # At 11 tiles the last ten hold one unscored tile and nine answered ones.
    assert result.trials_shown == 11


def test_click_rules_and_non_response() -> None:
    clock = ManualClock()
    engine = NBackEngine(start_n=2, seed=1)
    game = NBackRound(engine=engine, clock=clock)
    assert game.phase is Phase.INSTRUCTIONS

    assert game.start() is not None
    assert game.phase is Phase.RUNNING
    assert game.start() is None
    # Nothing to compare against yet.
    assert game.click() is None
    game.next_stimulus()
    assert game.click() is None

    game.next_stimulus()
    clock.advance(0.7)
    result = game.click()
    assert result is not None
    assert game.click() is None
    scored = game.trials()[2]
    assert scored.user_clicked is True
    assert scored.reaction_time_ms == pytest.approx(700.0)
    assert scored.correct == scored.was_match

    game.next_stimulus()
    clock.advance(2.5)
    game.next_stimulus()
    missed = game.trials()[3]
    assert missed.responded
    assert missed.user_clicked is False
    assert missed.reaction_time_ms == 2500.0

    first = game.trials()[0]
    assert not first.responded


def test_finish_ends_round() -> None:
    game = NBackRound(engine=NBackEngine(start_n=2, seed=2), clock=ManualClock())
    game.start()
    game.next_stimulus()
    game.finish()

    assert game.phase is Phase.RESULTS
    assert game.stop_reason is StopReason.USER
    assert game.current_tile is None
    assert game.engine.current_tile is None
    with pytest.raises(NoPendingTileError):
        game.engine.on_user_response(True, True, 500.0)
    assert game.next_stimulus() is None
    assert game.click() is None

    result = round_result_from_round(game)
    assert result.trials_shown == 2
    assert result.targets == 0
    assert result.accuracy == 0.0
    assert result.mean_rt_ms is None


def test_short_round_config() -> None:
    engine = NBackEngine(start_n=1, seed=3)
    result = run_simulated_round(engine, AutopilotPlayer(seed=4), config=RoundConfig(max_trials=12))
    assert result.trials_shown == 12
    assert result.stop_reason is StopReason.COMPLETED
    assert result.n == 1


def test_round_config_validation() -> None:
    engine = NBackEngine(start_n=2, seed=3)
    with pytest.raises(ValueError):
        NBackRound(engine=engine, clock=ManualClock(), config=RoundConfig(max_trials=0))
    with pytest.raises(ValueError):
        NBackRound(engine=engine, clock=ManualClock(), config=RoundConfig(error_threshold=0))


def test_engine_carries_over_between_rounds() -> None:
    engine = NBackEngine(start_n=3, seed=13)
    player = AutopilotPlayer(seed=14)
    first = run_simulated_round(engine, player)
    second = run_simulated_round(engine, player)

    assert first.trials_shown == second.trials_shown == 40
    assert engine.get_stats().total_trials == 2 * 37
    assert 0.0 < second.load_ratio <= 1.0


def test_round_defaults_to_real_clock() -> None:
    game = NBackRound(engine=NBackEngine(start_n=2, seed=15))
    tile = game.start()
    assert tile is not None
    assert game.trials()[0].timestamp >= 0.0
