from __future__ import annotations

import math

import pytest

from colour_nback.ability import AbilityConfig, AbilityModel, compute_d_prime, inverse_normal_cdf


def test_inverse_normal_cdf_matches_known_quantiles() -> None:
    assert inverse_normal_cdf(0.5) == pytest.approx(0.0, abs=1e-9)
    assert inverse_normal_cdf(0.975) == pytest.approx(1.959964, abs=1e-5)
    assert inverse_normal_cdf(0.01) == pytest.approx(-2.326348, abs=1e-5)
    assert inverse_normal_cdf(0.99) == pytest.approx(2.326348, abs=1e-5)


@pytest.mark.parametrize("p", [0.0, 1.0, -0.1, 1.5])
def test_inverse_normal_cdf_rejects_out_of_range(p: float) -> None:
    with pytest.raises(ValueError):
        inverse_normal_cdf(p)


def test_d_prime_clamps_extreme_rates() -> None:
    assert compute_d_prime(0.5, 0.5) == pytest.approx(0.0, abs=1e-9)
    perfect = compute_d_prime(1.0, 0.0)
    assert math.isfinite(perfect)
    assert perfect == pytest.approx(compute_d_prime(0.99, 0.01))
    assert perfect == pytest.approx(2 * 2.326348, abs=1e-4)


def test_fresh_model_starts_at_prior() -> None:
    model = AbilityModel()
    assert model.theta == 1.5
    assert model.get_theta_trend() == 0.0
    assert model.total_trials == 0


def test_theta_rises_under_sustained_correct_play() -> None:
    model = AbilityModel()
    thetas: list[float] = []
    for i in range(30):
        is_match = i % 3 == 0
        model.record_trial(is_match, is_match, 500.0)
        thetas.append(model.theta)

    tail = thetas[2:]
    assert all(b > a for a, b in zip(tail, tail[1:]))
    assert thetas[-1] > 2.0
    assert model.get_theta_trend() > 0.0


def test_trend_needs_minimum_samples() -> None:
    model = AbilityModel()
    for _ in range(4):
        model.record_trial(True, True, 500.0)
    assert model.get_theta_trend() == 0.0

    model.record_trial(True, True, 500.0)
    assert model.get_theta_trend() != 0.0


def test_windows_are_bounded() -> None:
    cfg = AbilityConfig()
    model = AbilityModel(cfg)
    for i in range(60):
        model.record_trial(i % 4 == 0, i % 4 == 0, 400.0 + i)

    assert len(model.trial_window) == cfg.window_size
    assert len(model.theta_window) == cfg.theta_window_size
    assert len(model.rt_window) == cfg.rt_window_size * 2
    assert model.total_trials == 60

    # Stats read the most recent rt_window_size entries (RTs 440..459).
    stats = model.get_rt_stats()
    assert stats.median == 450.0
    assert stats.p90 == 458.0


def test_rt_stats_default_until_three_samples() -> None:
    model = AbilityModel()
    model.record_trial(False, False, 600.0)
    model.record_trial(False, False, 0.0)
    model.record_trial(False, False, 700.0)

    assert model.rt_window == [600.0, 700.0]
    stats = model.get_rt_stats()
    assert (stats.median, stats.p90, stats.cv) == (800.0, 1200.0, 0.2)


def test_steady_fast_play_scores_flow_without_fatigue() -> None:
    model = AbilityModel()
    for i in range(30):
        is_match = i % 3 == 0
        model.record_trial(is_match, is_match, 500.0)

    assert model.get_fatigue_index() == 0.0
    assert model.get_flow_score() >= 0.8
    assert 0.0 <= model.get_normalized_performance() <= 1.0


def test_slow_erratic_play_raises_fatigue() -> None:
    model = AbilityModel()
    for i in range(24):
        rt = 3000.0 if i % 7 == 6 else 400.0
        # Early presses, then every target missed.
        model.record_trial(i % 2 == 0, i < 4, rt)

    assert model.get_theta_trend() < 0.0
    assert model.get_fatigue_index() == 1.0
    assert model.get_flow_score() < 0.5


def test_sdt_counts_and_reset() -> None:
    model = AbilityModel()
    model.record_trial(True, True, 500.0)
    model.record_trial(True, False, 500.0)
    model.record_trial(False, True, 500.0)
    model.record_trial(False, False, 500.0)

    counts = model.get_sdt_counts()
    assert (counts.hits, counts.misses, counts.false_alarms, counts.correct_rejections) == (1, 1, 1, 1)

    model.reset()
    assert model.theta == 1.5
    assert model.trial_window == [] and model.theta_window == [] and model.rt_window == []
    assert model.total_trials == 0
