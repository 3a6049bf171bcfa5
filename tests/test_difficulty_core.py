from __future__ import annotations

from dataclasses import dataclass

import pytest

from colour_nback.difficulty import DifficultyController


@dataclass
class FakeAbility:
    theta: float
    trend: float = 0.0
    fatigue: float = 0.0
    flow: float = 0.5

    def get_theta_trend(self) -> float:
        return self.trend

    def get_fatigue_index(self) -> float:
        return self.fatigue

    def get_flow_score(self) -> float:
        return self.flow


@pytest.mark.parametrize(
    "n,max_unique,hold_up,hold_down,climb",
    [
        (1, 2, 6, 3, 0.06),
        (2, 3, 6, 3, 0.06),
        (4, 5, 2, 1, 0.075),
        (6, 7, 2, 1, 0.105),
    ],
)
def test_initial_state_scales_with_n(n: int, max_unique: int, hold_up: int, hold_down: int, climb: float) -> None:
    c = DifficultyController(n)

    assert c.min_unique_colors == 2
    assert c.max_unique_colors == max_unique
    assert c.current_unique_colors == 2
    assert c.target_entropy == 0.0
    assert c.tse == 0.0
    assert c.match_rate == pytest.approx(0.30)
    assert c.step_hold_increase == hold_up
    assert c.step_hold_decrease == hold_down
    assert c.entropy_climb_rate == pytest.approx(climb)
    assert c.entropy_drop_rate == pytest.approx(climb * 2)


def test_strong_player_climbs_only_once_structure_is_earned() -> None:
    c = DifficultyController(4)
    strong = FakeAbility(theta=3.0)

    commits: list[int] = []
    for step in range(60):
        before_unique = c.current_unique_colors
        before_tse = c.tse
        c.update(strong)
        if c.current_unique_colors > before_unique:
            assert before_tse >= 0.5
            commits.append(step)
        assert c.current_unique_colors >= before_unique

    assert c.current_unique_colors == 5
    assert c.target_entropy == pytest.approx(1.0)
    assert c.tse == pytest.approx(1.0)
    assert commits
    for a, b in zip(commits, commits[1:]):
        assert b - a >= c.step_hold_increase


def test_struggling_player_sheds_colours_without_tse_gate() -> None:
    c = DifficultyController(4)
    c.target_entropy = 1.0
    c.tse = 1.0
    c.current_unique_colors = 5
    c.pending_unique_colors = 5
    weak = FakeAbility(theta=0.5)

    seen: list[int] = []
    for _ in range(40):
        c.update(weak)
        seen.append(c.current_unique_colors)

    assert all(b <= a for a, b in zip(seen, seen[1:]))
    assert seen[-1] == 2
    assert c.target_entropy == 0.0
    assert c.tse == 0.0


def test_integral_is_clamped() -> None:
    c = DifficultyController(3)
    for _ in range(20):
        c.update(FakeAbility(theta=0.0))
    assert c.integral == pytest.approx(3.0)

    for _ in range(40):
        c.update(FakeAbility(theta=4.0))
    assert c.integral == pytest.approx(-3.0)


def test_match_rate_stays_in_bounds() -> None:
    c = DifficultyController(3)
    for _ in range(30):
        c.update(FakeAbility(theta=-6.0))
        assert 0.25 <= c.match_rate <= 0.40
    assert c.match_rate == pytest.approx(0.40)

    for _ in range(30):
        c.update(FakeAbility(theta=5.0))
        assert 0.25 <= c.match_rate <= 0.40
    assert c.match_rate == pytest.approx(0.25)


@pytest.mark.parametrize(
    "flow,fatigue,expected",
    [(0.7, 0.1, 0.95), (0.9, 0.7, 1.05), (0.5, 0.4, 1.0), (0.7, 0.4, 1.0)],
)
def test_stimulus_interval_follows_flow_and_fatigue(flow: float, fatigue: float, expected: float) -> None:
    c = DifficultyController(2)
    c.update(FakeAbility(theta=1.8, flow=flow, fatigue=fatigue))
    assert c.stimulus_interval == pytest.approx(expected)


def test_session_stop_eases_difficulty() -> None:
    c = DifficultyController(4)
    c.current_unique_colors = 4
    c.target_entropy = 0.6
    c.integral = -2.0
    c.tse = 0.8
    c.match_rate = 0.30
    c.step_hold_counter = 1

    c.on_session_stopped()

    assert c.current_unique_colors == 3
    assert c.target_entropy == pytest.approx(0.3)
    assert c.integral == 0.0
    assert c.tse == pytest.approx(0.24)
    assert c.match_rate == pytest.approx(0.35)
    assert c.step_hold_counter == 0


def test_session_stop_keeps_minimum_load_and_match_ceiling() -> None:
    c = DifficultyController(2)
    c.match_rate = 0.38
    c.on_session_stopped()
    assert c.current_unique_colors == 2
    assert c.match_rate == pytest.approx(0.40)


def test_same_inputs_same_state() -> None:
    a = DifficultyController(3)
    b = DifficultyController(3)
    for theta in [2.5, 2.6, 2.2, 1.0, 0.4, 2.9, 3.1, 3.0] * 4:
        a.update(FakeAbility(theta=theta, trend=0.01))
        b.update(FakeAbility(theta=theta, trend=0.01))
    assert a.snapshot() == b.snapshot()
