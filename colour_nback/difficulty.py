from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from .cognitive_core import clamp, clamp01, round_half_up

logger = logging.getLogger(__name__)


class AbilitySignal(Protocol):
    """What the controller reads from the ability model."""

    theta: float

    def get_theta_trend(self) -> float: ...
    def get_fatigue_index(self) -> float: ...
    def get_flow_score(self) -> float: ...


@dataclass(frozen=True, slots=True)
class DifficultyConfig:
    target_theta: float = 1.8
    kp: float = 0.3
    ki: float = 0.05
    integral_max: float = 3.0
    min_unique_colors: int = 2
    tse_climb_rate: float = 0.06
    tse_drop_rate: float = 0.12
    tse_gate: float = 0.5
    base_match_rate: float = 0.30
    min_match_rate: float = 0.25
    max_match_rate: float = 0.40


@dataclass(frozen=True, slots=True)
class DifficultySnapshot:
    current_unique_colors: int
    max_unique_colors: int
    min_unique_colors: int
    pending_unique_colors: int
    step_hold_counter: int
    target_entropy: float
    tse: float
    match_rate: float
    stimulus_interval: float
    pi_error: float
    pi_integral: float


class DifficultyController:
    """PI controller turning ability error into four difficulty knobs.

    Knobs: committed unique-colour count (gated by a hold counter and by
    TSE), match rate, stimulus interval multiplier and temporal structure
    entropy. Positive adjustment means the player is below target and the
    task should get easier.
    """

    def __init__(self, n: int, config: DifficultyConfig | None = None) -> None:
        if n < 1:
            raise ValueError("n must be >= 1")
        cfg = config or DifficultyConfig()
        self._cfg = cfg
        self.n = int(n)

        self.integral = 0.0
        # Start at minimum load; higher load has to be earned.
        self.target_entropy = 0.0
        self.tse = 0.0
        self.match_rate = cfg.base_match_rate
        self.stimulus_interval = 1.0

        self.min_unique_colors = cfg.min_unique_colors
        self.max_unique_colors = max(cfg.min_unique_colors, self.n + 1)
        self.current_unique_colors = self.min_unique_colors
        self.pending_unique_colors = self.min_unique_colors
        self.step_hold_counter = 0

        colour_range = self.max_unique_colors - self.min_unique_colors
        # n=1 has an empty range; the floor only keeps the divisions defined.
        hold_range = max(1, colour_range)
        self.step_hold_increase = max(2, round_half_up(6 / hold_range))
        self.step_hold_decrease = max(1, round_half_up(3 / hold_range))

        # Wider ranges need larger steps to stay traversable within a round.
        self.entropy_climb_rate = min(0.12, max(0.06, 0.03 + 0.015 * colour_range))
        self.entropy_drop_rate = self.entropy_climb_rate * 2.0

    @property
    def config(self) -> DifficultyConfig:
        return self._cfg

    def update(self, ability: AbilitySignal) -> None:
        cfg = self._cfg
        theta = ability.theta
        trend = ability.get_theta_trend()
        fatigue = ability.get_fatigue_index()
        flow = ability.get_flow_score()

        error = cfg.target_theta - theta
        self.integral = clamp(self.integral + error, -cfg.integral_max, cfg.integral_max)
        adjustment = cfg.kp * error + cfg.ki * self.integral

        if theta > 1.6 and trend > 0.005:
            adjustment -= 0.1
        if trend < -0.01 and fatigue > 0.5:
            adjustment += 0.15

        self.target_entropy = clamp01(self.target_entropy + self._asymmetric_delta(
            adjustment, self.entropy_climb_rate, self.entropy_drop_rate
        ))

        self._update_unique_colors()

        match_adj = clamp(adjustment * 0.05, -0.05, 0.10)
        self.match_rate = clamp(cfg.base_match_rate + match_adj, cfg.min_match_rate, cfg.max_match_rate)

        if flow > 0.6 and fatigue < 0.3:
            self.stimulus_interval = 0.95
        elif fatigue > 0.6:
            self.stimulus_interval = 1.05
        else:
            self.stimulus_interval = 1.0

        # TSE is updated last so the unique-colour gate above reads the
        # value earned on previous trials.
        self.tse = clamp01(self.tse + self._asymmetric_delta(adjustment, cfg.tse_climb_rate, cfg.tse_drop_rate))

    @staticmethod
    def _asymmetric_delta(adjustment: float, climb_rate: float, drop_rate: float) -> float:
        # Harder to earn than to lose.
        if adjustment < 0:
            return -adjustment * climb_rate
        return -adjustment * drop_rate

    def _update_unique_colors(self) -> None:
        colour_range = self.max_unique_colors - self.min_unique_colors
        target_float = self.min_unique_colors + self.target_entropy * colour_range
        candidate = round_half_up(clamp(target_float, self.min_unique_colors, self.max_unique_colors))

        if candidate == self.current_unique_colors:
            self.step_hold_counter = 0
            return

        if candidate == self.pending_unique_colors:
            self.step_hold_counter += 1
        else:
            self.pending_unique_colors = candidate
            self.step_hold_counter = 1

        increasing = candidate > self.current_unique_colors
        required = self.step_hold_increase if increasing else self.step_hold_decrease
        if self.step_hold_counter < required:
            return
        if increasing and self.tse < self._cfg.tse_gate:
            return

        logger.debug(
            "unique colours %d -> %d (entropy=%.3f tse=%.3f)",
            self.current_unique_colors,
            candidate,
            self.target_entropy,
            self.tse,
        )
        self.current_unique_colors = candidate
        self.step_hold_counter = 0

    def get_target_unique_colors(self) -> int:
        return self.current_unique_colors

    def get_match_rate(self) -> float:
        return self.match_rate

    def on_session_stopped(self) -> None:
        """Fast difficulty reset after a poor-performance stop."""

        cfg = self._cfg
        self.target_entropy = max(0.0, self.target_entropy * 0.5)
        if self.current_unique_colors > self.min_unique_colors:
            self.current_unique_colors -= 1
        self.integral = 0.0
        self.step_hold_counter = 0
        self.match_rate = min(cfg.max_match_rate, self.match_rate + 0.05)
        self.tse = max(0.0, self.tse * 0.3)

    def snapshot(self) -> DifficultySnapshot:
        cfg = self._cfg
        # Display-only figure for the stats panel.
        pi_error = cfg.target_theta - (self.integral / max(1.0, abs(self.integral)) * cfg.ki)
        return DifficultySnapshot(
            current_unique_colors=self.current_unique_colors,
            max_unique_colors=self.max_unique_colors,
            min_unique_colors=self.min_unique_colors,
            pending_unique_colors=self.pending_unique_colors,
            step_hold_counter=self.step_hold_counter,
            target_entropy=self.target_entropy,
            tse=self.tse,
            match_rate=self.match_rate,
            stimulus_interval=self.stimulus_interval,
            pi_error=pi_error,
            pi_integral=self.integral,
        )
