"""Stable public API over the working-memory trainer.

Persisted state is split in two parts. ``strategic`` holds slow-moving
calibration (ability, difficulty targets, committed load) and is always
restored. ``recency`` holds rolling windows and hold counters and may be
omitted when the player has been away long enough that short-horizon
context should not carry over.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from .ability import AbilityConfig, TrialOutcome
from .cognitive_core import SeededRng, new_seed
from .difficulty import DifficultyConfig
from .matching import MatchStats
from .palette import DEFAULT_PALETTE, GridPosition, PaletteColour
from .sprt import SprtConfig, SprtStatus
from .trainer import ResponseResult, Tile, WorkingMemoryTrainer

logger = logging.getLogger(__name__)

AWAY_THRESHOLD_MS = 10 * 60 * 1000


class NoPendingTileError(RuntimeError):
    """A response was recorded without a generated, unanswered tile."""


class RespondedTrial(Protocol):
    was_match: bool | None
    user_clicked: bool | None


@dataclass(frozen=True, slots=True)
class StrategicState:
    theta: float | None = None
    target_entropy: float | None = None
    tse: float | None = None
    current_unique_colors: int | None = None
    integral: float | None = None
    match_rate: float | None = None
    total_trials: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "theta": self.theta,
            "targetEntropy": self.target_entropy,
            "tse": self.tse,
            "currentUniqueColors": self.current_unique_colors,
            "integral": self.integral,
            "matchRate": self.match_rate,
            "totalTrials": self.total_trials,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> StrategicState:
        return cls(
            theta=raw.get("theta"),
            target_entropy=raw.get("targetEntropy"),
            tse=raw.get("tse"),
            current_unique_colors=raw.get("currentUniqueColors"),
            integral=raw.get("integral"),
            match_rate=raw.get("matchRate"),
            total_trials=raw.get("totalTrials"),
        )


@dataclass(frozen=True, slots=True)
class RecencyState:
    trial_window: list[TrialOutcome] | None = None
    theta_window: list[float] | None = None
    rt_window: list[float] | None = None
    step_hold_counter: int | None = None
    pending_unique_colors: int | None = None

    def to_dict(self) -> dict[str, Any]:
        trial_window = None
        if self.trial_window is not None:
            trial_window = [{"wasMatch": t.was_match, "userClicked": t.user_clicked} for t in self.trial_window]
        return {
            "trialWindow": trial_window,
            "thetaWindow": None if self.theta_window is None else list(self.theta_window),
            "rtWindow": None if self.rt_window is None else list(self.rt_window),
            "stepHoldCounter": self.step_hold_counter,
            "pendingUniqueColors": self.pending_unique_colors,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> RecencyState:
        trial_window = raw.get("trialWindow")
        theta_window = raw.get("thetaWindow")
        rt_window = raw.get("rtWindow")
        return cls(
            trial_window=(
                [TrialOutcome(was_match=bool(t["wasMatch"]), user_clicked=bool(t["userClicked"])) for t in trial_window]
                if isinstance(trial_window, list)
                else None
            ),
            theta_window=list(theta_window) if isinstance(theta_window, list) else None,
            rt_window=list(rt_window) if isinstance(rt_window, list) else None,
            step_hold_counter=raw.get("stepHoldCounter"),
            pending_unique_colors=raw.get("pendingUniqueColors"),
        )


@dataclass(frozen=True, slots=True)
class EngineState:
    current_n: int
    saved_at_ms: int
    strategic: StrategicState
    recency: RecencyState

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentN": self.current_n,
            "savedAt": self.saved_at_ms,
            "strategic": self.strategic.to_dict(),
            "recency": self.recency.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class WorkingMemoryStats:
    current_load: int
    target_unique_colors: int
    max_unique_colors: int
    min_unique_colors: int
    performance_ema: float
    progress_to_max: float
    pi_error: float
    pi_integral: float


@dataclass(frozen=True, slots=True)
class EngineStats:
    current_n: int
    trial_number: int
    theta: float
    theta_trend: float
    flow_score: float
    fatigue_index: float
    accuracy: float
    confidence: float
    target_entropy: float
    window_entropy: float
    match_rate: float
    stimulus_interval: float
    tse: float
    rt_median: float
    rt_cv: float
    total_trials: int
    is_recovery: bool
    sprt_status: SprtStatus
    working_memory: WorkingMemoryStats
    matching: MatchStats
    rt_p90: float
    hits: int
    misses: int
    false_alarms: int
    correct_rejections: int


def _as_strategic(value: StrategicState | Mapping[str, Any] | None) -> StrategicState | None:
    if value is None or isinstance(value, StrategicState):
        return value
    return StrategicState.from_dict(value)


def _as_recency(value: RecencyState | Mapping[str, Any] | None) -> RecencyState | None:
    if value is None or isinstance(value, RecencyState):
        return value
    return RecencyState.from_dict(value)


class NBackEngine:
    def __init__(
        self,
        *,
        start_n: int = 2,
        palette: Sequence[PaletteColour] = DEFAULT_PALETTE,
        seed: int | None = None,
        ability_config: AbilityConfig | None = None,
        difficulty_config: DifficultyConfig | None = None,
        sprt_config: SprtConfig | None = None,
    ) -> None:
        self.current_n = int(start_n)
        self.palette = tuple(palette)
        self._seed = new_seed() if seed is None else int(seed)
        self.trainer = WorkingMemoryTrainer(
            self.current_n,
            self.palette,
            rng=SeededRng(self._seed),
            ability_config=ability_config,
            difficulty_config=difficulty_config,
            sprt_config=sprt_config,
        )
        self.current_tile: Tile | None = None

    @property
    def seed(self) -> int:
        return self._seed

    def get_current_n(self) -> int:
        return self.current_n

    def generate_next_tile(self) -> Tile:
        self.current_tile = self.trainer.generate_next_trial()
        return self.current_tile

    def on_user_response(self, user_clicked: bool, was_match: bool, reaction_time_ms: float) -> ResponseResult:
        if self.current_tile is None:
            raise NoPendingTileError("no tile is awaiting a response")
        self.current_tile = None
        return self.trainer.record_response(user_clicked, was_match, reaction_time_ms)

    def clear_pending_tile(self) -> None:
        """Drop the unanswered tile, if any, so no response can be recorded for it."""

        self.current_tile = None

    def set_excluded_positions(self, positions: Iterable[GridPosition] | None) -> None:
        self.trainer.set_excluded_positions(positions)

    def on_poor_performance_stop(self) -> None:
        """Reset the stop test and ease difficulty so the next round starts gentler."""

        self.trainer.difficulty_controller.on_session_stopped()
        self.trainer.sprt.reset()

    def should_stop_session(self) -> bool:
        if not self.trainer.sprt.should_stop():
            return False
        logger.info("stop test crossed the poor-performance bound; easing difficulty")
        self.on_poor_performance_stop()
        return True

    def should_stop_for_errors(self, recent_trials: Sequence[RespondedTrial], error_threshold: int = 5) -> bool:
        """Fallback stop when the recent error count reaches ``error_threshold``."""

        responded = [t for t in recent_trials if t.was_match is not None]
        # At most one trial (the one on screen) may still be unanswered.
        if len(responded) < len(recent_trials) - 1:
            return False

        errors = sum(1 for t in responded if bool(t.user_clicked) != bool(t.was_match))
        if errors >= error_threshold:
            logger.info("%d errors in the last %d trials; easing difficulty", errors, len(recent_trials))
            self.on_poor_performance_stop()
            return True
        return False

    def get_stats(self) -> EngineStats:
        s = self.trainer.stats()
        ability = s.ability
        difficulty = s.difficulty
        return EngineStats(
            current_n=self.current_n,
            trial_number=s.trial_number,
            theta=ability.theta,
            theta_trend=ability.theta_trend,
            flow_score=ability.flow_score,
            fatigue_index=ability.fatigue_index,
            accuracy=ability.normalized_performance,
            confidence=ability.flow_score,
            target_entropy=difficulty.target_entropy,
            window_entropy=s.window_entropy,
            match_rate=difficulty.match_rate,
            stimulus_interval=difficulty.stimulus_interval,
            tse=difficulty.tse,
            rt_median=ability.rt_median,
            rt_cv=ability.rt_cv,
            total_trials=ability.total_trials,
            is_recovery=ability.fatigue_index > 0.6,
            sprt_status=s.sprt,
            working_memory=WorkingMemoryStats(
                current_load=s.current_load,
                target_unique_colors=difficulty.current_unique_colors,
                max_unique_colors=difficulty.max_unique_colors,
                min_unique_colors=difficulty.min_unique_colors,
                performance_ema=ability.normalized_performance,
                progress_to_max=difficulty.current_unique_colors / difficulty.max_unique_colors,
                pi_error=difficulty.pi_error,
                pi_integral=difficulty.pi_integral,
            ),
            matching=s.matching,
            rt_p90=ability.rt_p90,
            hits=ability.hits,
            misses=ability.misses,
            false_alarms=ability.false_alarms,
            correct_rejections=ability.correct_rejections,
        )

    def reset(self) -> None:
        self.current_tile = None
        self.trainer.reset()

    def snapshot_state(self, *, saved_at_ms: int | None = None) -> EngineState:
        ab = self.trainer.ability_model
        dc = self.trainer.difficulty_controller
        return EngineState(
            current_n=self.current_n,
            saved_at_ms=int(time.time() * 1000) if saved_at_ms is None else int(saved_at_ms),
            strategic=StrategicState(
                theta=ab.theta,
                target_entropy=dc.target_entropy,
                tse=dc.tse,
                current_unique_colors=dc.current_unique_colors,
                integral=dc.integral,
                match_rate=dc.match_rate,
                total_trials=ab.total_trials,
            ),
            recency=RecencyState(
                trial_window=list(ab.trial_window),
                theta_window=list(ab.theta_window),
                rt_window=list(ab.rt_window),
                step_hold_counter=dc.step_hold_counter,
                pending_unique_colors=dc.pending_unique_colors,
            ),
        )

    def to_json(self, *, saved_at_ms: int | None = None) -> dict[str, Any]:
        return self.snapshot_state(saved_at_ms=saved_at_ms).to_dict()

    def warm_start(
        self,
        strategic: StrategicState | Mapping[str, Any] | None,
        recency: RecencyState | Mapping[str, Any] | None = None,
    ) -> None:
        """Apply persisted state on top of the current (usually fresh) trainer.

        Only fields present in the persisted state are applied. Recency
        windows are copied as given.
        """

        self.current_tile = None
        ab = self.trainer.ability_model
        dc = self.trainer.difficulty_controller

        st = _as_strategic(strategic)
        if st is not None:
            if st.theta is not None:
                ab.theta = float(st.theta)
            if st.total_trials is not None:
                ab.total_trials = int(st.total_trials)
            if st.target_entropy is not None:
                dc.target_entropy = float(st.target_entropy)
            if st.tse is not None:
                dc.tse = float(st.tse)
            if st.current_unique_colors is not None:
                dc.current_unique_colors = int(st.current_unique_colors)
            if st.integral is not None:
                dc.integral = float(st.integral)
            if st.match_rate is not None:
                dc.match_rate = float(st.match_rate)

        rc = _as_recency(recency)
        if rc is not None:
            if rc.trial_window is not None:
                ab.trial_window = list(rc.trial_window)
            if rc.theta_window is not None:
                ab.theta_window = [float(v) for v in rc.theta_window]
            if rc.rt_window is not None:
                ab.rt_window = [float(v) for v in rc.rt_window]
            if rc.step_hold_counter is not None:
                dc.step_hold_counter = int(rc.step_hold_counter)
            if rc.pending_unique_colors is not None:
                dc.pending_unique_colors = int(rc.pending_unique_colors)

        logger.info(
            "warm start n=%d theta=%.3f unique=%d (recency %s)",
            self.current_n,
            ab.theta,
            dc.current_unique_colors,
            "restored" if rc is not None else "dropped",
        )


def restore_engine(
    state: Mapping[str, Any] | None,
    *,
    n: int,
    palette: Sequence[PaletteColour] = DEFAULT_PALETTE,
    now_ms: int | None = None,
    away_threshold_ms: int = AWAY_THRESHOLD_MS,
    seed: int | None = None,
) -> NBackEngine | None:
    """Rebuild an engine from ``NBackEngine.to_json()`` output.

    Returns None when there is no state or it was saved for another level.
    Recency is dropped once the save is older than ``away_threshold_ms``.
    """

    if not state:
        return None
    saved_n = state.get("currentN")
    if saved_n != n:
        logger.info("discarding saved state for %s-back (selected %d-back)", saved_n, n)
        return None

    engine = NBackEngine(start_n=n, palette=palette, seed=seed)
    now = int(time.time() * 1000) if now_ms is None else int(now_ms)
    saved_at = state.get("savedAt")
    away = saved_at is None or now - int(saved_at) > away_threshold_ms

    strategic = state.get("strategic")
    recency = None if away else state.get("recency")
    engine.warm_start(strategic, recency)
    return engine
