from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from .clock import Clock, ReactionTimer, RealClock
from .cognitive_core import Phase
from .engine import NBackEngine
from .palette import GridPosition
from .trainer import ResponseResult, Tile

logger = logging.getLogger(__name__)


class StopReason(str, Enum):
    COMPLETED = "completed"
    POOR_PERFORMANCE = "poor_performance"
    ERROR_RATE = "error_rate"
    USER = "user"


@dataclass(frozen=True, slots=True)
class RoundConfig:
    max_trials: int = 40
    min_trials_before_stop: int = 10
    error_window: int = 10
    error_threshold: int = 5
    non_response_rt_ms: float = 2500.0


@dataclass(slots=True)
class Trial:
    """One presented stimulus. Response fields are filled exactly once."""

    symbol: str
    position: GridPosition
    timestamp: float
    n: int
    current_load: int
    target_load: int
    was_match: bool | None = None
    user_clicked: bool | None = None
    correct: bool | None = None
    reaction_time_ms: float | None = None
    is_valid: bool | None = None

    @property
    def responded(self) -> bool:
        return self.was_match is not None


class NBackRound:
    """One round of play: owns the trial list and the stop checks.

    The caller drives it from its own timer: ``next_stimulus()`` once per
    stimulus interval and ``click()`` whenever the player presses the match
    button. Non-responses are recorded when the next stimulus is requested.
    """

    def __init__(
        self, *, engine: NBackEngine, clock: Clock | None = None, config: RoundConfig | None = None
    ) -> None:
        cfg = config or RoundConfig()
        if cfg.max_trials <= 0:
            raise ValueError("max_trials must be > 0")
        if cfg.error_threshold <= 0:
            raise ValueError("error_threshold must be > 0")
        self._engine = engine
        self._clock = clock or RealClock()
        self._cfg = cfg
        self._timer = ReactionTimer(self._clock)

        self._phase = Phase.INSTRUCTIONS
        self._trials: list[Trial] = []
        self._current_tile: Tile | None = None
        self._stop_reason: StopReason | None = None

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def n(self) -> int:
        return self._engine.get_current_n()

    @property
    def engine(self) -> NBackEngine:
        return self._engine

    @property
    def config(self) -> RoundConfig:
        return self._cfg

    @property
    def stop_reason(self) -> StopReason | None:
        return self._stop_reason

    @property
    def current_tile(self) -> Tile | None:
        return self._current_tile

    def trials(self) -> list[Trial]:
        return list(self._trials)

    def recent_trials(self, count: int) -> list[Trial]:
        return self._trials[-count:]

    def stimulus_interval(self) -> float:
        """Speed multiplier the caller applies to its display timings."""

        return self._engine.get_stats().stimulus_interval

    def start(self) -> Tile | None:
        if self._phase is not Phase.INSTRUCTIONS:
            return None
        self._phase = Phase.RUNNING
        self._timer.reset()
        return self._present()

    def next_stimulus(self) -> Tile | None:
        """Close the current trial and present the next one.

        Returns None once the round has ended.
        """

        if self._phase is not Phase.RUNNING:
            return None

        current = self._trials[-1] if self._trials else None
        if current is not None and not current.responded and self._is_scored(len(self._trials) - 1):
            self._respond(current, user_clicked=False, reaction_time_ms=self._cfg.non_response_rt_ms)

        reason = self._check_stop()
        if reason is not None:
            self.finish(reason)
            return None
        return self._present()

    def click(self) -> ResponseResult | None:
        """Register a match press on the current tile.

        Presses on the first ``n`` tiles and repeated presses are ignored.
        """

        if self._phase is not Phase.RUNNING or not self._trials:
            return None
        index = len(self._trials) - 1
        current = self._trials[index]
        if current.responded or not self._is_scored(index):
            return None
        return self._respond(current, user_clicked=True, reaction_time_ms=self._timer.record_response())

    def finish(self, reason: StopReason = StopReason.USER) -> None:
        if self._phase is Phase.RESULTS:
            return
        self._phase = Phase.RESULTS
        self._stop_reason = reason
        self._current_tile = None
        self._engine.clear_pending_tile()
        logger.info("round ended after %d trials (%s)", len(self._trials), reason.value)

    def _is_scored(self, index: int) -> bool:
        # The first n tiles have nothing to compare against.
        return index >= self.n

    def _present(self) -> Tile:
        tile = self._engine.generate_next_tile()
        self._current_tile = tile
        self._timer.start_trial()
        self._trials.append(
            Trial(
                symbol=tile.symbol,
                position=tile.position,
                timestamp=self._clock.now(),
                n=self.n,
                current_load=tile.current_load,
                target_load=tile.target_load,
            )
        )
        return tile

    def _respond(self, trial: Trial, *, user_clicked: bool, reaction_time_ms: float) -> ResponseResult:
        assert self._current_tile is not None
        was_match = self._current_tile.is_match
        result = self._engine.on_user_response(user_clicked, was_match, reaction_time_ms)
        trial.was_match = was_match
        trial.user_clicked = user_clicked
        trial.correct = result.correct
        trial.reaction_time_ms = reaction_time_ms
        trial.is_valid = result.is_valid
        return result

    def _check_stop(self) -> StopReason | None:
        cfg = self._cfg
        shown = len(self._trials)
        if shown >= cfg.min_trials_before_stop:
            if self._engine.should_stop_session():
                return StopReason.POOR_PERFORMANCE
            if self._engine.should_stop_for_errors(self.recent_trials(cfg.error_window), cfg.error_threshold):
                return StopReason.ERROR_RATE
        if shown >= cfg.max_trials:
            return StopReason.COMPLETED
        return None
