from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum


class SprtDecision(str, Enum):
    CONTINUE = "continue"
    STOP = "stop"


@dataclass(frozen=True, slots=True)
class SprtConfig:
    theta_acceptable: float = 1.5
    theta_poor: float = 0.8
    alpha: float = 0.05
    beta: float = 0.10
    target_offset: float = 0.5
    non_target_offset: float = 0.2
    slope: float = 1.5
    min_trials: int = 8


@dataclass(frozen=True, slots=True)
class SprtStatus:
    log_lr: float
    stop_bound: float
    accept_bound: float
    decision: SprtDecision
    trials_recorded: int


class SequentialStopTest:
    """Wald SPRT deciding whether a session should end for poor performance.

    H0 is the acceptable ability level, H1 the poor one. ``log_lr``
    accumulates log(P(outcome | H1) / P(outcome | H0)); errors push it up,
    correct answers push it down. Reaching the lower bound clears the
    evidence and keeps monitoring.
    """

    def __init__(self, config: SprtConfig | None = None) -> None:
        cfg = config or SprtConfig()
        self._cfg = cfg
        self.stop_bound = math.log((1.0 - cfg.beta) / cfg.alpha)
        self.accept_bound = math.log(cfg.beta / (1.0 - cfg.alpha))
        self.log_lr = 0.0
        self.decision = SprtDecision.CONTINUE
        self.trials_recorded = 0

    def theta_to_accuracy(self, theta: float, is_target: bool) -> float:
        cfg = self._cfg
        offset = cfg.target_offset if is_target else cfg.non_target_offset
        return 1.0 / (1.0 + math.exp(-(theta - offset) * cfg.slope))

    def record_trial(self, correct: bool, was_match: bool) -> SprtDecision:
        cfg = self._cfg
        self.trials_recorded += 1

        p0 = self.theta_to_accuracy(cfg.theta_acceptable, was_match)
        p1 = self.theta_to_accuracy(cfg.theta_poor, was_match)
        observed0 = p0 if correct else 1.0 - p0
        observed1 = p1 if correct else 1.0 - p1
        if observed0 > 0 and observed1 > 0:
            self.log_lr += math.log(observed1 / observed0)

        if self.log_lr >= self.stop_bound:
            self.decision = SprtDecision.STOP
        elif self.log_lr <= self.accept_bound:
            self.decision = SprtDecision.CONTINUE
            self.log_lr = 0.0

        return self.decision

    def should_stop(self) -> bool:
        if self.trials_recorded < self._cfg.min_trials:
            return False
        return self.decision is SprtDecision.STOP

    def status(self) -> SprtStatus:
        return SprtStatus(
            log_lr=self.log_lr,
            stop_bound=self.stop_bound,
            accept_bound=self.accept_bound,
            decision=self.decision,
            trials_recorded=self.trials_recorded,
        )

    def reset(self) -> None:
        self.log_lr = 0.0
        self.decision = SprtDecision.CONTINUE
        self.trials_recorded = 0
