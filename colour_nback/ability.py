"""Rolling signal-detection ability estimate.

``theta`` is an EMA-smoothed d' computed from a window of recent
target / non-target outcomes. It is the single ability signal read by the
difficulty controller; fatigue and flow are derived views on top of it and
of the reaction-time window.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from .cognitive_core import clamp, clamp01

# Acklam's rational approximation of the inverse standard normal CDF.
_A = (
    -3.969683028665376e1,
    2.209460984245205e2,
    -2.759285104469687e2,
    1.383577518672690e2,
    -3.066479806614716e1,
    2.506628277459239e0,
)
_B = (
    -5.447609879822406e1,
    1.615858368580409e2,
    -1.556989798598866e2,
    6.680131188771972e1,
    -1.328068155288572e1,
)
_C = (
    -7.784894002430293e-3,
    -3.223964580411365e-1,
    -2.400758277161838e0,
    -2.549732539343734e0,
    4.374664141464968e0,
    2.938163982698783e0,
)
_D = (
    7.784695709041462e-3,
    3.224671290700398e-1,
    2.445134137142996e0,
    3.754408661907416e0,
)
_P_LOW = 0.02425
_P_HIGH = 1.0 - _P_LOW


def inverse_normal_cdf(p: float) -> float:
    """Approximate quantile of the standard normal for ``p`` in (0, 1)."""

    if not (0.0 < p < 1.0):
        raise ValueError("p must be in (0, 1)")
    a1, a2, a3, a4, a5, a6 = _A
    b1, b2, b3, b4, b5 = _B
    c1, c2, c3, c4, c5, c6 = _C
    d1, d2, d3, d4 = _D

    if p < _P_LOW:
        q = math.sqrt(-2.0 * math.log(p))
        return (((((c1 * q + c2) * q + c3) * q + c4) * q + c5) * q + c6) / (
            (((d1 * q + d2) * q + d3) * q + d4) * q + 1.0
        )
    if p <= _P_HIGH:
        q = p - 0.5
        r = q * q
        return (((((a1 * r + a2) * r + a3) * r + a4) * r + a5) * r + a6) * q / (
            ((((b1 * r + b2) * r + b3) * r + b4) * r + b5) * r + 1.0
        )
    q = math.sqrt(-2.0 * math.log(1.0 - p))
    return -(((((c1 * q + c2) * q + c3) * q + c4) * q + c5) * q + c6) / (
        (((d1 * q + d2) * q + d3) * q + d4) * q + 1.0
    )


def compute_d_prime(hit_rate: float, fa_rate: float) -> float:
    hit_rate = clamp(hit_rate, 0.01, 0.99)
    fa_rate = clamp(fa_rate, 0.01, 0.99)
    return inverse_normal_cdf(hit_rate) - inverse_normal_cdf(fa_rate)


@dataclass(frozen=True, slots=True)
class AbilityConfig:
    window_size: int = 30
    theta_prior: float = 1.5
    theta_alpha: float = 0.15
    theta_window_size: int = 20
    min_trend_samples: int = 5
    rt_window_size: int = 20


@dataclass(frozen=True, slots=True)
class TrialOutcome:
    was_match: bool
    user_clicked: bool


@dataclass(frozen=True, slots=True)
class RtStats:
    median: float
    p90: float
    cv: float


@dataclass(frozen=True, slots=True)
class SdtCounts:
    hits: int
    misses: int
    false_alarms: int
    correct_rejections: int


@dataclass(frozen=True, slots=True)
class AbilitySnapshot:
    theta: float
    theta_trend: float
    flow_score: float
    fatigue_index: float
    normalized_performance: float
    rt_median: float
    rt_p90: float
    rt_cv: float
    total_trials: int
    hits: int
    misses: int
    false_alarms: int
    correct_rejections: int


_DEFAULT_RT_STATS = RtStats(median=800.0, p90=1200.0, cv=0.2)


class AbilityModel:
    def __init__(self, config: AbilityConfig | None = None) -> None:
        self._cfg = config or AbilityConfig()
        self.trial_window: list[TrialOutcome] = []
        self.theta_window: list[float] = []
        self.rt_window: list[float] = []
        self.theta = float(self._cfg.theta_prior)
        self.total_trials = 0

    @property
    def config(self) -> AbilityConfig:
        return self._cfg

    def record_trial(self, was_match: bool, user_clicked: bool, reaction_time_ms: float) -> None:
        cfg = self._cfg
        self.total_trials += 1

        self.trial_window.append(TrialOutcome(was_match=bool(was_match), user_clicked=bool(user_clicked)))
        if len(self.trial_window) > cfg.window_size:
            del self.trial_window[0]

        counts = self.get_sdt_counts()
        targets = counts.hits + counts.misses
        non_targets = counts.false_alarms + counts.correct_rejections
        # +0.5 / +1 correction keeps sparse windows away from 0 and 1.
        hit_rate = (counts.hits + 0.5) / (targets + 1)
        fa_rate = (counts.false_alarms + 0.5) / (non_targets + 1)
        raw = compute_d_prime(hit_rate, fa_rate)

        self.theta = self.theta * (1.0 - cfg.theta_alpha) + raw * cfg.theta_alpha

        self.theta_window.append(self.theta)
        if len(self.theta_window) > cfg.theta_window_size:
            del self.theta_window[0]

        if reaction_time_ms > 0:
            self.rt_window.append(float(reaction_time_ms))
            # Buffer holds twice the stats window; stats read the tail only.
            if len(self.rt_window) > cfg.rt_window_size * 2:
                del self.rt_window[0]

    def get_sdt_counts(self) -> SdtCounts:
        hits = misses = false_alarms = correct_rejections = 0
        for t in self.trial_window:
            if t.was_match and t.user_clicked:
                hits += 1
            elif t.was_match:
                misses += 1
            elif t.user_clicked:
                false_alarms += 1
            else:
                correct_rejections += 1
        return SdtCounts(
            hits=hits,
            misses=misses,
            false_alarms=false_alarms,
            correct_rejections=correct_rejections,
        )

    def get_theta_trend(self) -> float:
        """OLS slope of the smoothed theta history (per trial)."""

        h = self.theta_window
        n = len(h)
        if n < self._cfg.min_trend_samples:
            return 0.0
        sum_x = sum_y = sum_xy = sum_x2 = 0.0
        for i, y in enumerate(h):
            sum_x += i
            sum_y += y
            sum_xy += i * y
            sum_x2 += i * i
        denom = n * sum_x2 - sum_x * sum_x
        if denom == 0:
            return 0.0
        return (n * sum_xy - sum_x * sum_y) / denom

    def get_rt_stats(self) -> RtStats:
        rts = self.rt_window[-self._cfg.rt_window_size :]
        if len(rts) < 3:
            return _DEFAULT_RT_STATS
        ordered = sorted(rts)
        med = ordered[len(ordered) // 2]
        p90 = ordered[int(math.floor(len(ordered) * 0.9))]
        avg = sum(rts) / len(rts)
        variance = sum((rt - avg) ** 2 for rt in rts) / len(rts)
        cv = math.sqrt(variance) / avg if avg > 0 else 0.0
        return RtStats(median=med, p90=p90, cv=cv)

    def get_fatigue_index(self) -> float:
        rt = self.get_rt_stats()
        trend = self.get_theta_trend()

        tail_ratio = rt.p90 / rt.median if rt.median > 0 else 1.0
        tail = max(0.0, (tail_ratio - 1.6) / 0.6)  # 0 at 1.6, 1 at 2.2
        variability = max(0.0, (rt.cv - 0.4) / 0.3)  # 0 at 0.4, 1 at 0.7
        decline = max(0.0, -trend * 10.0)

        return min(1.0, (tail + variability + decline) / 3.0)

    def get_flow_score(self) -> float:
        rt = self.get_rt_stats()
        trend = self.get_theta_trend()

        normalized_theta = clamp01(self.theta / 2.5)
        cv_bonus = clamp01(1.0 - max(0.0, rt.cv - 0.15) / 0.45)
        trend_bonus = clamp01(trend * 20.0)

        return min(1.0, normalized_theta * 0.55 + cv_bonus * 0.25 + trend_bonus * 0.20)

    def get_normalized_performance(self) -> float:
        return clamp01(0.3 + self.theta * 0.2)

    def snapshot(self) -> AbilitySnapshot:
        rt = self.get_rt_stats()
        sdt = self.get_sdt_counts()
        return AbilitySnapshot(
            theta=self.theta,
            theta_trend=self.get_theta_trend(),
            flow_score=self.get_flow_score(),
            fatigue_index=self.get_fatigue_index(),
            normalized_performance=self.get_normalized_performance(),
            rt_median=rt.median,
            rt_p90=rt.p90,
            rt_cv=rt.cv,
            total_trials=self.total_trials,
            hits=sdt.hits,
            misses=sdt.misses,
            false_alarms=sdt.false_alarms,
            correct_rejections=sdt.correct_rejections,
        )

    def reset(self) -> None:
        self.trial_window = []
        self.theta_window = []
        self.rt_window = []
        self.theta = float(self._cfg.theta_prior)
        self.total_trials = 0
