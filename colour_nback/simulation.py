from __future__ import annotations

from dataclasses import dataclass

from .clock import ManualClock
from .cognitive_core import SeededRng
from .engine import NBackEngine
from .results import RoundResult, round_result_from_round
from .round import NBackRound, RoundConfig
from .trainer import Tile

BASE_INTERVAL_S = 2.5


@dataclass(frozen=True, slots=True)
class PlayerProfile:
    hit_rate: float = 1.0
    false_alarm_rate: float = 0.0
    min_delay_s: float = 0.4
    max_delay_s: float = 0.6


class AutopilotPlayer:
    """Scripted player: presses on matches (and sometimes on non-matches)."""

    def __init__(self, *, seed: int, profile: PlayerProfile | None = None) -> None:
        self._rng = SeededRng(seed)
        self._profile = profile or PlayerProfile()

    def press_delay_s(self, tile: Tile) -> float | None:
        """Seconds after onset to press, or None to let the tile pass."""

        p = self._profile
        chance = p.hit_rate if tile.is_match else p.false_alarm_rate
        if self._rng.random() >= chance:
            return None
        return self._rng.uniform(p.min_delay_s, p.max_delay_s)


def run_simulated_round(
    engine: NBackEngine,
    player: AutopilotPlayer,
    *,
    config: RoundConfig | None = None,
    clock: ManualClock | None = None,
) -> RoundResult:
    """Play one full round against ``engine`` on a manual clock."""

    clock = clock or ManualClock()
    game = NBackRound(engine=engine, clock=clock, config=config)
    tile = game.start()
    while tile is not None:
        interval_s = BASE_INTERVAL_S * game.stimulus_interval()
        delay = player.press_delay_s(tile)
        if delay is not None and delay < interval_s:
            clock.advance(delay)
            game.click()
            clock.advance(interval_s - delay)
        else:
            clock.advance(interval_s)
        tile = game.next_stimulus()
    return round_result_from_round(game)
