"""CLI entry point: ``python -m colour_nback --n 2 --rounds 3``.

Plays simulated rounds against the adaptive engine and prints what the
engine decided along the way.
"""

from __future__ import annotations

import argparse
import json
import logging
import os

from .cognitive_core import new_seed
from .engine import NBackEngine
from .progression import LevelProgress
from .results import RoundResult
from .simulation import AutopilotPlayer, PlayerProfile, run_simulated_round

LOG_LEVEL_ENV = "COLOUR_NBACK_LOG_LEVEL"
SEED_ENV = "COLOUR_NBACK_SEED"


def _print_round(index: int, result: RoundResult) -> None:
    mean_rt = "n/a" if result.mean_rt_ms is None else f"{result.mean_rt_ms:.0f} ms"
    reason = "-" if result.stop_reason is None else result.stop_reason.value
    print(
        f"round {index}: trials={result.trials_shown} targets={result.targets} "
        f"hits={result.hits} misses={result.misses} fa={result.false_alarms} "
        f"accuracy={result.accuracy_pct}% load={result.average_load:.1f} "
        f"mean_rt={mean_rt} end={reason}"
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Adaptive colour n-back engine (simulated play)")
    parser.add_argument("--n", type=int, default=2, help="n-back level")
    parser.add_argument("--rounds", type=int, default=1, help="rounds to play")
    parser.add_argument("--seed", type=int, default=None, help="engine seed")
    parser.add_argument("--hit-rate", type=float, default=0.9, help="simulated press probability on matches")
    parser.add_argument("--false-alarm-rate", type=float, default=0.05, help="press probability on non-matches")
    parser.add_argument("--json", action="store_true", help="dump the persisted engine state at the end")
    parser.add_argument("--log-level", default=os.environ.get(LOG_LEVEL_ENV, "WARNING"))
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    seed = args.seed
    if seed is None:
        env_seed = os.environ.get(SEED_ENV, "").strip()
        seed = int(env_seed) if env_seed else new_seed()

    engine = NBackEngine(start_n=args.n, seed=seed)
    player = AutopilotPlayer(
        seed=seed + 1,
        profile=PlayerProfile(hit_rate=args.hit_rate, false_alarm_rate=args.false_alarm_rate),
    )
    progress = LevelProgress()

    print(f"{args.n}-back, seed {seed}")
    for i in range(1, args.rounds + 1):
        result = run_simulated_round(engine, player)
        _print_round(i, result)
        if progress.record_round(result):
            print(f"level {progress.highest_unlocked} unlocked")

    stats = engine.get_stats()
    wm = stats.working_memory
    print(
        f"theta={stats.theta:.3f} trend={stats.theta_trend:+.4f} flow={stats.flow_score:.2f} "
        f"fatigue={stats.fatigue_index:.2f}"
    )
    print(
        f"unique colours={wm.target_unique_colors}/{wm.max_unique_colors} entropy={stats.target_entropy:.2f} "
        f"tse={stats.tse:.2f} match_rate={stats.match_rate:.2f} speed={stats.stimulus_interval:.2f}"
    )

    if args.json:
        print(json.dumps(engine.to_json(), indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
