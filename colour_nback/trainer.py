from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .ability import AbilityConfig, AbilityModel, AbilitySnapshot
from .cognitive_core import SeededRng
from .difficulty import DifficultyConfig, DifficultyController, DifficultySnapshot
from .matching import MatchGenerator, MatchStats
from .palette import GridPosition, PaletteColour, palette_names, playable_positions
from .sequence import SymbolSequenceGenerator
from .sprt import SequentialStopTest, SprtConfig, SprtStatus
from .working_memory import window_entropy

logger = logging.getLogger(__name__)

MIN_VALID_RT_MS = 150.0
MAX_VALID_RT_MS = 5000.0


@dataclass(frozen=True, slots=True)
class Tile:
    symbol: str
    position: GridPosition
    is_match: bool
    current_load: int
    target_load: int
    target_unique_colors: int
    trial_number: int


@dataclass(frozen=True, slots=True)
class ResponseResult:
    correct: bool
    was_match: bool
    feedback: str
    is_valid: bool


@dataclass(frozen=True, slots=True)
class TrainerStats:
    n: int
    trial_number: int
    current_load: int
    window_entropy: float
    ability: AbilitySnapshot
    difficulty: DifficultySnapshot
    sprt: SprtStatus
    matching: MatchStats


def is_valid_reaction_time(reaction_time_ms: float) -> bool:
    # < 150 ms is an accidental press, > 5 s means the player disengaged.
    return MIN_VALID_RT_MS <= reaction_time_ms <= MAX_VALID_RT_MS


def feedback_for(correct: bool, was_match: bool) -> str:
    if correct and was_match:
        return "Correct match!"
    if correct:
        return "Correct - no match"
    if was_match:
        return "Missed a match"
    return "False positive"


class WorkingMemoryTrainer:
    """Owns every per-session component and runs the per-trial pipeline."""

    def __init__(
        self,
        n: int,
        palette: Sequence[PaletteColour],
        *,
        rng: SeededRng,
        ability_config: AbilityConfig | None = None,
        difficulty_config: DifficultyConfig | None = None,
        sprt_config: SprtConfig | None = None,
    ) -> None:
        if n < 1:
            raise ValueError("n must be >= 1")
        self.n = int(n)
        self.palette = tuple(palette)
        self._symbols = palette_names(self.palette)
        self._rng = rng
        self._ability_config = ability_config
        self._difficulty_config = difficulty_config
        self._sprt_config = sprt_config

        self.ability_model = AbilityModel(ability_config)
        self.sprt = SequentialStopTest(sprt_config)
        self.excluded_positions: list[GridPosition] = []
        self._init_round_state()

    def _init_round_state(self) -> None:
        self.difficulty_controller = DifficultyController(self.n, self._difficulty_config)
        self.sequence_generator = SymbolSequenceGenerator(self.n, self._symbols, self._rng)
        self.match_generator = MatchGenerator(self._rng, self.difficulty_controller.get_match_rate())
        self.trial_number = 0
        self.current_tile: Tile | None = None

    def set_excluded_positions(self, positions: Iterable[GridPosition] | None) -> None:
        excluded = list(positions or [])
        if not playable_positions(excluded):
            raise ValueError("excluded positions leave no playable grid cell")
        self.excluded_positions = excluded

    def generate_next_trial(self) -> Tile:
        controller = self.difficulty_controller
        self.match_generator.set_target_rate(controller.get_match_rate())
        target_unique = controller.get_target_unique_colors()

        memory_state = self.sequence_generator.get_memory_state()
        decision = self.match_generator.should_create_match(memory_state)
        n_back = self.match_generator.get_n_back_symbol(memory_state)

        symbol = self.sequence_generator.generate_next_color(
            target_unique,
            decision.should_match,
            n_back,
            decision.is_forced,
            controller.tse,
        )
        self.sequence_generator.update_memory_state(symbol)

        # What was shown, not what was requested.
        is_match = n_back is not None and symbol == n_back
        self.match_generator.register_actual_match(is_match)

        self.current_tile = Tile(
            symbol=symbol,
            position=self._generate_position(),
            is_match=is_match,
            current_load=memory_state.current_load,
            target_load=target_unique,
            target_unique_colors=target_unique,
            trial_number=self.trial_number,
        )
        self.trial_number += 1
        return self.current_tile

    def _generate_position(self) -> GridPosition:
        return self._rng.choice(playable_positions(self.excluded_positions))

    def record_response(self, user_clicked: bool, was_match: bool, reaction_time_ms: float) -> ResponseResult:
        correct = bool(user_clicked) == bool(was_match)
        is_valid = is_valid_reaction_time(reaction_time_ms)

        if is_valid:
            self.ability_model.record_trial(was_match, user_clicked, reaction_time_ms)
            self.difficulty_controller.update(self.ability_model)
            self.sprt.record_trial(correct, was_match)
        else:
            logger.debug("rejected response with reaction time %.0f ms", reaction_time_ms)

        return ResponseResult(
            correct=correct,
            was_match=bool(was_match),
            feedback=feedback_for(correct, was_match),
            is_valid=is_valid,
        )

    def stats(self) -> TrainerStats:
        memory_state = self.sequence_generator.get_memory_state()
        return TrainerStats(
            n=self.n,
            trial_number=self.trial_number,
            current_load=memory_state.current_load,
            window_entropy=window_entropy(memory_state.recent_symbols),
            ability=self.ability_model.snapshot(),
            difficulty=self.difficulty_controller.snapshot(),
            sprt=self.sprt.status(),
            matching=self.match_generator.stats(),
        )

    def reset(self) -> None:
        self.ability_model.reset()
        self.sprt.reset()
        self._init_round_state()
