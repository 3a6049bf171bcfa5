"""Constraint-satisfying colour stream.

Every generated symbol is checked by simulating the trailing (n+1)-window
after insertion and counting its distinct symbols. Ordinary symbols must
hit the target load exactly; match symbols may hold or lower it. When no
candidate passes, ``force_repair`` returns a symbol deterministically, so
each call terminates without retry loops.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .cognitive_core import SeededRng
from .working_memory import WorkingMemoryState

logger = logging.getLogger(__name__)


class SymbolSequenceGenerator:
    def __init__(
        self,
        n: int,
        symbols: Sequence[str],
        rng: SeededRng,
        *,
        swap_probability: float = 0.7,
    ) -> None:
        if n < 1:
            raise ValueError("n must be >= 1")
        if len(set(symbols)) < n + 1:
            raise ValueError("palette must contain at least n + 1 distinct symbols")
        self.n = int(n)
        self.symbols: list[str] = list(dict.fromkeys(symbols))
        self.memory_state = WorkingMemoryState(n)
        self.active_set: list[str] | None = None
        self.last_target: int | None = None
        self.swap_probability = float(swap_probability)
        self._rng = rng

    # -- window simulation -------------------------------------------------

    def _simulated_load(self, window: Sequence[str], candidate: str) -> int:
        simulated = [*window, candidate][-(self.n + 1) :]
        return len(set(simulated))

    def is_valid_match_symbol(self, window: Sequence[str], candidate: str, target: int) -> bool:
        # A match evicts one symbol and replays one already present, so the
        # load can only stay at target or drop to target - 1.
        return self._simulated_load(window, candidate) <= target

    def is_valid_next_symbol(self, window: Sequence[str], candidate: str, target: int) -> bool:
        return self._simulated_load(window, candidate) == target

    def pick_with_constraint(self, window: Sequence[str], candidates: Sequence[str], target: int) -> str:
        valid = [c for c in candidates if self.is_valid_next_symbol(window, c, target)]
        if valid:
            return self._rng.choice(valid)
        return self.force_repair(window, target)

    def force_repair(self, window: Sequence[str], target: int) -> str:
        recent = list(window)[-(self.n + 1) :]
        present = list(dict.fromkeys(recent))

        if len(present) < target:
            missing = [s for s in self.symbols if s not in present]
            if missing:
                logger.debug("repair: introducing a new symbol (load %d < %d)", len(present), target)
                return self._rng.choice(missing)

        if not present:
            return self._rng.choice(self.symbols)
        logger.debug("repair: repeating %r (load %d, target %d)", present[0], len(present), target)
        return present[0]

    # -- generation ----------------------------------------------------------

    def generate_next_color(
        self,
        target_unique: int,
        should_match: bool,
        n_back_symbol: str | None,
        is_forced: bool = False,
        tse: float = 1.0,
    ) -> str:
        window = self.memory_state.recent_symbols
        target = max(2, int(target_unique))

        if self.last_target is not None and self.last_target != target:
            self.active_set = None
        self.last_target = target

        if should_match and n_back_symbol is not None:
            if is_forced:
                return n_back_symbol
            if self.is_valid_match_symbol(window, n_back_symbol, target):
                return n_back_symbol
            # Rejected matches fall through to an ordinary symbol.

        exclude = None if should_match else n_back_symbol

        if tse < 1.0 and window:
            last = window[-1]
            if last != exclude:
                repeat_probability = (1.0 - 1.0 / (self.n + 1)) * (1.0 - tse)
                if self._rng.random() < repeat_probability and self.is_valid_next_symbol(window, last, target):
                    return last

        if target == 2:
            return self._generate_for_min_load(window, exclude, target)
        if target == self.n + 1:
            return self._generate_for_max_load(window, exclude, target)
        return self._generate_for_mid_load(window, exclude, target)

    def _unused_symbols(self, window: Sequence[str], exclude: str | None) -> list[str]:
        present = set(window)
        return [s for s in self.symbols if s not in present and s != exclude]

    def _try_swap(self, window: Sequence[str], kept: list[str], target: int) -> str | None:
        assert self.active_set is not None
        replacements = [
            s
            for s in self.symbols
            if s not in self.active_set and self.is_valid_next_symbol(window, s, target)
        ]
        if not replacements:
            return None
        replacement = self._rng.choice(replacements)
        self.active_set = [*kept, replacement]
        return replacement

    def _stay_in_active_set(self, window: Sequence[str], exclude: str | None, target: int) -> str:
        assert self.active_set is not None
        candidates = [s for s in self.active_set if s != exclude]
        return self.pick_with_constraint(window, candidates, target)

    def _generate_for_min_load(self, window: Sequence[str], exclude: str | None, target: int) -> str:
        present = list(dict.fromkeys(window))

        if len(present) < 2:
            candidates = self._unused_symbols(window, exclude)
            if candidates:
                new_symbol = self.pick_with_constraint(window, candidates, target)
                self.active_set = [present[0], new_symbol] if present else [new_symbol]
                return new_symbol

        if self.active_set is None or len(self.active_set) != 2:
            self.active_set = present[:2]

        if self.active_set and self._rng.random() < self.swap_probability:
            keep = self._rng.choice(self.active_set)
            swapped = self._try_swap(window, [keep], target)
            if swapped is not None:
                return swapped

        return self._stay_in_active_set(window, exclude, target)

    def _generate_for_max_load(self, window: Sequence[str], exclude: str | None, target: int) -> str:
        return self.pick_with_constraint(window, self._unused_symbols(window, exclude), target)

    def _generate_for_mid_load(self, window: Sequence[str], exclude: str | None, target: int) -> str:
        present = list(dict.fromkeys(window))

        if len(present) < target:
            candidates = self._unused_symbols(window, exclude)
            if candidates:
                new_symbol = self.pick_with_constraint(window, candidates, target)
                if self.active_set is None:
                    self.active_set = [*present, new_symbol]
                else:
                    self.active_set = list(dict.fromkeys([*self.active_set, new_symbol]))[:target]
                return new_symbol

        if self.active_set is None or len(self.active_set) != target:
            self.active_set = present[:target]

        if self.active_set and self._rng.random() < self.swap_probability:
            drop_index = self._rng.randint(0, len(self.active_set) - 1)
            kept = [s for i, s in enumerate(self.active_set) if i != drop_index]
            swapped = self._try_swap(window, kept, target)
            if swapped is not None:
                return swapped

        return self._stay_in_active_set(window, exclude, target)

    def update_memory_state(self, symbol: str) -> None:
        self.memory_state.add_symbol(symbol)

    def get_memory_state(self) -> WorkingMemoryState:
        return self.memory_state
