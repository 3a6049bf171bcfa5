from __future__ import annotations

import math
from collections.abc import Sequence


class WorkingMemoryState:
    """Sliding window of the last n+1 presented symbols.

    ``current_load`` is the number of distinct symbols in the window and is
    recomputed on every insertion.
    """

    def __init__(self, n: int) -> None:
        if n < 1:
            raise ValueError("n must be >= 1")
        self.n = int(n)
        self.recent_symbols: list[str] = []
        self.current_load = 0

    @property
    def window_size(self) -> int:
        return self.n + 1

    def add_symbol(self, symbol: str) -> None:
        self.recent_symbols.append(symbol)
        if len(self.recent_symbols) > self.window_size:
            del self.recent_symbols[0]
        self.current_load = len(set(self.recent_symbols))

    def get_recent_symbols(self) -> list[str]:
        return list(self.recent_symbols)

    def n_back_symbol(self) -> str | None:
        """Symbol the next stimulus would have to repeat to be a match."""

        if len(self.recent_symbols) < self.n:
            return None
        return self.recent_symbols[len(self.recent_symbols) - self.n]


def window_entropy(window: Sequence[str]) -> float:
    """Shannon entropy (bits) of the symbol distribution in ``window``."""

    if not window:
        return 0.0
    counts: dict[str, int] = {}
    for symbol in window:
        counts[symbol] = counts.get(symbol, 0) + 1
    total = float(len(window))
    entropy = 0.0
    for count in counts.values():
        p = count / total
        entropy -= p * math.log2(p)
    return entropy
