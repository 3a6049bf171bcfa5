from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

GRID_ROWS = 3
GRID_COLS = 3


@dataclass(frozen=True, slots=True)
class PaletteColour:
    name: str
    rank: int
    hex: str = ""  # display only, the engine keys on name


@dataclass(frozen=True, slots=True)
class GridPosition:
    row: int
    col: int


DEFAULT_PALETTE: tuple[PaletteColour, ...] = (
    PaletteColour(name="blue", rank=1, hex="#0000FF"),
    PaletteColour(name="purple", rank=2, hex="#9D00FF"),
    PaletteColour(name="green", rank=3, hex="#23AE3A"),
    PaletteColour(name="yellow", rank=4, hex="#FFDE21"),
    PaletteColour(name="orange", rank=5, hex="#FFA500"),
    PaletteColour(name="brown", rank=6, hex="#895129"),
    PaletteColour(name="red", rank=7, hex="#CD1C18"),
    PaletteColour(name="black", rank=8, hex="#0C0A09"),
)


def palette_names(palette: Sequence[PaletteColour]) -> list[str]:
    """Ordered, de-duplicated symbol names of a palette."""

    names: list[str] = []
    for colour in palette:
        if colour.name not in names:
            names.append(colour.name)
    return names


def playable_positions(excluded: Iterable[GridPosition]) -> list[GridPosition]:
    blocked = {(p.row, p.col) for p in excluded}
    return [
        GridPosition(row=row, col=col)
        for row in range(GRID_ROWS)
        for col in range(GRID_COLS)
        if (row, col) not in blocked
    ]
