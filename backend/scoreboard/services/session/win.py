"""Win check: a player wins once every cell of their column is fully marked."""

from typing import List, Optional, Sequence

from .grid import MAX_TAPS, Grid


def evaluate(grid: Grid, col: int) -> bool:
    """True when every cell in ``col`` is fully marked."""
    return bool(grid) and all(r[col] == MAX_TAPS for r in grid)


def winner(grid: Grid, col: int, players: Sequence[str]) -> Optional[str]:
    if evaluate(grid, col):
        return players[col]
    return None


def completed_columns(grid: Grid) -> List[int]:
    # Diagnostic only; a win is declared from the tapped column, never from a scan.
    if not grid:
        return []
    return [c for c in range(len(grid[0])) if evaluate(grid, c)]
