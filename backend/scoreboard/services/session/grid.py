"""Score grid: rows are the fixed cricket categories, columns are players.

Grids are plain ``list[list[int]]`` values (row-major tap counts). Every
function here returns a new grid and leaves its input untouched, so a
caller can keep the previous grid around for comparison.
"""

from typing import Any, List, Sequence, Tuple

from .errors import InvariantViolation

ROW_LABELS: Tuple[str, ...] = ('20', '19', '18', '17', '16', '15', 'Bull')
MAX_TAPS = 3
SYMBOLS = {0: '', 1: '/', 2: 'X', 3: 'Ⓧ'}

Grid = List[List[int]]


def create(row_labels: Sequence[str], player_count: int) -> Grid:
    return [[0] * player_count for _ in row_labels]


def reset(row_labels: Sequence[str], player_count: int) -> Grid:
    return create(row_labels, player_count)


def _check_coords(grid: Grid, row: int, col: int) -> None:
    if not (0 <= row < len(grid)) or not grid or not (0 <= col < len(grid[0])):
        raise IndexError(f'cell ({row}, {col}) is outside the grid')


def tap(grid: Grid, row: int, col: int) -> Tuple[Grid, int]:
    """Add one mark to a cell, capped at ``MAX_TAPS``.

    Returns the new grid and the cell's previous tap count. Tapping a cell
    that is already at the cap returns an identical grid and
    ``previous_taps == MAX_TAPS``.
    """
    _check_coords(grid, row, col)
    previous = grid[row][col]
    new_grid = [list(r) for r in grid]
    new_grid[row][col] = min(previous + 1, MAX_TAPS)
    return new_grid, previous


def set_taps(grid: Grid, row: int, col: int, taps: int) -> Grid:
    _check_coords(grid, row, col)
    if not (0 <= taps <= MAX_TAPS):
        raise ValueError(f'taps must be between 0 and {MAX_TAPS}, got {taps}')
    new_grid = [list(r) for r in grid]
    new_grid[row][col] = taps
    return new_grid


def symbol(taps: int) -> str:
    return SYMBOLS.get(taps, '')


def symbols(grid: Grid) -> List[List[str]]:
    return [[symbol(t) for t in r] for r in grid]


def snapshot(grid: Grid) -> List[List[dict]]:
    """Structural copy in the stored layout: ``[[{"taps": n}, ...], ...]``."""
    return [[{'taps': t} for t in r] for r in grid]


def from_snapshot(data: Any) -> Grid:
    if not isinstance(data, list):
        raise InvariantViolation('grid snapshot must be a list of rows')
    grid: Grid = []
    for r in data:
        if not isinstance(r, list):
            raise InvariantViolation('grid row must be a list of cells')
        row = []
        for cell in r:
            taps = cell.get('taps') if isinstance(cell, dict) else cell
            # bool is an int subclass; a stray true/false is not a tap count
            if not isinstance(taps, int) or isinstance(taps, bool):
                raise InvariantViolation(f'cell taps must be an integer, got {taps!r}')
            row.append(taps)
        grid.append(row)
    return grid


def validate(grid: Grid, player_count: int, row_count: int = len(ROW_LABELS)) -> None:
    if len(grid) != row_count:
        raise InvariantViolation(f'grid has {len(grid)} rows, expected {row_count}')
    for idx, r in enumerate(grid):
        if len(r) != player_count:
            raise InvariantViolation(
                f'grid row {idx} has {len(r)} columns, expected {player_count}'
            )
        for taps in r:
            if not (0 <= taps <= MAX_TAPS):
                raise InvariantViolation(f'cell taps {taps} outside 0..{MAX_TAPS}')
