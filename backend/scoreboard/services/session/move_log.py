"""Undo log: one entry per tap, holding the cell and its tap count before the tap."""

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from .errors import InvariantViolation
from .grid import MAX_TAPS


@dataclass(frozen=True)
class Move:
    row: int
    col: int
    previous_taps: int

    def to_dict(self) -> dict:
        return {
            'rowIndex': self.row,
            'colIndex': self.col,
            'previousTaps': self.previous_taps,
        }


MoveLog = List[Move]


def record(log: MoveLog, move: Move) -> MoveLog:
    return [*log, move]


def undo_last(log: MoveLog) -> Tuple[Optional[Move], MoveLog]:
    if not log:
        return None, log
    return log[-1], log[:-1]


def clear() -> MoveLog:
    return []


def snapshot(log: MoveLog) -> List[dict]:
    return [m.to_dict() for m in log]


def _int_field(entry: dict, *names: str) -> int:
    for name in names:
        value = entry.get(name)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    raise InvariantViolation(f'move entry is missing {names[0]}: {entry!r}')


def from_snapshot(data: Any, row_count: int, col_count: int) -> MoveLog:
    """Rebuild a log from its stored form.

    Accepts both the stored keys (``rowIndex``/``colIndex``) and the short
    ``row``/``col`` form. Entries pointing outside the grid are rejected.
    """
    if not isinstance(data, list):
        raise InvariantViolation('move log snapshot must be a list')
    log: MoveLog = []
    for entry in data:
        if not isinstance(entry, dict):
            raise InvariantViolation(f'move entry must be an object, got {entry!r}')
        row = _int_field(entry, 'rowIndex', 'row')
        col = _int_field(entry, 'colIndex', 'col')
        previous = _int_field(entry, 'previousTaps')
        if not (0 <= row < row_count and 0 <= col < col_count):
            raise InvariantViolation(f'move ({row}, {col}) is outside the grid')
        if not (0 <= previous <= MAX_TAPS):
            raise InvariantViolation(f'move previousTaps {previous} outside 0..{MAX_TAPS}')
        log.append(Move(row, col, previous))
    return log
