"""Stored game records and the camelCase dict format they are persisted in."""

import copy
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, List, Optional

from .errors import ParseError


def new_session_id() -> str:
    return uuid.uuid4().hex


@dataclass
class GameRecord:
    """A persisted snapshot of one session.

    ``grid`` and ``history`` hold the stored (JSON-ready) snapshots, not the
    live grid and move objects. ``session_id`` is ``None`` only for records
    written before sessions carried an identifier.
    """

    game_name: str
    players: List[str]
    grid: List[List[dict]]
    history: List[dict] = field(default_factory=list)
    date: str = ''
    time: str = ''
    winner: Optional[str] = None
    session_id: Optional[str] = None

    def with_winner(self, name: str) -> 'GameRecord':
        return replace(self, winner=name)

    def copy(self) -> 'GameRecord':
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        data = {
            'sessionId': self.session_id,
            'gameName': self.game_name,
            'players': list(self.players),
            'grid': copy.deepcopy(self.grid),
            'history': copy.deepcopy(self.history),
            'date': self.date,
            'time': self.time,
        }
        if self.winner is not None:
            data['winner'] = self.winner
        return data

    @classmethod
    def from_dict(cls, data: Any) -> 'GameRecord':
        if not isinstance(data, dict):
            raise ParseError(f'record must be an object, got {type(data).__name__}')
        name = data.get('gameName')
        players = data.get('players')
        grid = data.get('grid')
        if not isinstance(name, str):
            raise ParseError('record is missing gameName')
        if not isinstance(players, list) or not all(isinstance(p, str) for p in players):
            raise ParseError('record players must be a list of names')
        if not isinstance(grid, list):
            raise ParseError('record grid must be a list of rows')
        history = data.get('history')
        if history is None:
            history = data.get('moveLog') or []
        if not isinstance(history, list):
            raise ParseError('record history must be a list')
        session_id = data.get('sessionId')
        winner = data.get('winner')
        return cls(
            game_name=name,
            players=list(players),
            grid=copy.deepcopy(grid),
            history=copy.deepcopy(history),
            date=str(data.get('date') or ''),
            time=str(data.get('time') or ''),
            winner=winner if isinstance(winner, str) else None,
            session_id=session_id if isinstance(session_id, str) and session_id else None,
        )
