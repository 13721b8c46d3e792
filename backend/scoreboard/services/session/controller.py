"""Session state machine tying the grid, undo log, win check and persistence together."""

import copy
import logging
import threading
import time
from concurrent.futures import Future
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from . import grid as grid_model
from . import move_log as log_model
from . import win
from .errors import InvariantViolation, SessionAlreadyCompleted
from .grid import ROW_LABELS, Grid
from .move_log import Move, MoveLog
from .persistence import PersistenceCoordinator
from .records import GameRecord, new_session_id
from .store import COMPLETED as COMPLETED_KEY

ACTIVE = 'active'
COMPLETED = 'completed'

Navigator = Callable[[str, Dict[str, Any]], None]


def _resolved(value: bool = True) -> Future:
    future: Future = Future()
    future.set_result(value)
    return future


def _call_now(fn: Callable[[], None]) -> None:
    fn()


class SessionController:
    """State machine for one live scoreboard session.

    ``ACTIVE`` accepts tap/undo/reset; ``COMPLETED`` is terminal and rejects
    all three. Grid and log changes happen synchronously; persistence goes
    through the coordinator's write queue and is tracked as futures.

    Collaborators:
      - navigator(screen, params): asks the client to show another screen
      - defer(fn): runs fn after the current event has been handled
      - clock(): returns the datetime stamped on saved records
    """

    def __init__(
        self,
        game_name: str,
        players: Sequence[str],
        coordinator: PersistenceCoordinator,
        grid: Optional[Grid] = None,
        move_log: Optional[MoveLog] = None,
        session_id: Optional[str] = None,
        navigator: Optional[Navigator] = None,
        defer: Optional[Callable[[Callable[[], None]], None]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        logger=None,
        adopt_snapshot: Optional[list] = None,
        date_format: str = '%m/%d/%Y',
        time_format: str = '%I:%M:%S %p',
    ) -> None:
        self.game_name = game_name
        self.players: List[str] = list(players)
        self.coordinator = coordinator
        self.session_id = session_id or new_session_id()
        self.grid: Grid = grid if grid is not None else grid_model.create(ROW_LABELS, len(self.players))
        self.move_log: MoveLog = list(move_log or [])
        self.status = ACTIVE
        self.winner: Optional[str] = None
        self.dirty = False
        self.date_format = date_format
        self.time_format = time_format
        self.logger = logger or logging.getLogger(__name__)
        self.navigator = navigator or (lambda screen, params: None)
        self._defer = defer or _call_now
        self._clock = clock or datetime.now
        # Grid of a pre-id record this session was resumed from; used once to replace it.
        self._adopt_snapshot = adopt_snapshot
        self._pending: Optional[Future] = None
        self._listeners: List[Callable[['SessionController'], None]] = []
        # Held from a mutation through its snapshot and queue submit so writes land in mutation order
        self._lock = threading.RLock()
        self.touched_at = time.monotonic()

    # ---- construction from the inbound payload ----

    @staticmethod
    def _restore(raw_grid: Any, raw_log: Any, player_count: int) -> Tuple[Grid, MoveLog]:
        if raw_grid is None:
            if raw_log:
                raise InvariantViolation('move log has no grid to apply to')
            restored = grid_model.create(ROW_LABELS, player_count)
        else:
            restored = grid_model.from_snapshot(raw_grid)
        grid_model.validate(restored, player_count)
        log = log_model.from_snapshot(raw_log if raw_log is not None else [], len(ROW_LABELS), player_count)
        return restored, log

    @classmethod
    def start(cls, params: Dict[str, Any], coordinator: PersistenceCoordinator, **kwargs) -> 'SessionController':
        """Build a session from ``{gameName, players, grid?, moveLog?, sessionId?}``.

        A payload carrying ``grid`` or ``moveLog`` (``history`` in stored
        records) resumes that state. A resume payload that does not fit the
        player list is logged and replaced with a fresh board.

        Raises SessionAlreadyCompleted for a payload that has a winner or
        whose ``sessionId`` is already in the completed collection.
        """
        logger = kwargs.get('logger') or logging.getLogger(__name__)
        game_name = params.get('gameName') or 'Game'
        players = list(params.get('players') or ['Player 1', 'Player 2'])
        session_id = params.get('sessionId') or None
        if params.get('winner'):
            raise SessionAlreadyCompleted(f'session {session_id} already has a winner')
        if session_id is not None and any(
            r.session_id == session_id for r in coordinator.load_collection(COMPLETED_KEY)
        ):
            raise SessionAlreadyCompleted(f'session {session_id} is already completed')
        raw_grid = params.get('grid')
        raw_log = params.get('moveLog', params.get('history'))

        restored_grid: Optional[Grid] = None
        restored_log: Optional[MoveLog] = None
        adopt = None
        if raw_grid is not None or raw_log is not None:
            if session_id is None and raw_grid is not None:
                adopt = copy.deepcopy(raw_grid)
            try:
                restored_grid, restored_log = cls._restore(raw_grid, raw_log, len(players))
            except InvariantViolation as exc:
                logger.warning(f"[resume-invalid] session={session_id} using a fresh grid: {exc}")
            else:
                full = win.completed_columns(restored_grid)
                if full:
                    logger.warning(
                        f"[resume-complete-column] session={session_id} columns={full} "
                        "not declared until the next tap on that column"
                    )

        return cls(
            game_name,
            players,
            coordinator,
            grid=restored_grid,
            move_log=restored_log,
            session_id=session_id,
            adopt_snapshot=adopt,
            **kwargs,
        )

    # ---- observers ----

    def subscribe(self, listener: Callable[['SessionController'], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                self.logger.exception(f"[listener-failed] session={self.session_id}")

    # ---- persistence ----

    def record(self) -> GameRecord:
        now = self._clock()
        return GameRecord(
            game_name=self.game_name,
            players=list(self.players),
            grid=grid_model.snapshot(self.grid),
            history=log_model.snapshot(self.move_log),
            date=now.strftime(self.date_format),
            time=now.strftime(self.time_format),
            winner=self.winner,
            session_id=self.session_id,
        )

    def _take_adopt_snapshot(self) -> Optional[list]:
        snapshot, self._adopt_snapshot = self._adopt_snapshot, None
        return snapshot

    def _track(self, future: Future) -> Future:
        self._pending = future
        self.dirty = False

        def _settled(f: Future) -> None:
            if not f.result() and self.status == ACTIVE:
                self.dirty = True

        future.add_done_callback(_settled)
        return future

    def _save(self) -> Future:
        future = self.coordinator.upsert_in_progress(self.record(), self._take_adopt_snapshot())
        return self._track(future)

    def _complete(self, name: str) -> None:
        self.status = COMPLETED
        self.winner = name
        self.dirty = False
        record = self.record()
        self._pending = self.coordinator.move_to_completed(record, name, self._take_adopt_snapshot())
        self.logger.info(f"[win] session={self.session_id} winner={name}")
        params = {'playerName': name, 'date': record.date}
        self._defer(lambda: self.navigator('winner', params))

    # ---- events ----

    def tap(self, row: int, col: int) -> bool:
        with self._lock:
            if self.status == COMPLETED:
                return False
            self.grid, previous = grid_model.tap(self.grid, row, col)
            self.move_log = log_model.record(self.move_log, Move(row, col, previous))
            self.dirty = True
            self.touched_at = time.monotonic()
            name = win.winner(self.grid, col, self.players)
            if name is not None:
                self._complete(name)
            else:
                self._save()
        self._notify()
        return True

    def undo(self) -> bool:
        with self._lock:
            if self.status == COMPLETED:
                return False
            move, remaining = log_model.undo_last(self.move_log)
            if move is None:
                return False
            self.move_log = remaining
            self.grid = grid_model.set_taps(self.grid, move.row, move.col, move.previous_taps)
            self.dirty = True
            self.touched_at = time.monotonic()
            self._save()
        self._notify()
        return True

    def reset(self) -> bool:
        """Clear the board. The caller is responsible for asking the player first."""
        with self._lock:
            if self.status == COMPLETED:
                return False
            self.grid = grid_model.reset(ROW_LABELS, len(self.players))
            self.move_log = log_model.clear()
            self.dirty = True
            self.touched_at = time.monotonic()
            self._track(self.coordinator.save_reset(self.record(), self._take_adopt_snapshot()))
        self._notify()
        return True

    def before_close(self) -> Future:
        """Flush outstanding state before the client leaves this session.

        The returned future settles once the last write for this session
        has landed or been abandoned; navigation should wait on it.
        """
        with self._lock:
            if self.status == ACTIVE and self.dirty:
                return self._save()
            if self._pending is not None:
                return self._pending
        return _resolved(True)

    def request_navigation(self, screen: str, params: Optional[Dict[str, Any]] = None) -> None:
        self.navigator(screen, dict(params or {}))

    # ---- views ----

    @property
    def can_undo(self) -> bool:
        return self.status == ACTIVE and bool(self.move_log)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sessionId': self.session_id,
            'gameName': self.game_name,
            'players': list(self.players),
            'rows': list(ROW_LABELS),
            'grid': [list(r) for r in self.grid],
            'symbols': grid_model.symbols(self.grid),
            'moveCount': len(self.move_log),
            'canUndo': self.can_undo,
            'status': self.status,
            'winner': self.winner,
        }
