"""Scoreboard session core: grid, undo log, win check, persistence, state machine.

Only SqlRecordStore reaches the database; the app layer injects the
record store, navigator and logger.
"""

from .controller import ACTIVE, COMPLETED, SessionController
from .errors import (
    InvariantViolation,
    ParseError,
    ScoreboardError,
    SessionAlreadyCompleted,
    StoreReadError,
    StoreWriteError,
)
from .persistence import PersistenceCoordinator
from .records import GameRecord
from .store import COMPLETED as COMPLETED_KEY
from .store import IN_PROGRESS as IN_PROGRESS_KEY
from .store import MemoryRecordStore, SqlRecordStore
