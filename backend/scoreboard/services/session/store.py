"""Key-value backends for the two persisted record collections.

A store only moves raw strings in and out. Parsing, record identity and
write ordering belong to :mod:`.persistence`.
"""

import threading
from typing import Dict, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError

from .errors import StoreReadError, StoreWriteError

IN_PROGRESS = 'inProgressGames'
COMPLETED = 'completedGames'
COLLECTIONS = (IN_PROGRESS, COMPLETED)


class RecordStore(Protocol):
    """Named string values, one per collection."""

    def read(self, name: str) -> Optional[str]:
        """Return the stored value, or None if nothing was ever written."""
        ...

    def write(self, name: str, payload: str) -> None:
        """Replace the stored value."""
        ...


class MemoryRecordStore:
    """Dict-backed store for tests and app-less use."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._values: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def read(self, name: str) -> Optional[str]:
        with self._lock:
            return self._values.get(name)

    def write(self, name: str, payload: str) -> None:
        with self._lock:
            self._values[name] = payload


class SqlRecordStore:
    """Store backed by the ``store_entry`` table.

    Every call pushes its own app context so it can run from the
    persistence worker thread as well as from a request.
    """

    def __init__(self, app) -> None:
        self.app = app

    def read(self, name: str) -> Optional[str]:
        from scoreboard import db
        from scoreboard.models import StoreEntry

        with self.app.app_context():
            try:
                entry = db.session.get(StoreEntry, name)
            except SQLAlchemyError as exc:
                raise StoreReadError(f'could not read {name}: {exc}') from exc
            return entry.value if entry else None

    def write(self, name: str, payload: str) -> None:
        from scoreboard import db
        from scoreboard.models import StoreEntry

        with self.app.app_context():
            try:
                entry = db.session.get(StoreEntry, name)
                if entry is None:
                    entry = StoreEntry(key=name, value=payload)
                else:
                    entry.value = payload
                db.session.add(entry)
                db.session.commit()
            except SQLAlchemyError as exc:
                db.session.rollback()
                raise StoreWriteError(f'could not write {name}: {exc}') from exc
