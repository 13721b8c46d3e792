"""Session state <-> the InProgress / Completed record collections.

Every write is a read-modify-write of a whole collection, so all write jobs
go through one single-worker executor: jobs run one at a time, in the order
they were submitted, across both collections and every session sharing the
coordinator. Callers get a ``Future[bool]`` back (True when the write landed,
False when it was abandoned after logging); nothing here raises to the caller.
"""

import copy
import json
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Optional

from .errors import ParseError, StoreReadError, StoreWriteError
from .records import GameRecord
from .store import COMPLETED, IN_PROGRESS, RecordStore


def _matches(stored: GameRecord, record: GameRecord, prior_snapshot: Optional[list]) -> bool:
    if record.session_id and stored.session_id == record.session_id:
        return True
    # Records saved before session ids existed can only be found by their grid.
    return (
        prior_snapshot is not None
        and stored.session_id is None
        and stored.grid == prior_snapshot
    )


class PersistenceCoordinator:

    def __init__(self, store: RecordStore, inline: bool = False, logger=None) -> None:
        self.store = store
        self.inline = inline
        self.logger = logger or logging.getLogger(__name__)
        self._executor = None if inline else ThreadPoolExecutor(
            max_workers=1, thread_name_prefix='scoreboard-persist'
        )

    # ---- reads ----

    def _read_records(self, name: str) -> List[GameRecord]:
        raw = self.store.read(name)
        if raw is None or raw == '':
            return []
        try:
            items = json.loads(raw)
        except ValueError as exc:
            raise ParseError(f'{name} is not valid JSON: {exc}') from exc
        if not isinstance(items, list):
            raise ParseError(f'{name} must hold a JSON array, got {type(items).__name__}')
        records = []
        for item in items:
            try:
                records.append(GameRecord.from_dict(item))
            except ParseError as exc:
                self.logger.warning(f"[parse-skip] collection={name} {exc}")
        return records

    def load_collection(self, name: str) -> List[GameRecord]:
        """Current records of a collection; empty when missing, unreadable or corrupt."""
        try:
            return self._read_records(name)
        except StoreReadError as exc:
            self.logger.error(f"[load-failed] collection={name} {exc}")
        except ParseError as exc:
            self.logger.error(f"[load-corrupt] collection={name} {exc}")
        return []

    def _load_for_write(self, name: str) -> List[GameRecord]:
        # A read failure propagates and abandons the job; corrupt contents are replaced.
        try:
            return self._read_records(name)
        except ParseError as exc:
            self.logger.warning(f"[load-corrupt] collection={name} replacing contents: {exc}")
            return []

    def _write(self, name: str, records: List[GameRecord]) -> None:
        payload = json.dumps([r.to_dict() for r in records], ensure_ascii=False)
        self.store.write(name, payload)

    # ---- job plumbing ----

    def _run(self, label: str, session_id: Optional[str], job: Callable[[], None]) -> bool:
        try:
            job()
            return True
        except StoreReadError as exc:
            self.logger.error(f"[{label}-abandoned] session={session_id} {exc}")
        except StoreWriteError as exc:
            self.logger.error(f"[{label}-failed] session={session_id} {exc}")
        except Exception:
            self.logger.exception(f"[{label}-failed] session={session_id} unexpected error")
        return False

    def _submit(self, label: str, session_id: Optional[str], job: Callable[[], None]) -> Future:
        if self._executor is None:
            future: Future = Future()
            future.set_result(self._run(label, session_id, job))
            return future
        return self._executor.submit(self._run, label, session_id, job)

    # ---- writes ----

    def _replace_in_progress(self, label: str, record: GameRecord, prior_snapshot) -> Future:
        record = record.copy()
        prior = copy.deepcopy(prior_snapshot)

        def job():
            records = self._load_for_write(IN_PROGRESS)
            kept = [r for r in records if not _matches(r, record, prior)]
            replaced = len(records) - len(kept)
            kept.append(record)
            self._write(IN_PROGRESS, kept)
            self.logger.info(
                f"[{label}] session={record.session_id} collection={IN_PROGRESS} replaced={replaced}"
            )

        return self._submit(label, record.session_id, job)

    def upsert_in_progress(self, record: GameRecord, prior_snapshot: Optional[list] = None) -> Future:
        return self._replace_in_progress('save', record, prior_snapshot)

    def save_reset(self, record: GameRecord, prior_snapshot: Optional[list] = None) -> Future:
        return self._replace_in_progress('reset', record, prior_snapshot)

    def move_to_completed(
        self,
        record: GameRecord,
        winner_name: str,
        prior_snapshot: Optional[list] = None,
    ) -> Future:
        """Append the won record to Completed, then drop it from InProgress."""
        done = record.with_winner(winner_name).copy()
        prior = copy.deepcopy(prior_snapshot)

        def job():
            completed = self._load_for_write(COMPLETED)
            completed = [
                r for r in completed
                if not (done.session_id and r.session_id == done.session_id)
            ]
            completed.append(done)
            self._write(COMPLETED, completed)

            in_progress = self._load_for_write(IN_PROGRESS)
            remaining = [r for r in in_progress if not _matches(r, done, prior)]
            self._write(IN_PROGRESS, remaining)
            self.logger.info(
                f"[complete] session={done.session_id} winner={winner_name} "
                f"removed_in_progress={len(in_progress) - len(remaining)}"
            )

        return self._submit('complete', done.session_id, job)

    def flush(self) -> Future:
        """Resolves once every job submitted before it has finished."""
        return self._submit('flush', None, lambda: None)

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
