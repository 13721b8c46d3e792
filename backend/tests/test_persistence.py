import json
import threading
import time

from scoreboard.services.session import (
    COMPLETED_KEY,
    IN_PROGRESS_KEY,
    GameRecord,
    MemoryRecordStore,
    PersistenceCoordinator,
    StoreReadError,
    StoreWriteError,
)
from scoreboard.services.session import grid
from scoreboard.services.session.grid import ROW_LABELS


def _record(session_id='s1', taps=0, winner=None):
    g = grid.create(ROW_LABELS, 2)
    if taps:
        g = grid.set_taps(g, 0, 0, taps)
    return GameRecord(
        game_name='Friday',
        players=['A', 'B'],
        grid=grid.snapshot(g),
        history=[{'rowIndex': 0, 'colIndex': 0, 'previousTaps': 0}] if taps else [],
        date='05/01/2024',
        time='02:30:00 PM',
        winner=winner,
        session_id=session_id,
    )


class FlakyStore(MemoryRecordStore):
    def __init__(self, initial=None):
        super().__init__(initial)
        self.fail_reads = False
        self.fail_writes = False

    def read(self, name):
        if self.fail_reads:
            raise StoreReadError('disk unavailable')
        return super().read(name)

    def write(self, name, payload):
        if self.fail_writes:
            raise StoreWriteError('disk full')
        super().write(name, payload)


def test_load_missing_collection_is_empty(coordinator):
    assert coordinator.load_collection(IN_PROGRESS_KEY) == []


def test_load_corrupt_collection_is_empty():
    store = MemoryRecordStore({IN_PROGRESS_KEY: '{not json'})
    assert PersistenceCoordinator(store, inline=True).load_collection(IN_PROGRESS_KEY) == []
    store = MemoryRecordStore({IN_PROGRESS_KEY: '{"gameName": "x"}'})
    assert PersistenceCoordinator(store, inline=True).load_collection(IN_PROGRESS_KEY) == []


def test_load_skips_malformed_records():
    good = _record().to_dict()
    store = MemoryRecordStore({IN_PROGRESS_KEY: json.dumps([good, {'players': 'nope'}])})
    records = PersistenceCoordinator(store, inline=True).load_collection(IN_PROGRESS_KEY)
    assert [r.session_id for r in records] == ['s1']


def test_record_round_trip_is_lossless(coordinator):
    record = _record(taps=2)
    assert coordinator.upsert_in_progress(record).result() is True
    loaded = coordinator.load_collection(IN_PROGRESS_KEY)
    assert loaded == [record]
    assert GameRecord.from_dict(record.to_dict()) == record


def test_upsert_replaces_same_session_only(coordinator):
    coordinator.upsert_in_progress(_record('s1'))
    coordinator.upsert_in_progress(_record('s2'))
    coordinator.upsert_in_progress(_record('s1', taps=1))
    records = coordinator.load_collection(IN_PROGRESS_KEY)
    assert sorted(r.session_id for r in records) == ['s1', 's2']
    s1 = next(r for r in records if r.session_id == 's1')
    assert s1.grid[0][0] == {'taps': 1}


def test_identical_grids_from_different_sessions_do_not_collide(coordinator):
    coordinator.upsert_in_progress(_record('s1'))
    coordinator.upsert_in_progress(_record('s2'))
    coordinator.save_reset(_record('s1'))
    assert len(coordinator.load_collection(IN_PROGRESS_KEY)) == 2


def test_legacy_record_adopted_by_prior_snapshot():
    legacy = _record(session_id=None, taps=1).to_dict()
    legacy.pop('sessionId')
    other_legacy = _record(session_id=None, taps=2).to_dict()
    store = MemoryRecordStore({IN_PROGRESS_KEY: json.dumps([legacy, other_legacy])})
    coordinator = PersistenceCoordinator(store, inline=True)

    coordinator.upsert_in_progress(_record('new-id', taps=2), prior_snapshot=legacy['grid'])
    records = coordinator.load_collection(IN_PROGRESS_KEY)
    assert len(records) == 2
    assert {r.session_id for r in records} == {None, 'new-id'}
    untouched = next(r for r in records if r.session_id is None)
    assert untouched.grid == other_legacy['grid']


def test_move_to_completed(coordinator):
    coordinator.upsert_in_progress(_record('s1', taps=1))
    coordinator.upsert_in_progress(_record('s2'))
    assert coordinator.move_to_completed(_record('s1', taps=3), 'A').result() is True

    in_progress = coordinator.load_collection(IN_PROGRESS_KEY)
    completed = coordinator.load_collection(COMPLETED_KEY)
    assert [r.session_id for r in in_progress] == ['s2']
    assert len(completed) == 1
    assert completed[0].winner == 'A'
    assert completed[0].session_id == 's1'
    assert completed[0].to_dict()['winner'] == 'A'


def test_move_to_completed_twice_keeps_one_record(coordinator):
    coordinator.move_to_completed(_record('s1', taps=3), 'A')
    coordinator.move_to_completed(_record('s1', taps=3), 'A')
    assert len(coordinator.load_collection(COMPLETED_KEY)) == 1


def test_write_failure_is_reported_not_raised():
    store = FlakyStore()
    store.fail_writes = True
    coordinator = PersistenceCoordinator(store, inline=True)
    assert coordinator.upsert_in_progress(_record()).result() is False
    assert coordinator.move_to_completed(_record(), 'A').result() is False


def test_read_failure_never_overwrites_collection():
    existing = json.dumps([_record('keep').to_dict()])
    store = FlakyStore({IN_PROGRESS_KEY: existing})
    store.fail_reads = True
    coordinator = PersistenceCoordinator(store, inline=True)
    assert coordinator.upsert_in_progress(_record('s1')).result() is False
    assert coordinator.load_collection(IN_PROGRESS_KEY) == []
    store.fail_reads = False
    assert store.read(IN_PROGRESS_KEY) == existing


def test_corrupt_collection_is_replaced_on_write():
    store = MemoryRecordStore({IN_PROGRESS_KEY: 'garbage'})
    coordinator = PersistenceCoordinator(store, inline=True)
    assert coordinator.upsert_in_progress(_record('s1')).result() is True
    assert [r.session_id for r in coordinator.load_collection(IN_PROGRESS_KEY)] == ['s1']


class RecordingStore(MemoryRecordStore):
    """Slow store that remembers the order writes landed in."""

    def __init__(self):
        super().__init__()
        self.landed = []

    def write(self, name, payload):
        time.sleep(0.002)
        super().write(name, payload)
        records = json.loads(payload)
        if records:
            self.landed.append(records[-1]['grid'][0][0]['taps'])


def test_queued_writes_land_in_submission_order():
    store = RecordingStore()
    coordinator = PersistenceCoordinator(store)
    try:
        futures = [coordinator.upsert_in_progress(_record('s1', taps=t % 4)) for t in range(12)]
        assert coordinator.flush().result(timeout=5) is True
        assert all(f.done() for f in futures)
        assert store.landed == [t % 4 for t in range(12)]
        final = coordinator.load_collection(IN_PROGRESS_KEY)
        assert len(final) == 1
        assert final[0].grid[0][0] == {'taps': 11 % 4}
    finally:
        coordinator.shutdown()


def test_writes_from_many_threads_are_not_lost():
    coordinator = PersistenceCoordinator(MemoryRecordStore())
    try:
        threads = [
            threading.Thread(target=coordinator.upsert_in_progress, args=(_record(f's{i}'),))
            for i in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        coordinator.flush().result(timeout=5)
        ids = sorted(r.session_id for r in coordinator.load_collection(IN_PROGRESS_KEY))
        assert ids == sorted(f's{i}' for i in range(8))
    finally:
        coordinator.shutdown()
