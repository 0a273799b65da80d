"""
Unit tests for TabStateStore.
"""
from unittest.mock import Mock

from error_handling import ErrorHandler, PersistenceError
from models.tab_models import TabRecord
from storage.tab_state_persistence import InMemoryTabStatePersistence
from tab_management import TabStateStore
from utils.event_logger import EventType


def _record(url="https://a.com/", window_id=1, **kwargs):
    return TabRecord(url=url, countdown=60, initial_countdown=60, window_id=window_id, **kwargs)


class TestTabStateStore:
    def test_crud(self):
        """Test put, get, update and delete"""
        store = TabStateStore(InMemoryTabStatePersistence())
        store.put(1, _record())
        assert 1 in store and len(store) == 1

        store.update(1, paused=True)
        assert store.get(1).paused is True
        assert store.update(99, paused=True) is None

        removed = store.delete(1)
        assert removed.url == "https://a.com/"
        assert store.delete(1) is None
        assert len(store) == 0

    def test_snapshot_is_a_copy(self):
        """Test snapshots do not alias live records"""
        store = TabStateStore(InMemoryTabStatePersistence())
        store.put(1, _record())
        snap = store.snapshot()
        snap[1].paused = True
        assert store.get(1).paused is False

    def test_retain_drops_unknown_ids(self):
        """Test reconciliation against open tabs"""
        store = TabStateStore(InMemoryTabStatePersistence())
        for tab_id in (1, 2, 3):
            store.put(tab_id, _record())
        assert store.retain([2]) == [1, 3]
        assert store.ids() == [2]

    def test_window_bookkeeping(self):
        """Test active tab per window"""
        store = TabStateStore(InMemoryTabStatePersistence())
        assert store.set_active(7, 1) is None
        assert store.set_active(7, 2) == 1
        assert store.is_active(2, 7) and not store.is_active(1, 7)
        store.clear_active(7, 1)
        assert store.is_active(2, 7)
        store.clear_active(7, 2)
        assert not store.is_active(2, 7)
        store.set_active(8, 3)
        assert store.release_window(8) is True
        assert store.release_window(8) is False

    def test_has_window_records(self):
        """Test per-window emptiness check"""
        store = TabStateStore(InMemoryTabStatePersistence())
        store.put(1, _record(window_id=4))
        assert store.has_window_records(4)
        assert not store.has_window_records(5)

    def test_persist_and_load(self):
        """Test the snapshot goes through the backend"""
        backend = InMemoryTabStatePersistence()
        store = TabStateStore(backend)
        store.put(1, _record())
        assert store.persist() is True

        fresh = TabStateStore(backend)
        assert fresh.load() == 1
        assert fresh.get(1) == store.get(1)

    def test_persist_failure_keeps_memory_state(self, event_logger):
        """Test a failed write is logged and recorded, state kept"""
        backend = Mock()
        backend.save.side_effect = PersistenceError("disk full")
        handler = ErrorHandler()
        store = TabStateStore(backend, error_handler=handler)
        store.put(1, _record())

        assert store.persist() is False
        assert store.last_persist_ok is False
        assert store.get(1) is not None
        assert handler.get_error_summary()["error_counts"] == {"PersistenceError": 1}
        assert event_logger.history(EventType.PERSISTENCE_FAILURE)

    def test_load_failure_starts_empty(self):
        """Test a corrupt snapshot does not stop start-up"""
        backend = Mock()
        backend.load.side_effect = PersistenceError("corrupt")
        store = TabStateStore(backend)
        assert store.load() == 0
