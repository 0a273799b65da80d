"""
TabStateStore - the engine's only mutable shared state.

Holds the per-tab lifecycle records and the active tab of each window. It is
owned by one actor; nothing else mutates it, so it carries no lock.
"""
from typing import Dict, ItemsView, List, Optional

from error_handling import ErrorHandler, PersistenceError
from models.tab_models import TabRecord
from storage.tab_state_persistence import TabStatePersistence
from utils.event_logger import get_event_logger


class TabStateStore:
    """
    In-memory map of tab id -> TabRecord plus window bookkeeping.

    Responsibilities:
    - Create/read/update/delete lifecycle records
    - Track the active tab of each window
    - Load and persist the whole snapshot through a persistence backend
    """

    def __init__(self, persistence: TabStatePersistence, error_handler: Optional[ErrorHandler] = None):
        """
        Initialize TabStateStore.

        Args:
            persistence: Backend the snapshot is read from and written to
            error_handler: Receives persistence failures
        """
        self.persistence = persistence
        self.error_handler = error_handler or ErrorHandler()
        self._records: Dict[int, TabRecord] = {}
        self._active_by_window: Dict[int, int] = {}  # window_id -> tab_id
        self.last_persist_ok: bool = True

    # Records

    def get(self, tab_id: int) -> Optional[TabRecord]:
        return self._records.get(tab_id)

    def put(self, tab_id: int, record: TabRecord) -> None:
        self._records[tab_id] = record

    def delete(self, tab_id: int) -> Optional[TabRecord]:
        """Remove a record; returns it, or None when the tab was not tracked."""
        return self._records.pop(tab_id, None)

    def update(self, tab_id: int, **changes) -> Optional[TabRecord]:
        """Patch fields of an existing record in place."""
        record = self._records.get(tab_id)
        if record is None:
            return None
        for field_name, value in changes.items():
            setattr(record, field_name, value)
        return record

    def items(self) -> ItemsView[int, TabRecord]:
        return self._records.items()

    def ids(self) -> List[int]:
        return list(self._records)

    def snapshot(self) -> Dict[int, TabRecord]:
        """Deep copy of every record, safe to hand outside the actor."""
        return {tab_id: record.model_copy(deep=True) for tab_id, record in self._records.items()}

    def retain(self, tab_ids) -> List[int]:
        """Drop records whose id is not in `tab_ids`; returns the dropped ids."""
        keep = set(tab_ids)
        dropped = [tab_id for tab_id in self._records if tab_id not in keep]
        for tab_id in dropped:
            del self._records[tab_id]
        return dropped

    def __contains__(self, tab_id: int) -> bool:
        return tab_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    # Windows

    def set_active(self, window_id: int, tab_id: int) -> Optional[int]:
        """Mark the active tab of a window; returns the previously active tab."""
        previous = self._active_by_window.get(window_id)
        self._active_by_window[window_id] = tab_id
        return previous

    def is_active(self, tab_id: int, window_id: Optional[int]) -> bool:
        return window_id is not None and self._active_by_window.get(window_id) == tab_id

    def clear_active(self, window_id: int, tab_id: int) -> None:
        """Forget `tab_id` as the window's active tab if it still is."""
        if self._active_by_window.get(window_id) == tab_id:
            del self._active_by_window[window_id]

    def release_window(self, window_id: int) -> bool:
        return self._active_by_window.pop(window_id, None) is not None

    def has_window_records(self, window_id: int) -> bool:
        return any(record.window_id == window_id for record in self._records.values())

    # Persistence

    def load(self) -> int:
        """
        Replace records with the persisted snapshot.

        Returns:
            Number of records loaded (0 when the snapshot is unreadable)
        """
        try:
            self._records = self.persistence.load()
        except PersistenceError as e:
            get_event_logger().persistence_failure("load tab states", error=e)
            self.error_handler.handle_error(e, operation="load_tab_states")
            self._records = {}
        return len(self._records)

    def persist(self) -> bool:
        """
        Write the full snapshot.

        A failed write is logged and the in-memory state kept; the last
        successful snapshot stays the durable one.
        """
        try:
            self.persistence.save(self._records)
            self.last_persist_ok = True
        except PersistenceError as e:
            get_event_logger().persistence_failure("save tab states", error=e)
            self.error_handler.handle_error(e, operation="save_tab_states")
            self.last_persist_ok = False
        return self.last_persist_ok
