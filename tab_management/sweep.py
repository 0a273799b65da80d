"""
SweepScheduler - periodic expiry pass over all tracked tabs.
"""
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set

from error_handling import ErrorHandler, PersistenceError, TabServiceError
from models.history_models import CloseReason, HistoryEntry
from models.tab_models import TabRecord, compute_remaining
from storage.history_log import HistoryLog
from tab_config import Settings
from tab_provider import TabProvider
from utils.event_logger import get_event_logger

from .tab_state_store import TabStateStore


@dataclass
class SweepResult:
    """Outcome of one sweep."""
    checked: int = 0
    expired: List[int] = field(default_factory=list)
    closed: List[int] = field(default_factory=list)
    skipped: bool = False  # engine disabled
    close_failed: bool = False


class SweepScheduler:
    """
    Recomputes remaining time for every record and closes expired tabs.

    Remaining time is always derived from the absolute start timestamp, so a
    late or missed tick never under-counts inactivity.
    """

    def __init__(
        self,
        store: TabStateStore,
        provider: TabProvider,
        settings_loader: Callable[[], Settings],
        history: HistoryLog,
        interval_seconds: float = 10.0,
        clock: Callable[[], float] = time.time,
        error_handler: Optional[ErrorHandler] = None,
    ):
        self.store = store
        self.provider = provider
        self.settings_loader = settings_loader
        self.history = history
        self.interval_seconds = interval_seconds
        self.clock = clock
        self.error_handler = error_handler or store.error_handler
        self._next_due: Optional[float] = None

    # Cadence

    def claim_tick(self, now: float) -> bool:
        """
        True once per interval; the first tick is one interval after the first call.
        """
        if self._next_due is None:
            self._next_due = now + self.interval_seconds
            return False
        if now >= self._next_due:
            self._next_due = now + self.interval_seconds
            return True
        return False

    def seconds_until_due(self, now: float) -> float:
        if self._next_due is None:
            return self.interval_seconds
        return max(0.0, self._next_due - now)

    # Expiry

    @staticmethod
    def should_skip(tab_id: int, record: TabRecord, settings: Settings, active_ids: Set[int]) -> bool:
        if tab_id in active_ids:
            return True
        if record.last_active_time is None:
            return True
        if record.countdown is None:
            return True
        if record.is_pinned and not settings.auto_close_pinned:
            return True
        if record.paused:
            return True
        if record.has_media and settings.pause_on_media:
            return True
        return False

    def run(self, now: Optional[float] = None) -> SweepResult:
        """
        One sweep over every record.

        Expired tabs are closed in a single request; if the browser refuses, their
        records stay and the next sweep retries.
        """
        settings = self.settings_loader()
        result = SweepResult()
        if not settings.enabled:
            result.skipped = True
            return result

        now = self.clock() if now is None else now
        active_ids = {tab.id for tab in self.provider.query_tabs() if tab.active}

        for tab_id, record in self.store.items():
            result.checked += 1
            if self.should_skip(tab_id, record, settings, active_ids):
                continue
            initial = record.initial_countdown if record.initial_countdown is not None else record.countdown
            remaining = compute_remaining(initial, record.last_active_time, now)
            record.countdown = remaining
            if remaining <= 0:
                result.expired.append(tab_id)

        if result.expired:
            self._close_expired(result, settings, now)

        get_event_logger().sweep_complete(result.checked, len(result.closed))
        self.store.persist()
        return result

    def _close_expired(self, result: SweepResult, settings: Settings, now: float) -> None:
        try:
            self.provider.close_tabs(result.expired)
        except TabServiceError as e:
            get_event_logger().system_error("Failed to close expired tabs", error=e)
            self.error_handler.handle_error(e, operation="sweep_close")
            result.close_failed = True

        entries = []
        for tab_id in result.expired:
            # Tabs still open after a failed close stay tracked for the next sweep.
            if result.close_failed and self.provider.get_tab(tab_id) is not None:
                continue
            record = self.store.delete(tab_id)
            if record is None:
                continue
            entries.append(HistoryEntry.for_tab(tab_id, record.url, record.title, CloseReason.TIMEOUT, now))
            result.closed.append(tab_id)

        if not result.closed:
            return
        get_event_logger().tabs_closed(result.closed, CloseReason.TIMEOUT.value)
        try:
            self.history.append(entries, settings.history_retention_days)
        except PersistenceError as e:
            get_event_logger().persistence_failure("write close history", error=e)
            self.error_handler.handle_error(e, operation="save_history")
