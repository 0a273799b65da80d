"""
LifecycleController - derives tab records from browser events.

Every transition reads the current settings, consults the rule matcher, writes the
store, and persists the full snapshot before returning.
"""
import time
from typing import Callable, List, Optional, Tuple

from error_handling import ErrorHandler, PersistenceError, TabNotFoundError
from models.history_models import CloseReason, HistoryEntry
from models.rule_models import BaseExclusionRule
from models.tab_events import SettingsChanged, TabActivated, TabCreated, TabRemoved, TabUpdated
from models.tab_models import TabRecord, TabSnapshot
from rules.matcher import find_best_match
from storage.history_log import HistoryLog
from storage.settings_store import SettingsStore
from tab_config import Settings
from tab_provider import TabProvider
from utils.event_logger import get_event_logger
from utils.url_utils import is_special_url, wants_launch_pause

from .tab_state_store import TabStateStore


class LifecycleController:
    """
    Reacts to tab lifecycle events and settings changes.

    States of a record:
    - Active: last_active_time is None, countdown frozen
    - Counting: last_active_time set, remaining time derived from it
    - Protected: countdown is None (rule) or paused (user)
    """

    def __init__(
        self,
        store: TabStateStore,
        provider: TabProvider,
        settings_store: SettingsStore,
        history: HistoryLog,
        clock: Callable[[], float] = time.time,
        error_handler: Optional[ErrorHandler] = None,
    ):
        self.store = store
        self.provider = provider
        self.settings_store = settings_store
        self.history = history
        self.clock = clock
        self.error_handler = error_handler or store.error_handler
        self.settings: Settings = Settings()

    # Settings

    def reload_settings(self) -> Settings:
        """Re-read settings; on failure keep the last good copy."""
        try:
            self.settings = self.settings_store.load()
            get_event_logger().settings_reloaded(len(self.settings.exclusion_rules))
        except PersistenceError as e:
            get_event_logger().persistence_failure("load settings", error=e)
            self.error_handler.handle_error(e, operation="load_settings")
        return self.settings

    def resolve_countdown(self, url: str) -> Tuple[Optional[BaseExclusionRule], Optional[int]]:
        """
        Rule and countdown that govern an address.

        A matching rule decides alone (its countdown may be None = never close);
        otherwise the most specific per-site timeout, else the global countdown.
        """
        rule = find_best_match(url, self.settings.exclusion_rules)
        if rule is not None:
            return rule, rule.custom_countdown
        override = self.settings.site_timeout_for(url)
        if override is not None:
            return None, override
        return None, self.settings.global_countdown

    # Transitions

    def apply_tab(self, tab: TabSnapshot, is_active: bool) -> Optional[TabRecord]:
        """
        Created / url-changed transition for one tab.

        Returns:
            The new record, or None when the tab is not tracked
        """
        if is_special_url(tab.url) and not self.settings.auto_close_special:
            self.store.delete(tab.id)
            return None

        existing = self.store.get(tab.id)
        rule, countdown = self.resolve_countdown(tab.url)
        now = self.clock()

        if is_active:
            last_active_time = None
        elif existing is not None and existing.last_active_time is not None:
            last_active_time = existing.last_active_time
        else:
            last_active_time = now

        # Launch parameters apply when a url is first seen; afterwards only the user toggles paused.
        if existing is None:
            paused = wants_launch_pause(tab.url)
        elif existing.url != tab.url:
            paused = existing.paused or wants_launch_pause(tab.url)
        else:
            paused = existing.paused

        record = TabRecord(
            url=tab.url,
            last_active_time=last_active_time,
            countdown=countdown,
            initial_countdown=countdown,
            is_pinned=tab.pinned,
            has_media=tab.audible,
            matched_rule=rule,
            paused=paused,
            window_id=tab.window_id,
            title=tab.title or (existing.title if existing else ""),
        )
        self.store.put(tab.id, record)

        if rule is not None:
            get_event_logger().rule_matched(tab.id, tab.url, rule.id, rule.type, countdown=countdown)
        return record

    def initialize(self) -> int:
        """
        Reconcile persisted state with the open tabs at start-up.

        Returns:
            Number of tracked tabs afterwards
        """
        self.reload_settings()
        self.store.load()

        tabs = self.provider.query_tabs()
        dropped = self.store.retain(tab.id for tab in tabs)
        if dropped:
            get_event_logger().system_debug(f"Dropped {len(dropped)} stale tab state(s)")

        for tab in tabs:
            self.apply_tab(tab, is_active=False)

        for window in self.provider.list_windows():
            if window.active_tab_id is None:
                continue
            self.store.set_active(window.id, window.active_tab_id)
            tab = self.provider.get_tab(window.active_tab_id)
            if tab is not None:
                self.apply_tab(tab, is_active=True)

        self.store.persist()
        return len(self.store)

    def on_created(self, event: TabCreated) -> None:
        self.apply_tab(event.tab, is_active=False)
        get_event_logger().tab_created(event.tab.id, url=event.tab.url)
        self.store.persist()

    def on_activated(self, event: TabActivated) -> None:
        """Start the countdown of the window's previous tab, reset the new one."""
        now = self.clock()
        previous = self.store.set_active(event.window_id, event.tab_id)
        started = None
        if previous is not None and previous != event.tab_id:
            previous_record = self.store.get(previous)
            if previous_record is not None and previous_record.last_active_time is None:
                previous_record.last_active_time = now
                started = previous

        tab = self.provider.get_tab(event.tab_id)
        if tab is not None:
            self.apply_tab(tab, is_active=True)

        get_event_logger().tab_activated(event.tab_id, window_id=event.window_id, previous_tab_id=started)
        self.store.persist()

    def on_updated(self, event: TabUpdated) -> None:
        """Patch metadata in place; a url change re-runs the created transition."""
        changed: List[str] = []
        record = self.store.get(event.tab_id)
        if record is not None:
            if event.audible is not None:
                record.has_media = event.audible
                changed.append("audible")
            if event.pinned is not None:
                record.is_pinned = event.pinned
                changed.append("pinned")
            if event.title is not None:
                record.title = event.title
                changed.append("title")

        if event.url is not None:
            is_active = self.store.is_active(event.tab_id, event.tab.window_id)
            self.apply_tab(event.tab, is_active=is_active)
            changed.append("url")

        if changed:
            get_event_logger().tab_updated(event.tab_id, changed)
        self.store.persist()

    def on_removed(self, event: TabRemoved) -> None:
        record = self.store.delete(event.tab_id)
        if record is not None:
            self._record_history([
                HistoryEntry.for_tab(event.tab_id, record.url, record.title,
                                     CloseReason.MANUAL_BROWSER, self.clock())
            ])

        self.store.clear_active(event.window_id, event.tab_id)
        released = False
        if event.is_window_closing or not self.store.has_window_records(event.window_id):
            released = self.store.release_window(event.window_id)

        get_event_logger().tab_removed(event.tab_id, window_released=released)
        self.store.persist()

    def on_settings_changed(self, event: Optional[SettingsChanged] = None) -> None:
        """Re-evaluate every open tab against fresh settings."""
        self.reload_settings()
        for tab in self.provider.query_tabs():
            self.apply_tab(tab, is_active=self.store.is_active(tab.id, tab.window_id))
        self.store.persist()

    # User actions

    def set_paused(self, tab_id: int, paused: bool) -> TabRecord:
        """
        Toggle explicit protection.

        Raises:
            TabNotFoundError: The tab is not tracked
        """
        record = self.store.update(tab_id, paused=paused)
        if record is None:
            raise TabNotFoundError("Tab not found", tab_id=tab_id)
        get_event_logger().tab_paused(tab_id, paused)
        self.store.persist()
        return record

    def close_with_history(self, tab_id: int, is_batch: bool = False) -> None:
        """
        Close one tab now, bypassing the sweep, and log it.

        Raises:
            TabNotFoundError: Neither tracked nor open
            TabServiceError: The browser refused to close it
        """
        record = self.store.get(tab_id)
        tab = self.provider.get_tab(tab_id)
        if record is None and tab is None:
            raise TabNotFoundError("Tab not found", tab_id=tab_id)

        self.provider.close_tabs([tab_id])

        url = record.url if record is not None else tab.url
        title = (record.title if record is not None else "") or (tab.title if tab is not None else "")
        reason = CloseReason.BATCH_CLOSE if is_batch else CloseReason.MANUAL_QUIT
        self.store.delete(tab_id)
        self._record_history([HistoryEntry.for_tab(tab_id, url, title, reason, self.clock())])
        get_event_logger().tabs_closed([tab_id], reason.value)
        self.store.persist()

    def _record_history(self, entries: List[HistoryEntry]) -> None:
        try:
            self.history.append(entries, self.settings.history_retention_days)
        except PersistenceError as e:
            get_event_logger().persistence_failure("write close history", error=e)
            self.error_handler.handle_error(e, operation="save_history")
