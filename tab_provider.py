"""
Tab providers: the browser's tab/window service as seen by the engine.

A provider answers queries (open tabs, windows, one tab), performs closures, and
reports lifecycle events to its subscribers as ``models.tab_events`` values. The
engine subscribes its event queue, so providers never touch engine state.

Example:
    >>> provider = create_tab_provider(BrowserConfig(provider_type="memory"))
    >>> provider.subscribe(queue.put)
    >>> tab = provider.open_tab("https://example.com")
"""
from __future__ import annotations

import itertools
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional

from playwright.sync_api import BrowserContext, Page, Playwright, sync_playwright
from playwright.sync_api import Error as PlaywrightError

from error_handling import TabServiceError
from models.tab_events import TabActivated, TabCreated, TabEvent, TabRemoved, TabUpdated
from models.tab_models import TabSnapshot, WindowSnapshot
from tab_config import BrowserConfig
from utils.event_logger import get_event_logger


TabEventListener = Callable[[TabEvent], None]


class TabProvider(ABC):
    """
    Abstract base class for tab providers.

    Implementations must enumerate tabs and windows, close tabs on request, and
    call every subscribed listener with the events the browser reports.
    """

    def __init__(self):
        self._listeners: List[TabEventListener] = []

    def subscribe(self, listener: TabEventListener) -> None:
        """Register a listener for tab lifecycle events."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def _emit(self, event: TabEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    @abstractmethod
    def query_tabs(self) -> List[TabSnapshot]:
        """All open tabs across windows."""
        pass

    def get_tab(self, tab_id: int) -> Optional[TabSnapshot]:
        """One tab, or None when it no longer exists."""
        for tab in self.query_tabs():
            if tab.id == tab_id:
                return tab
        return None

    @abstractmethod
    def list_windows(self) -> List[WindowSnapshot]:
        """All windows with their active tab."""
        pass

    @abstractmethod
    def close_tabs(self, tab_ids: Iterable[int]) -> None:
        """
        Close several tabs in one request.

        Raises:
            TabServiceError: The browser rejected the request
        """
        pass

    def wait_for_events(self, timeout: float) -> None:
        """
        Block up to `timeout` seconds while the browser delivers events.

        Providers bound to one thread pump their event loop here.
        """
        time.sleep(timeout)

    def close(self) -> None:
        """Release browser resources."""
        pass


class MemoryTabProvider(TabProvider):
    """
    In-process browser model.

    Mirrors what a real browser reports: opening a tab emits a creation and (when
    it opens in the foreground) an activation, closing the active tab activates a
    neighbour, closing a window removes all of its tabs.

    Example:
        >>> provider = MemoryTabProvider()
        >>> first = provider.open_tab("https://a.example")
        >>> second = provider.open_tab("https://b.example")   # first starts counting
    """

    def __init__(self):
        super().__init__()
        self._lock = threading.RLock()
        self._tab_ids = itertools.count(1)
        self._window_ids = itertools.count(1)
        self._tabs: Dict[int, TabSnapshot] = {}
        self._window_tabs: Dict[int, List[int]] = {}
        self._active: Dict[int, Optional[int]] = {}
        self._focused_window: Optional[int] = None
        self.closed_by_request: List[int] = []
        self.fail_next_close: bool = False

    # Browser-side actions

    def open_window(self, focused: bool = True) -> int:
        with self._lock:
            window_id = next(self._window_ids)
            self._window_tabs[window_id] = []
            self._active[window_id] = None
            if focused or self._focused_window is None:
                self._focused_window = window_id
            return window_id

    def open_tab(
        self,
        url: str,
        window_id: Optional[int] = None,
        active: bool = True,
        pinned: bool = False,
        audible: bool = False,
        title: str = "",
    ) -> TabSnapshot:
        """Open a tab; in the foreground by default, like a user click."""
        with self._lock:
            if window_id is None:
                window_id = self._focused_window or self.open_window()
            elif window_id not in self._window_tabs:
                raise TabServiceError(f"No window with id {window_id}")
            tab_id = next(self._tab_ids)
            tab = TabSnapshot(
                id=tab_id,
                url=url,
                window_id=window_id,
                pinned=pinned,
                audible=audible,
                active=False,
                title=title,
            )
            self._tabs[tab_id] = tab
            self._window_tabs[window_id].append(tab_id)

        self._emit(TabCreated(tab=tab))
        if active:
            self.activate(tab_id)
        return self._tabs[tab_id]

    def activate(self, tab_id: int) -> None:
        with self._lock:
            tab = self._require(tab_id)
            previous = self._active.get(tab.window_id)
            if previous is not None and previous in self._tabs:
                self._tabs[previous] = replace(self._tabs[previous], active=False)
            self._tabs[tab_id] = replace(tab, active=True)
            self._active[tab.window_id] = tab_id
            self._focused_window = tab.window_id
        self._emit(TabActivated(tab_id=tab_id, window_id=tab.window_id))

    def navigate(self, tab_id: int, url: str, title: Optional[str] = None) -> None:
        self._update(tab_id, url=url, title=title)

    def set_audible(self, tab_id: int, audible: bool) -> None:
        self._update(tab_id, audible=audible)

    def set_pinned(self, tab_id: int, pinned: bool) -> None:
        self._update(tab_id, pinned=pinned)

    def remove_tab(self, tab_id: int) -> None:
        """Close a tab the way a user would."""
        self._remove(tab_id, is_window_closing=False)

    def close_window(self, window_id: int) -> None:
        with self._lock:
            tab_ids = list(self._window_tabs.get(window_id, []))
        for tab_id in tab_ids:
            self._remove(tab_id, is_window_closing=True)

    # TabProvider

    def query_tabs(self) -> List[TabSnapshot]:
        with self._lock:
            return list(self._tabs.values())

    def get_tab(self, tab_id: int) -> Optional[TabSnapshot]:
        with self._lock:
            return self._tabs.get(tab_id)

    def list_windows(self) -> List[WindowSnapshot]:
        with self._lock:
            return [
                WindowSnapshot(id=window_id, active_tab_id=self._active.get(window_id),
                               focused=window_id == self._focused_window)
                for window_id in self._window_tabs
            ]

    def close_tabs(self, tab_ids: Iterable[int]) -> None:
        tab_ids = list(tab_ids)
        if self.fail_next_close:
            self.fail_next_close = False
            raise TabServiceError(f"Browser refused to close tabs {tab_ids}")
        with self._lock:
            missing = [t for t in tab_ids if t not in self._tabs]
        if missing:
            raise TabServiceError(f"No tab with id {missing[0]}", tab_id=missing[0])
        for tab_id in tab_ids:
            self.closed_by_request.append(tab_id)
            self._remove(tab_id, is_window_closing=False)

    # Internals

    def _require(self, tab_id: int) -> TabSnapshot:
        tab = self._tabs.get(tab_id)
        if tab is None:
            raise TabServiceError(f"No tab with id {tab_id}", tab_id=tab_id)
        return tab

    def _update(self, tab_id: int, url: Optional[str] = None, audible: Optional[bool] = None,
                pinned: Optional[bool] = None, title: Optional[str] = None) -> None:
        changes = {k: v for k, v in (("url", url), ("audible", audible), ("pinned", pinned), ("title", title))
                   if v is not None}
        with self._lock:
            tab = replace(self._require(tab_id), **changes)
            self._tabs[tab_id] = tab
        self._emit(TabUpdated(tab=tab, url=url, audible=audible, pinned=pinned, title=title))

    def _remove(self, tab_id: int, is_window_closing: bool) -> None:
        with self._lock:
            tab = self._require(tab_id)
            del self._tabs[tab_id]
            siblings = self._window_tabs[tab.window_id]
            index = siblings.index(tab_id)
            siblings.remove(tab_id)
            was_active = self._active.get(tab.window_id) == tab_id
            successor = None
            if was_active:
                self._active[tab.window_id] = None
                if siblings and not is_window_closing:
                    successor = siblings[min(index, len(siblings) - 1)]
            if not siblings:
                del self._window_tabs[tab.window_id]
                self._active.pop(tab.window_id, None)
                if self._focused_window == tab.window_id:
                    self._focused_window = next(iter(self._window_tabs), None)

        self._emit(TabRemoved(tab_id=tab_id, window_id=tab.window_id, is_window_closing=is_window_closing))
        if successor is not None:
            self.activate(successor)


_MEDIA_PROBE = """() => ({
    audible: Array.from(document.querySelectorAll('audio, video'))
        .some(m => !m.paused && !m.muted && m.volume > 0),
    focused: document.hasFocus()
})"""


class PlaywrightTabProvider(TabProvider):
    """
    Tab provider backed by a Playwright ``BrowserContext`` (sync API).

    The context is one window; each page gets a stable integer id. Opening a page
    activates it, main-frame navigations report url changes, and page close reports
    removal. Audio and focus are polled from ``wait_for_events`` since Playwright
    does not report them as events.

    All calls must stay on the thread that created the context.
    """

    WINDOW_ID = 1

    def __init__(self, context: BrowserContext, playwright: Optional[Playwright] = None):
        super().__init__()
        self.context = context
        self._playwright = playwright
        self._tab_ids = itertools.count(1)
        self._pages: Dict[int, Page] = {}
        self._page_ids: Dict[int, int] = {}  # id(page) -> tab id
        self._audible: Dict[int, bool] = {}
        self._active_tab_id: Optional[int] = None

        for page in list(context.pages):
            self._register(page)
        if self._pages:
            self._active_tab_id = max(self._pages)
        context.on("page", self._on_page)

    @classmethod
    def launch(cls, config: BrowserConfig) -> PlaywrightTabProvider:
        """Start Chromium and wrap its context."""
        playwright = sync_playwright().start()
        launch_args = {
            "headless": config.headless,
            "viewport": {"width": config.viewport_width, "height": config.viewport_height},
        }
        if config.channel:
            launch_args["channel"] = config.channel

        if config.user_data_dir:
            context = playwright.chromium.launch_persistent_context(config.user_data_dir, **launch_args)
        else:
            viewport = launch_args.pop("viewport")
            browser = playwright.chromium.launch(**launch_args)
            context = browser.new_context(viewport=viewport)

        provider = cls(context, playwright=playwright)
        for url in config.start_urls:
            page = context.new_page()
            page.goto(url)
        return provider

    # Event translation

    def _register(self, page: Page) -> int:
        key = id(page)
        if key in self._page_ids:
            return self._page_ids[key]
        tab_id = next(self._tab_ids)
        self._pages[tab_id] = page
        self._page_ids[key] = tab_id
        self._audible[tab_id] = False
        page.on("framenavigated", lambda frame: self._on_navigated(tab_id, frame))
        page.on("close", lambda _page: self._on_close(tab_id))
        return tab_id

    def _on_page(self, page: Page) -> None:
        tab_id = self._register(page)
        self._emit(TabCreated(tab=self._snapshot(tab_id, page)))
        self._set_active(tab_id)

    def _on_navigated(self, tab_id: int, frame) -> None:
        page = self._pages.get(tab_id)
        if page is None or frame != page.main_frame:
            return
        self._emit(TabUpdated(tab=self._snapshot(tab_id, page), url=frame.url))

    def _on_close(self, tab_id: int) -> None:
        page = self._pages.pop(tab_id, None)
        if page is None:
            return
        self._page_ids.pop(id(page), None)
        self._audible.pop(tab_id, None)
        self._emit(TabRemoved(tab_id=tab_id, window_id=self.WINDOW_ID, is_window_closing=not self._pages))
        if self._active_tab_id == tab_id:
            self._active_tab_id = None
            if self._pages:
                self._set_active(max(self._pages))

    def _set_active(self, tab_id: int) -> None:
        self._active_tab_id = tab_id
        self._emit(TabActivated(tab_id=tab_id, window_id=self.WINDOW_ID))

    def _snapshot(self, tab_id: int, page: Page) -> TabSnapshot:
        try:
            title = page.title()
        except PlaywrightError:
            title = ""
        return TabSnapshot(
            id=tab_id,
            url=page.url,
            window_id=self.WINDOW_ID,
            pinned=False,
            audible=self._audible.get(tab_id, False),
            active=tab_id == self._active_tab_id,
            title=title,
        )

    def activate(self, tab_id: int) -> None:
        """Bring a tab to the front."""
        page = self._pages.get(tab_id)
        if page is None:
            raise TabServiceError(f"No tab with id {tab_id}", tab_id=tab_id)
        page.bring_to_front()
        if tab_id != self._active_tab_id:
            self._set_active(tab_id)

    def poll_pages(self) -> None:
        """Report audio changes and focus moves the browser does not emit as events."""
        focused: List[int] = []
        for tab_id, page in list(self._pages.items()):
            try:
                state = page.evaluate(_MEDIA_PROBE)
            except PlaywrightError:
                continue
            audible = bool(state.get("audible"))
            if audible != self._audible.get(tab_id, False):
                self._audible[tab_id] = audible
                self._emit(TabUpdated(tab=self._snapshot(tab_id, page), audible=audible))
            if state.get("focused"):
                focused.append(tab_id)
        if len(focused) == 1 and focused[0] != self._active_tab_id:
            self._set_active(focused[0])

    # TabProvider

    def query_tabs(self) -> List[TabSnapshot]:
        return [self._snapshot(tab_id, page) for tab_id, page in list(self._pages.items())]

    def get_tab(self, tab_id: int) -> Optional[TabSnapshot]:
        page = self._pages.get(tab_id)
        return self._snapshot(tab_id, page) if page is not None else None

    def list_windows(self) -> List[WindowSnapshot]:
        if not self._pages:
            return []
        return [WindowSnapshot(id=self.WINDOW_ID, active_tab_id=self._active_tab_id, focused=True)]

    def close_tabs(self, tab_ids: Iterable[int]) -> None:
        failed: List[int] = []
        for tab_id in list(tab_ids):
            page = self._pages.get(tab_id)
            if page is None:
                failed.append(tab_id)
                continue
            try:
                page.close()
            except PlaywrightError as e:
                get_event_logger().system_warning(f"Error closing tab {tab_id}", error=str(e))
                failed.append(tab_id)
        if failed:
            raise TabServiceError(f"Could not close tabs {failed}", metadata={"tab_ids": failed})

    def wait_for_events(self, timeout: float) -> None:
        """Pump Playwright's event loop for up to `timeout` seconds."""
        self.poll_pages()
        pages = list(self._pages.values())
        if not pages:
            time.sleep(timeout)
            return
        try:
            pages[0].wait_for_timeout(timeout * 1000)
        except PlaywrightError as e:
            # Page closed while waiting; the close event has been delivered.
            get_event_logger().system_debug(f"Event wait interrupted: {e}")

    def close(self) -> None:
        """Close browser and cleanup."""
        try:
            self.context.close()
        except PlaywrightError as e:
            get_event_logger().system_debug(f"Browser context already closed: {e}")
        if self._playwright:
            try:
                self._playwright.stop()
            except PlaywrightError as e:
                get_event_logger().system_debug(f"Playwright stop failed: {e}")
            self._playwright = None


def create_tab_provider(config: BrowserConfig) -> TabProvider:
    """
    Factory function to create the tab provider named by the config.

    Raises:
        ValueError: Unknown provider_type
    """
    if config.provider_type == "playwright":
        return PlaywrightTabProvider.launch(config)
    elif config.provider_type == "memory":
        return MemoryTabProvider()
    else:
        raise ValueError(
            f"Unknown provider_type: {config.provider_type}. "
            f"Must be one of: playwright, memory"
        )
