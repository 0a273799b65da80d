"""
TabLifecycleActor - the single consumer of the engine's event queue.

Providers, the UI layer and the sweep timer only enqueue. The actor dispatches
one event at a time to completion, so no two transitions ever interleave.
"""
import threading
import time
from concurrent.futures import Future
from typing import Any, Callable, Dict, Optional

from error_handling import ErrorHandler, PersistenceError
from models.tab_events import (
    MessageRequest,
    SettingsChanged,
    SweepTick,
    TabActivated,
    TabCreated,
    TabEvent,
    TabRemoved,
    TabUpdated,
)
from storage.history_log import HistoryLog
from storage.settings_store import InMemorySettingsStore, JsonFileSettingsStore, SettingsStore
from storage.tab_state_persistence import InMemoryTabStatePersistence, JsonFileTabStatePersistence
from tab_config import EngineConfig
from tab_provider import TabProvider, create_tab_provider
from utils.event_logger import EventLogger, get_event_logger, set_event_logger

from .event_queue import TabEventQueue
from .lifecycle import LifecycleController
from .messages import MessageHandler
from .sweep import SweepResult, SweepScheduler
from .tab_state_store import TabStateStore


class TabLifecycleActor:
    """
    Owns the store and runs every transition.

    Two ways to drive it:
    - ``run_forever()`` on the provider's thread (required for Playwright's sync API)
    - ``start()`` / ``stop()`` on a worker thread for thread-safe providers
    """

    def __init__(
        self,
        controller: LifecycleController,
        sweep: SweepScheduler,
        queue: Optional[TabEventQueue] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.controller = controller
        self.sweep = sweep
        self.queue = queue or TabEventQueue()
        self.clock = clock
        self.messages = MessageHandler(controller)
        self.error_handler: ErrorHandler = controller.error_handler
        self.last_sweep: Optional[SweepResult] = None
        self._initialized = False
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._loop_thread: Optional[threading.Thread] = None

    @property
    def store(self) -> TabStateStore:
        return self.controller.store

    @property
    def provider(self) -> TabProvider:
        return self.controller.provider

    # Inbound

    def submit(self, event: TabEvent) -> None:
        self.queue.put(event)

    def submit_message(self, message: Dict[str, Any]) -> Future:
        """Queue a UI message; the returned future resolves to the response dict."""
        request = MessageRequest(message=message)
        self.queue.put(request)
        return request.reply

    def request(self, message: Dict[str, Any], timeout: Optional[float] = None) -> Dict[str, Any]:
        """
        Send a UI message and wait for the answer.

        When no loop owns the queue it is drained on the calling thread;
        otherwise the owning loop answers and this call only waits.
        """
        reply = self.submit_message(message)
        if not self.is_running:
            self.process_pending()
        return reply.result(timeout=timeout)

    # Dispatch

    def initialize(self) -> None:
        count = self.controller.initialize()
        self._initialized = True
        get_event_logger().engine_start(count)

    def dispatch(self, event: TabEvent) -> None:
        """Run one event to completion."""
        if isinstance(event, TabCreated):
            self.controller.on_created(event)
        elif isinstance(event, TabActivated):
            self.controller.on_activated(event)
        elif isinstance(event, TabUpdated):
            self.controller.on_updated(event)
        elif isinstance(event, TabRemoved):
            self.controller.on_removed(event)
        elif isinstance(event, SettingsChanged):
            self.controller.on_settings_changed(event)
        elif isinstance(event, SweepTick):
            self.last_sweep = self.sweep.run()
        elif isinstance(event, MessageRequest):
            response = self.messages.handle(event.message)
            if not event.reply.done():
                event.reply.set_result(response)
        else:
            get_event_logger().system_warning(f"Ignoring unknown event {type(event).__name__}")

    def _dispatch_safely(self, event: TabEvent) -> None:
        try:
            self.dispatch(event)
        except Exception as e:
            get_event_logger().system_error(f"Error handling {type(event).__name__}", error=e)
            self.error_handler.handle_error(e, operation=type(event).__name__)
            if isinstance(event, MessageRequest) and not event.reply.done():
                event.reply.set_exception(e)

    def process_pending(self) -> int:
        """
        Drain the queue on the calling thread.

        Returns:
            Number of events processed
        """
        processed = 0
        while True:
            event = self.queue.get_nowait()
            if event is None:
                return processed
            self._dispatch_safely(event)
            processed += 1

    def sweep_now(self) -> Optional[SweepResult]:
        """Queue a sweep behind pending events and drain."""
        self.queue.put(SweepTick(scheduled_at=self.clock()))
        self.process_pending()
        return self.last_sweep

    def _schedule_sweep(self) -> None:
        now = self.clock()
        if self.sweep.claim_tick(now):
            self.queue.put(SweepTick(scheduled_at=now))

    # Loops

    def run_forever(self, max_wait: float = 1.0) -> None:
        """
        Process events and sweep ticks until ``stop()``.

        Waits through ``provider.wait_for_events`` so thread-bound providers
        deliver their events on this thread.
        """
        if self.is_running:
            raise RuntimeError("Lifecycle loop is already running")
        self._stop_event.clear()
        self._loop_thread = threading.current_thread()
        try:
            if not self._initialized:
                self.initialize()
            while not self._stop_event.is_set():
                self._schedule_sweep()
                self.process_pending()
                wait = min(max_wait, self.sweep.seconds_until_due(self.clock()))
                self.provider.wait_for_events(max(wait, 0.01))
        finally:
            self.process_pending()
            self._loop_thread = None
            get_event_logger().engine_stop()

    def _worker_loop(self, max_wait: float) -> None:
        try:
            while not self._stop_event.is_set():
                self._schedule_sweep()
                wait = min(max_wait, self.sweep.seconds_until_due(self.clock()))
                event = self.queue.get(timeout=max(wait, 0.01))
                if event is not None:
                    self._dispatch_safely(event)
        finally:
            self.process_pending()
            get_event_logger().engine_stop()

    def start(self, max_wait: float = 0.5) -> None:
        """Initialize and run the loop on a daemon worker thread."""
        if self.is_running:
            return
        if not self._initialized:
            self.initialize()
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._worker_loop, args=(max_wait,), name="tab-lifecycle-actor", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def is_running(self) -> bool:
        """True while ``run_forever()`` or the ``start()`` worker owns the queue."""
        if self._loop_thread is not None:
            return True
        return self._thread is not None and self._thread.is_alive()


def build_engine(
    config: Optional[EngineConfig] = None,
    provider: Optional[TabProvider] = None,
    settings_store: Optional[SettingsStore] = None,
    clock: Callable[[], float] = time.time,
) -> TabLifecycleActor:
    """
    Wire store, controller, sweep and queue from a config.

    Args:
        config: Engine configuration (defaults to EngineConfig())
        provider: Tab provider; created from config.browser when omitted
        settings_store: Settings source; file- or memory-backed per config when omitted
        clock: Time source in epoch seconds

    Returns:
        An actor ready for ``run_forever()`` or ``start()``
    """
    config = config or EngineConfig()
    set_event_logger(EventLogger(debug_mode=config.logging.debug_mode))

    storage = config.storage
    persistence = (
        JsonFileTabStatePersistence(storage.state_path)
        if storage.state_path else InMemoryTabStatePersistence()
    )
    if settings_store is None:
        settings_store = (
            JsonFileSettingsStore(storage.settings_path)
            if storage.settings_path else InMemorySettingsStore()
        )
    error_handler = ErrorHandler()
    try:
        history = HistoryLog(storage.history_path, clock=clock)
    except PersistenceError as e:
        get_event_logger().persistence_failure("load close history", error=e)
        error_handler.handle_error(e, operation="load_history")
        history = HistoryLog(storage.history_path, clock=clock, load=False)
    provider = provider or create_tab_provider(config.browser)

    store = TabStateStore(persistence, error_handler=error_handler)
    controller = LifecycleController(store, provider, settings_store, history, clock=clock,
                                     error_handler=error_handler)
    sweep = SweepScheduler(
        store,
        provider,
        settings_loader=controller.reload_settings,
        history=history,
        interval_seconds=config.sweep.interval_seconds,
        clock=clock,
        error_handler=error_handler,
    )
    actor = TabLifecycleActor(controller, sweep, clock=clock)
    provider.subscribe(actor.queue.put)
    return actor
