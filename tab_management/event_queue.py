"""
Inbound event channel for the lifecycle actor.

Thread-safe FIFO: tab providers, the UI layer and the sweep timer enqueue from any
thread; a single consumer drains it in arrival order.
"""

import threading
from collections import deque
from typing import Optional

from models.tab_events import TabEvent


class TabEventQueue:
    """Thread-safe FIFO of tab events with blocking get"""

    def __init__(self, max_size: int = 10000):
        self._queue = deque()
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._max_size = max_size

    def put(self, event: TabEvent) -> None:
        """
        Append an event behind everything already queued.

        Raises:
            RuntimeError: The queue is full
        """
        with self._not_empty:
            if len(self._queue) >= self._max_size:
                raise RuntimeError(f"Event queue is full (max {self._max_size} events)")
            self._queue.append(event)
            self._not_empty.notify()

    def get(self, timeout: Optional[float] = None) -> Optional[TabEvent]:
        """Next event, waiting up to `timeout` seconds; None if nothing arrived"""
        with self._not_empty:
            if not self._queue:
                self._not_empty.wait(timeout)
            if self._queue:
                return self._queue.popleft()
            return None

    def get_nowait(self) -> Optional[TabEvent]:
        with self._lock:
            return self._queue.popleft() if self._queue else None
