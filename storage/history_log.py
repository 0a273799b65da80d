from __future__ import annotations

import json
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Union

from pydantic import ValidationError

from error_handling import PersistenceError
from models.history_models import CloseReason, HistoryEntry


SECONDS_PER_DAY = 24 * 60 * 60


class HistoryLog:
    """Append-only log of closed tabs, pruned by age."""

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        clock: Callable[[], float] = time.time,
        load: bool = True,
    ):
        """
        Args:
            path: JSON file backing the log; None keeps it in memory
            clock: Time source in epoch seconds
            load: Read existing entries from `path` (raises PersistenceError when unreadable)
        """
        self.path = Path(path) if path else None
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: List[HistoryEntry] = self._read() if self.path and load else []

    def _read(self) -> List[HistoryEntry]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
            return [HistoryEntry.model_validate(item) for item in data.get("closedTabs", [])]
        except (OSError, json.JSONDecodeError, ValidationError, AttributeError) as exc:
            raise PersistenceError(f"Cannot load history from {self.path}: {exc}", operation="load_history") from exc

    def _write(self) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as fh:
                json.dump({"closedTabs": [e.to_dict() for e in self._entries]}, fh, indent=2)
        except OSError as exc:
            raise PersistenceError(f"Cannot write history to {self.path}: {exc}", operation="save_history") from exc

    def _drop_expired(self, retention_days: int) -> int:
        cutoff = self._clock() - retention_days * SECONDS_PER_DAY
        kept = [e for e in self._entries if e.timestamp >= cutoff]
        removed = len(self._entries) - len(kept)
        self._entries = kept
        return removed

    def append(self, entries: List[HistoryEntry], retention_days: int) -> None:
        """Add entries, prune anything older than the retention window, write once."""
        with self._lock:
            self._entries.extend(entries)
            self._drop_expired(retention_days)
            self._write()

    def record(
        self,
        tab_id: Optional[int],
        url: str,
        title: str,
        reason: CloseReason,
        retention_days: int,
    ) -> HistoryEntry:
        entry = HistoryEntry.for_tab(tab_id, url, title, reason, self._clock())
        self.append([entry], retention_days)
        return entry

    def prune(self, retention_days: int) -> int:
        """Remove entries older than the retention window; returns how many went."""
        with self._lock:
            removed = self._drop_expired(retention_days)
            if removed:
                self._write()
            return removed

    def entries(self, reason: Optional[CloseReason] = None) -> List[HistoryEntry]:
        with self._lock:
            if reason is None:
                return list(self._entries)
            return [e for e in self._entries if e.close_reason == reason]

    def clear(self) -> None:
        with self._lock:
            self._entries = []
            self._write()

    def __len__(self) -> int:
        return len(self._entries)
