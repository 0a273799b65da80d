"""
Tab state snapshot persistence.

The whole ``{tab_id: TabRecord}`` map is read and written as one snapshot; there
are no partial-key writes. Backends raise PersistenceError on any I/O or decoding
failure and leave error policy to the caller.
"""
from __future__ import annotations

import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import ValidationError

from error_handling import PersistenceError
from models.tab_models import TabRecord


SNAPSHOT_KEY = "tabStates"


def encode_snapshot(states: Mapping[int, TabRecord]) -> str:
    """Serialize a state map to the camelCase JSON document."""
    payload = {SNAPSHOT_KEY: {str(tab_id): record.to_dict() for tab_id, record in states.items()}}
    return json.dumps(payload, sort_keys=True)


def decode_snapshot(raw: Union[str, bytes, Dict[str, Any]]) -> Dict[int, TabRecord]:
    """
    Parse a snapshot document.

    Raises:
        PersistenceError: The document is not valid JSON or a record fails validation
    """
    try:
        data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        entries = (data or {}).get(SNAPSHOT_KEY) or {}
        return {int(tab_id): TabRecord.model_validate(record) for tab_id, record in entries.items()}
    except (json.JSONDecodeError, ValidationError, ValueError, TypeError, AttributeError) as exc:
        raise PersistenceError(f"Corrupt tab state snapshot: {exc}", operation="load_tab_states") from exc


class TabStatePersistence(ABC):
    """Read/write contract for the tab state snapshot."""

    @abstractmethod
    def load(self) -> Dict[int, TabRecord]:
        """Return the last saved snapshot (empty when nothing was saved)."""
        pass

    @abstractmethod
    def save(self, states: Mapping[int, TabRecord]) -> None:
        """Replace the stored snapshot."""
        pass


class InMemoryTabStatePersistence(TabStatePersistence):
    """
    Keeps the encoded snapshot in memory.

    Records still go through JSON, so a load returns fresh copies exactly as a
    file-backed store would.
    """

    def __init__(self, initial: Optional[Mapping[int, TabRecord]] = None):
        self._lock = threading.Lock()
        self._document: Optional[str] = encode_snapshot(initial) if initial else None
        self.save_count = 0

    def load(self) -> Dict[int, TabRecord]:
        with self._lock:
            document = self._document
        if document is None:
            return {}
        return decode_snapshot(document)

    def save(self, states: Mapping[int, TabRecord]) -> None:
        document = encode_snapshot(states)
        with self._lock:
            self._document = document
            self.save_count += 1

    @property
    def raw(self) -> Optional[str]:
        return self._document


class JsonFileTabStatePersistence(TabStatePersistence):
    """Snapshot in a JSON file, replaced atomically on every save."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Dict[int, TabRecord]:
        if not self.path.exists():
            return {}
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(f"Cannot read {self.path}: {exc}", operation="load_tab_states") from exc
        return decode_snapshot(raw)

    def save(self, states: Mapping[int, TabRecord]) -> None:
        document = encode_snapshot(states)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix=".tab_states.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(document)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as exc:
            raise PersistenceError(f"Cannot write {self.path}: {exc}", operation="save_tab_states") from exc
