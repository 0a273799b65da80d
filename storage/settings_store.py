"""
Settings/rule store.

The engine only reads settings. Writes come from the settings surface (the CLI,
an options page, or a test) through ``save``/``replace``.
"""
from __future__ import annotations

import json
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from error_handling import PersistenceError
from tab_config import Settings


class SettingsStore(ABC):
    """Read contract used by the lifecycle engine."""

    @abstractmethod
    def load(self) -> Settings:
        """
        Current settings merged over defaults.

        Raises:
            PersistenceError: The stored document cannot be read
        """
        pass


class InMemorySettingsStore(SettingsStore):
    """Settings held in process; ``replace`` simulates an edit from the settings surface."""

    def __init__(self, settings: Optional[Union[Settings, Dict[str, Any]]] = None):
        self._lock = threading.Lock()
        self._settings = self._coerce(settings)

    @staticmethod
    def _coerce(settings: Optional[Union[Settings, Dict[str, Any]]]) -> Settings:
        if settings is None:
            return Settings()
        if isinstance(settings, Settings):
            return settings
        return Settings.model_validate(settings)

    def load(self) -> Settings:
        with self._lock:
            return self._settings.model_copy(deep=True)

    def replace(self, settings: Union[Settings, Dict[str, Any]]) -> None:
        coerced = self._coerce(settings)
        with self._lock:
            self._settings = coerced

    def update(self, **changes: Any) -> Settings:
        """Merge camelCase changes (e.g. ``globalCountdown=60``) into the current settings."""
        with self._lock:
            merged = {**self._settings.to_dict(), **changes}
            self._settings = Settings.model_validate(merged)
            return self._settings


class JsonFileSettingsStore(SettingsStore):
    """Settings document in a JSON file; a missing file means all defaults."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Settings:
        if not self.path.exists():
            return Settings()
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
            return Settings.model_validate(data.get("settings", data))
        except (OSError, json.JSONDecodeError, ValidationError, AttributeError) as exc:
            raise PersistenceError(f"Cannot load settings from {self.path}: {exc}", operation="load_settings") from exc

    def save(self, settings: Settings) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as fh:
                json.dump({"settings": settings.to_dict()}, fh, indent=2)
        except OSError as exc:
            raise PersistenceError(f"Cannot write settings to {self.path}: {exc}", operation="save_settings") from exc
