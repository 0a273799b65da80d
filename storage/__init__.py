"""Persistence backends: tab state snapshot, settings document, close history."""
from .history_log import HistoryLog
from .settings_store import InMemorySettingsStore, JsonFileSettingsStore, SettingsStore
from .tab_state_persistence import (
    InMemoryTabStatePersistence,
    JsonFileTabStatePersistence,
    TabStatePersistence,
    decode_snapshot,
    encode_snapshot,
)

__all__ = [
    "HistoryLog",
    "InMemorySettingsStore",
    "JsonFileSettingsStore",
    "SettingsStore",
    "InMemoryTabStatePersistence",
    "JsonFileTabStatePersistence",
    "TabStatePersistence",
    "decode_snapshot",
    "encode_snapshot",
]
