"""
Inbound events consumed by the lifecycle actor.

Every variant is a frozen dataclass; TabEvent is their union. Tab providers,
the UI layer and the sweep timer only ever create these and enqueue them.
"""
from __future__ import annotations

import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from models.tab_models import TabSnapshot


@dataclass(frozen=True)
class TabCreated:
    tab: TabSnapshot


@dataclass(frozen=True)
class TabActivated:
    tab_id: int
    window_id: int


@dataclass(frozen=True)
class TabUpdated:
    """Changed fields only; None means unchanged."""
    tab: TabSnapshot
    url: Optional[str] = None
    audible: Optional[bool] = None
    pinned: Optional[bool] = None
    title: Optional[str] = None

    @property
    def tab_id(self) -> int:
        return self.tab.id


@dataclass(frozen=True)
class TabRemoved:
    tab_id: int
    window_id: int
    is_window_closing: bool = False


@dataclass(frozen=True)
class SettingsChanged:
    pass


@dataclass(frozen=True)
class SweepTick:
    scheduled_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class MessageRequest:
    """A UI message; the handler completes `reply` with the response dict."""
    message: Dict[str, Any]
    reply: Future = field(default_factory=Future, compare=False)


TabEvent = Union[
    TabCreated,
    TabActivated,
    TabUpdated,
    TabRemoved,
    SettingsChanged,
    SweepTick,
    MessageRequest,
]
