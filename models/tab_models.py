"""
Tab data models.

TabSnapshot / WindowSnapshot describe what the browser reports right now.
TabRecord is the engine's per-tab lifecycle state, persisted as camelCase JSON.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.rule_models import ExclusionRule


@dataclass(frozen=True)
class TabSnapshot:
    """A tab as reported by the tab provider."""
    id: int
    url: str
    window_id: int
    pinned: bool = False
    audible: bool = False
    active: bool = False
    title: str = ""


@dataclass(frozen=True)
class WindowSnapshot:
    """A browser window and its active tab."""
    id: int
    active_tab_id: Optional[int] = None
    focused: bool = False


class TabRecord(BaseModel):
    """
    Lifecycle record for one tracked tab.

    Attributes:
        url: Address the record was computed for
        last_active_time: Epoch seconds when the countdown started; None while the tab is active
        countdown: Seconds remaining; None means the tab is protected by a rule
        initial_countdown: Countdown value when tracking last restarted
        is_pinned: Tab is pinned
        has_media: Tab is playing audio
        matched_rule: Exclusion rule chosen for the url, if any
        paused: Explicit user protection, independent of rules
        window_id: Owning window
        title: Last known title, kept for the close history
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    url: str
    last_active_time: Optional[float] = Field(default=None, alias="lastActiveTime")
    countdown: Optional[int] = Field(default=None, ge=0)
    initial_countdown: Optional[int] = Field(default=None, ge=0, alias="initialCountdown")
    is_pinned: bool = Field(default=False, alias="isPinned")
    has_media: bool = Field(default=False, alias="hasMedia")
    matched_rule: Optional[ExclusionRule] = Field(default=None, alias="matchedRule")
    paused: bool = False
    window_id: Optional[int] = Field(default=None, alias="windowId")
    title: str = ""

    @property
    def is_counting(self) -> bool:
        return self.last_active_time is not None

    @property
    def is_protected(self) -> bool:
        return self.countdown is None or self.paused

    def remaining(self, now: float) -> Optional[int]:
        """Remaining seconds at `now`; None for rule-protected records."""
        if self.initial_countdown is None or self.countdown is None:
            return None
        if self.last_active_time is None:
            return self.initial_countdown
        return compute_remaining(self.initial_countdown, self.last_active_time, now)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


def compute_remaining(initial_countdown: int, started_at: float, now: float) -> int:
    """
    Remaining countdown from two absolute timestamps, floored at zero.

    Derived from elapsed wall-clock time, so a delayed or skipped sweep
    never under-counts inactivity.
    """
    elapsed = max(0, math.floor(now - started_at))
    return max(0, initial_countdown - elapsed)
