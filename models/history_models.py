"""Close-history models."""
from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from utils.url_utils import hostname_of


class CloseReason(str, Enum):
    """Why a tab was closed"""
    TIMEOUT = "timeout"
    MANUAL_QUIT = "manual_quit"
    MANUAL_BROWSER = "manual_browser"
    BATCH_CLOSE = "batch_close"


class HistoryEntry(BaseModel):
    """One closed tab in the history log."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    tab_id: Optional[int] = Field(default=None, alias="tabId")
    url: str
    title: str = ""
    domain: str = ""
    close_reason: CloseReason = Field(alias="closeReason")
    timestamp: float = Field(default_factory=time.time)

    @classmethod
    def for_tab(
        cls,
        tab_id: Optional[int],
        url: str,
        title: str,
        reason: CloseReason,
        timestamp: float,
    ) -> HistoryEntry:
        return cls(
            tab_id=tab_id,
            url=url,
            title=title or url,
            domain=hostname_of(url),
            close_reason=reason,
            timestamp=timestamp,
        )

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
