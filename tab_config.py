"""
Configuration models for the idle tab closer.

Two layers of configuration live here:

* ``Settings`` is the user-facing settings document (global countdown, exemption
  flags, per-site timeouts, exclusion rules). It is stored with camelCase keys and
  is read by the engine on every relevant event but never written by it.
* ``EngineConfig`` groups process-level settings (sweep cadence, storage paths,
  browser launch options, logging) the same way for every deployment.

Example:
    >>> from tab_config import EngineConfig, SweepConfig
    >>> config = EngineConfig(sweep=SweepConfig(interval_seconds=5))
    >>> engine = build_engine(config)
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from error_handling import ConfigurationError
from models.rule_models import BaseExclusionRule, ExclusionRule, parse_rule
from utils.event_logger import get_event_logger
from utils.url_utils import host_matches_base, hostname_of


class PerSiteTimeout(BaseModel):
    """Countdown override for a site and its subdomains."""

    model_config = ConfigDict(frozen=True)

    pattern: str = Field(description="Hostname the override applies to (subdomains included)")
    timeout: int = Field(ge=1, description="Countdown in seconds")

    @field_validator("pattern")
    @classmethod
    def _normalise_pattern(cls, value: str) -> str:
        return value.strip().lower()


class Settings(BaseModel):
    """
    Settings document read by the lifecycle engine.

    Missing keys take their defaults and unknown keys are ignored, so a partial
    stored document is merged over the defaults.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    enabled: bool = Field(
        default=True,
        description="Global on/off switch for automatic closing"
    )
    global_countdown: int = Field(
        default=3600,
        ge=1,
        alias="globalCountdown",
        description="Default countdown in seconds for tabs no rule covers"
    )
    auto_close_pinned: bool = Field(
        default=False,
        alias="autoClosePinned",
        description="Close pinned tabs too (off = pinned tabs are exempt)"
    )
    auto_close_special: bool = Field(
        default=True,
        alias="autoCloseSpecial",
        description="Track browser-internal pages (new tab, settings, extensions)"
    )
    pause_on_media: bool = Field(
        default=True,
        alias="pauseOnMedia",
        description="Never close a tab while it plays audio"
    )
    focused_window_only: bool = Field(
        default=True,
        alias="focusedWindowOnly",
        description="Only the active tab of the focused window counts as active"
    )
    per_site_timeouts: List[PerSiteTimeout] = Field(
        default_factory=list,
        alias="perSiteTimeouts",
        description="Per-site countdown overrides"
    )
    exclusion_rules: List[ExclusionRule] = Field(
        default_factory=list,
        alias="exclusionRules",
        description="User-defined exclusion rules"
    )
    history_retention_days: int = Field(
        default=7,
        ge=1,
        alias="historyRetentionDays",
        description="Days a closed tab stays in the close history"
    )

    @field_validator("exclusion_rules", mode="before")
    @classmethod
    def _drop_invalid_rules(cls, value: Any) -> Any:
        """Skip rules that fail validation instead of rejecting the whole document."""
        if not isinstance(value, list):
            return value
        rules = []
        for raw in value:
            if isinstance(raw, BaseExclusionRule):
                rules.append(raw)
                continue
            try:
                rules.append(parse_rule(raw))
            except ValidationError as exc:
                pattern = raw.get("pattern") if isinstance(raw, dict) else repr(raw)
                get_event_logger().rule_invalid(str(pattern), error=str(exc.errors()[0]["msg"]))
        return rules

    def site_timeout_for(self, url: str) -> Optional[int]:
        """
        Most specific per-site override for an address.

        Returns:
            Timeout of the longest matching pattern, or None when none applies
        """
        host = hostname_of(url)
        if not host:
            return None
        best: Optional[PerSiteTimeout] = None
        for entry in self.per_site_timeouts:
            if host_matches_base(host, entry.pattern):
                if best is None or len(entry.pattern) > len(best.pattern):
                    best = entry
        return best.timeout if best else None

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)


class SweepConfig(BaseModel):
    """Sweep scheduler cadence."""

    interval_seconds: float = Field(
        default=10.0,
        gt=0.0,
        description="Seconds between two sweep ticks"
    )


class StorageConfig(BaseModel):
    """Where state, settings and history are kept (None = in memory only)."""

    state_path: Optional[str] = Field(
        default=None,
        description="JSON file for the tab state snapshot"
    )
    settings_path: Optional[str] = Field(
        default=None,
        description="JSON file for the settings document"
    )
    history_path: Optional[str] = Field(
        default=None,
        description="JSON file for the close history"
    )


class BrowserConfig(BaseModel):
    """Configuration for tab providers."""

    provider_type: str = Field(
        default="playwright",
        description="Tab provider type: 'playwright' or 'memory'"
    )
    headless: bool = Field(
        default=False,
        description="Run browser in headless mode"
    )
    channel: Optional[str] = Field(
        default=None,
        description="Browser channel: 'chrome', 'msedge', or None for bundled Chromium"
    )
    user_data_dir: Optional[str] = Field(
        default=None,
        description="User data directory for a persistent context (None = temporary profile)"
    )
    start_urls: List[str] = Field(
        default_factory=list,
        description="Pages opened right after launch"
    )
    viewport_width: int = Field(
        default=1280,
        ge=100,
        description="Browser viewport width"
    )
    viewport_height: int = Field(
        default=800,
        ge=100,
        description="Browser viewport height"
    )


class DebugConfig(BaseModel):
    """Debugging and logging configuration."""

    debug_mode: bool = Field(
        default=True,
        description="Enable debug mode with verbose console logging"
    )


class EngineConfig(BaseModel):
    """
    Main configuration object for the engine process.

    Example:
        >>> config = EngineConfig(
        ...     storage=StorageConfig(state_path="state.json"),
        ...     browser=BrowserConfig(headless=True),
        ... )
    """

    sweep: SweepConfig = Field(
        default_factory=SweepConfig,
        description="Sweep scheduler configuration"
    )
    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="Persistence configuration"
    )
    browser: BrowserConfig = Field(
        default_factory=BrowserConfig,
        description="Browser provider configuration"
    )
    logging: DebugConfig = Field(
        default_factory=DebugConfig,
        description="Debug and logging configuration"
    )

    @classmethod
    def debug(cls) -> EngineConfig:
        """
        Create a configuration for local debugging.

        Returns:
            EngineConfig with verbose logging and a fast sweep
        """
        return cls(
            sweep=SweepConfig(interval_seconds=2.0),
            logging=DebugConfig(debug_mode=True)
        )

    @classmethod
    def production(cls, data_dir: Union[str, Path] = ".idle-tab-closer") -> EngineConfig:
        """
        Create a configuration for day-to-day use.

        Args:
            data_dir: Directory holding the state, settings and history files

        Returns:
            EngineConfig with file-backed storage and quiet logging
        """
        base = Path(data_dir)
        return cls(
            storage=StorageConfig(
                state_path=str(base / "tab_states.json"),
                settings_path=str(base / "settings.json"),
                history_path=str(base / "history.json"),
            ),
            browser=BrowserConfig(user_data_dir=str(base / "profile")),
            logging=DebugConfig(debug_mode=False)
        )

    @classmethod
    def minimal(cls) -> EngineConfig:
        """
        Create a minimal configuration with defaults.

        Returns:
            EngineConfig with all default settings
        """
        return cls()

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> EngineConfig:
        """
        Load a configuration file.

        Raises:
            ConfigurationError: The file is unreadable or does not validate
        """
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
            return cls.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            raise ConfigurationError(
                f"Invalid engine configuration in {path}: {exc}",
                operation="load_config",
            ) from exc
