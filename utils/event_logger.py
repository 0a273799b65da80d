"""
Simple, robust event-driven logging system for the idle tab closer.

Design principles:
- Non-blocking: logging errors never break the engine
- Simple: minimal API surface
- Flexible: easy to customize output via callbacks
"""
from enum import Enum
from typing import Any, Dict, List, Optional, Callable
from dataclasses import dataclass, field
from datetime import datetime
import time


class EventType(str, Enum):
    """All event types that can be logged"""
    # Engine events
    ENGINE_START = "engine_start"
    ENGINE_STOP = "engine_stop"

    # Tab lifecycle events
    TAB_CREATED = "tab_created"
    TAB_ACTIVATED = "tab_activated"
    TAB_UPDATED = "tab_updated"
    TAB_REMOVED = "tab_removed"
    TAB_PAUSED = "tab_paused"
    TAB_RESUMED = "tab_resumed"
    TABS_CLOSED = "tabs_closed"

    # Rule events
    RULE_MATCHED = "rule_matched"
    RULE_INVALID = "rule_invalid"

    # Sweep events
    SWEEP_COMPLETE = "sweep_complete"

    # Settings / storage events
    SETTINGS_RELOADED = "settings_reloaded"
    PERSISTENCE_FAILURE = "persistence_failure"

    # System events
    SYSTEM_INFO = "system_info"
    SYSTEM_WARNING = "system_warning"
    SYSTEM_ERROR = "system_error"
    SYSTEM_DEBUG = "system_debug"


@dataclass
class LogEvent:
    """Structured event data"""
    event_type: EventType
    message: str
    timestamp: float = field(default_factory=time.time)
    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, SUCCESS
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            "event_type": self.event_type.value,
            "message": self.message,
            "timestamp": self.timestamp,
            "timestamp_iso": datetime.fromtimestamp(self.timestamp).isoformat(),
            "level": self.level,
            "details": self.details
        }


class EventLogger:
    """
    Simple, robust event logger.

    In debug mode: prints directly to console
    In normal mode: only calls callbacks (no prints)
    """

    def __init__(self, debug_mode: bool = True, max_history: int = 1000):
        self.debug_mode = debug_mode
        self._callbacks: List[Callable[[LogEvent], None]] = []
        self._event_history: List[LogEvent] = []
        self._max_history = max_history

    def register_callback(self, callback: Callable[[LogEvent], None]) -> None:
        """Register a callback for all events"""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def history(self, event_type: Optional[EventType] = None) -> List[LogEvent]:
        """Recent events, optionally filtered by type"""
        if event_type is None:
            return list(self._event_history)
        return [e for e in self._event_history if e.event_type == event_type]

    def _safe_emit(self, event: LogEvent) -> None:
        """Safely emit an event - never raises exceptions"""
        try:
            self._event_history.append(event)
            if len(self._event_history) > self._max_history:
                self._event_history.pop(0)
        except Exception:
            pass  # Ignore history errors

        if self.debug_mode:
            try:
                self._print_event(event)
            except Exception:
                pass  # Ignore print errors

        for callback in self._callbacks:
            try:
                callback(event)
            except Exception:
                pass  # Ignore callback errors

    def _print_event(self, event: LogEvent) -> None:
        """Print event in debug mode"""
        level_emoji = {
            "DEBUG": "🔍",
            "INFO": "ℹ️",
            "WARNING": "⚠️",
            "ERROR": "❌",
            "SUCCESS": "✅"
        }
        emoji = level_emoji.get(event.level, "•")
        print(f"{emoji} {event.message}")

        if event.details:
            for key, value in event.details.items():
                if value is not None and key not in ['timestamp', 'timestamp_iso']:
                    if isinstance(value, (str, int, float, bool)):
                        print(f"   {key}: {value}")

    def emit(self, event_type: EventType, message: str, level: str = "INFO", **details) -> None:
        """Emit an event - safe wrapper that never raises"""
        try:
            event = LogEvent(
                event_type=event_type,
                message=message,
                level=level,
                details=details
            )
            self._safe_emit(event)
        except Exception:
            if self.debug_mode:
                try:
                    print(f"⚠️ Event logger error: {message}")
                except Exception:
                    pass

    # Convenience methods
    def engine_start(self, tab_count: int, **details):
        self.emit(EventType.ENGINE_START, f"Idle tab closer started with {tab_count} tabs", "INFO",
                  tab_count=tab_count, **details)

    def engine_stop(self, **details):
        self.emit(EventType.ENGINE_STOP, "Idle tab closer stopped", "INFO", **details)

    def tab_created(self, tab_id: int, url: str = None, **details):
        msg = f"Tab created: {tab_id}"
        if url:
            msg += f" ({url})"
        self.emit(EventType.TAB_CREATED, msg, "DEBUG", tab_id=tab_id, url=url, **details)

    def tab_activated(self, tab_id: int, window_id: int = None, previous_tab_id: int = None, **details):
        msg = f"Tab activated: {tab_id}"
        if previous_tab_id is not None:
            msg += f" (countdown started on {previous_tab_id})"
        self.emit(EventType.TAB_ACTIVATED, msg, "DEBUG",
                  tab_id=tab_id, window_id=window_id, previous_tab_id=previous_tab_id, **details)

    def tab_updated(self, tab_id: int, fields: List[str], **details):
        self.emit(EventType.TAB_UPDATED, f"Tab updated: {tab_id} [{', '.join(fields)}]", "DEBUG",
                  tab_id=tab_id, fields=",".join(fields), **details)

    def tab_removed(self, tab_id: int, window_released: bool = False, **details):
        msg = f"Tab removed: {tab_id}"
        if window_released:
            msg += " (window released)"
        self.emit(EventType.TAB_REMOVED, msg, "DEBUG", tab_id=tab_id, window_released=window_released, **details)

    def tab_paused(self, tab_id: int, paused: bool, **details):
        if paused:
            self.emit(EventType.TAB_PAUSED, f"Tab paused: {tab_id}", "INFO", tab_id=tab_id, **details)
        else:
            self.emit(EventType.TAB_RESUMED, f"Tab resumed: {tab_id}", "INFO", tab_id=tab_id, **details)

    def tabs_closed(self, tab_ids: List[int], reason: str, **details):
        msg = f"Closed {len(tab_ids)} tab(s) ({reason})"
        self.emit(EventType.TABS_CLOSED, msg, "SUCCESS",
                  count=len(tab_ids), reason=reason, tab_ids=",".join(str(t) for t in tab_ids), **details)

    def rule_matched(self, tab_id: int, url: str, rule_id: str, rule_type: str, **details):
        msg = f"Rule {rule_id} ({rule_type}) applies to tab {tab_id}"
        self.emit(EventType.RULE_MATCHED, msg, "DEBUG",
                  tab_id=tab_id, url=url, rule_id=rule_id, rule_type=rule_type, **details)

    def rule_invalid(self, pattern: str, error: str = None, **details):
        msg = f"Invalid rule pattern ignored: {pattern}"
        if error:
            msg += f" - {error}"
        self.emit(EventType.RULE_INVALID, msg, "WARNING", pattern=pattern, error=error, **details)

    def sweep_complete(self, checked: int, closed: int, **details):
        level = "INFO" if closed else "DEBUG"
        self.emit(EventType.SWEEP_COMPLETE, f"Sweep checked {checked} tab(s), {closed} expired", level,
                  checked=checked, closed=closed, **details)

    def settings_reloaded(self, rule_count: int, **details):
        self.emit(EventType.SETTINGS_RELOADED, f"Settings reloaded ({rule_count} exclusion rules)", "DEBUG",
                  rule_count=rule_count, **details)

    def persistence_failure(self, operation: str, error: Exception = None, **details):
        msg = f"Failed to {operation}"
        if error:
            msg += f" - {error}"
        self.emit(EventType.PERSISTENCE_FAILURE, msg, "ERROR",
                  operation=operation, error=str(error) if error else None, **details)

    def system_info(self, message: str, **details):
        self.emit(EventType.SYSTEM_INFO, message, "INFO", **details)

    def system_warning(self, message: str, **details):
        self.emit(EventType.SYSTEM_WARNING, message, "WARNING", **details)

    def system_error(self, message: str, error: Exception = None, **details):
        msg = message
        if error:
            msg += f" - {str(error)}"
        self.emit(EventType.SYSTEM_ERROR, msg, "ERROR", error=str(error) if error else None, **details)

    def system_debug(self, message: str, **details):
        self.emit(EventType.SYSTEM_DEBUG, message, "DEBUG", **details)


# Global instance
_global_event_logger: Optional[EventLogger] = None

def get_event_logger() -> EventLogger:
    """Get the global event logger instance"""
    global _global_event_logger
    if _global_event_logger is None:
        _global_event_logger = EventLogger(debug_mode=True)
    return _global_event_logger

def set_event_logger(logger: EventLogger) -> None:
    """Set the global event logger instance"""
    global _global_event_logger
    _global_event_logger = logger
