"""
Request/response protocol offered to the UI layer.

Requests and responses are plain dicts with camelCase keys:

    {"type": "pauseTab", "tabId": 12}  ->  {"success": True}
    {"type": "pauseTab", "tabId": 99}  ->  {"success": False, "error": "Tab not found"}
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from error_handling import TabEngineError, TabNotFoundError

from .lifecycle import LifecycleController


class UIMessage(BaseModel):
    """One inbound UI request."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str
    tab_id: Optional[int] = Field(default=None, alias="tabId")
    is_batch: bool = Field(default=False, alias="isBatch")


NOT_FOUND = {"success": False, "error": "Tab not found"}


class MessageHandler:
    """Answers UI messages against the controller's state."""

    def __init__(self, controller: LifecycleController):
        self.controller = controller
        self._handlers = {
            "getTabStates": self._get_tab_states,
            "getSettings": self._get_settings,
            "pauseTab": lambda msg: self._set_paused(msg, True),
            "resumeTab": lambda msg: self._set_paused(msg, False),
            "settingsUpdated": self._settings_updated,
            "closeTabWithHistory": self._close_tab_with_history,
        }

    def handle(self, message: Dict[str, Any]) -> Dict[str, Any]:
        """
        Dispatch one message.

        Returns:
            Response dict; engine errors become {"success": False, "error": ...}
        """
        try:
            request = UIMessage.model_validate(message)
        except ValidationError as e:
            return {"success": False, "error": f"Invalid message: {e.errors()[0]['msg']}"}

        handler = self._handlers.get(request.type)
        if handler is None:
            return {"success": False, "error": "Unknown message type"}
        try:
            return handler(request)
        except TabNotFoundError:
            return dict(NOT_FOUND)
        except TabEngineError as e:
            return {"success": False, "error": e.message}

    def _get_tab_states(self, request: UIMessage) -> Dict[str, Any]:
        states = {tab_id: record.to_dict() for tab_id, record in self.controller.store.items()}
        return {"success": True, "data": states}

    def _get_settings(self, request: UIMessage) -> Dict[str, Any]:
        return {"success": True, "data": self.controller.settings.to_dict()}

    def _set_paused(self, request: UIMessage, paused: bool) -> Dict[str, Any]:
        if request.tab_id is None:
            return dict(NOT_FOUND)
        self.controller.set_paused(request.tab_id, paused)
        return {"success": True}

    def _settings_updated(self, request: UIMessage) -> Dict[str, Any]:
        self.controller.on_settings_changed()
        return {"success": True}

    def _close_tab_with_history(self, request: UIMessage) -> Dict[str, Any]:
        if request.tab_id is None:
            return dict(NOT_FOUND)
        self.controller.close_with_history(request.tab_id, is_batch=request.is_batch)
        return {"success": True}
