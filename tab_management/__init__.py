"""
Tab Management - lifecycle engine for idle tab closing.

Tracks a countdown per tab from browser events and closes tabs that stay
inactive past their countdown, honouring exclusion rules and user pauses.
"""
from .tab_state_store import TabStateStore
from .lifecycle import LifecycleController
from .sweep import SweepResult, SweepScheduler
from .event_queue import TabEventQueue
from .messages import MessageHandler, UIMessage
from .actor import TabLifecycleActor, build_engine

__all__ = [
    "TabStateStore",
    "LifecycleController",
    "SweepResult",
    "SweepScheduler",
    "TabEventQueue",
    "MessageHandler",
    "UIMessage",
    "TabLifecycleActor",
    "build_engine",
]
