"""
Shared pytest fixtures for all tests.
"""
import pytest
from unittest.mock import Mock

from models.rule_models import parse_rule
from storage.settings_store import InMemorySettingsStore
from tab_config import DebugConfig, EngineConfig, SweepConfig
from tab_management import build_engine
from tab_provider import MemoryTabProvider
from utils.event_logger import EventLogger, set_event_logger


START = 1_700_000_000.0


class FakeClock:
    """Manually advanced epoch-seconds clock"""

    def __init__(self, start: float = START):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture(autouse=True)
def event_logger():
    """Quiet logger per test; events stay inspectable through history()"""
    logger = EventLogger(debug_mode=False)
    set_event_logger(logger)
    yield logger


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_rule():
    """Factory for exclusion rules from camelCase fields"""
    counter = {"n": 0}

    def _make(rule_type, pattern, countdown=None, enabled=True, rule_id=None):
        counter["n"] += 1
        return parse_rule({
            "id": rule_id or f"rule-{counter['n']}",
            "type": rule_type,
            "pattern": pattern,
            "customCountdown": countdown,
            "enabled": enabled,
        })
    return _make


@pytest.fixture
def settings_store():
    return InMemorySettingsStore({"globalCountdown": 1800})


@pytest.fixture
def provider():
    return MemoryTabProvider()


@pytest.fixture
def engine_factory(provider, settings_store, clock, event_logger):
    """Factory for fully wired engines on the memory provider"""
    def _create(interval_seconds: float = 10.0, initialize: bool = True):
        config = EngineConfig(
            sweep=SweepConfig(interval_seconds=interval_seconds),
            logging=DebugConfig(debug_mode=False),
        )
        engine = build_engine(config, provider=provider, settings_store=settings_store, clock=clock)
        set_event_logger(event_logger)
        if initialize:
            engine.initialize()
        return engine
    return _create


@pytest.fixture
def engine(engine_factory):
    return engine_factory()


@pytest.fixture
def mock_page():
    """Mock Playwright Page object that records its event handlers"""
    def _create(url="https://example.com", title="Example Page"):
        page = Mock()
        page.url = url
        page.title.return_value = title
        page.handlers = {}
        page.on.side_effect = lambda name, handler: page.handlers.setdefault(name, handler)
        page.main_frame = Mock(name="main_frame")
        page.evaluate.return_value = {"audible": False, "focused": False}
        return page
    return _create


@pytest.fixture
def mock_browser_context():
    """Mock browser context that records its 'page' handler"""
    context = Mock()
    context.pages = []
    context.handlers = {}
    context.on.side_effect = lambda name, handler: context.handlers.setdefault(name, handler)
    return context
