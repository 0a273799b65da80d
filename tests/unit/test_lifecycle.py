"""
Unit tests for lifecycle transitions, driven through the memory provider.
"""
import pytest

from error_handling import TabNotFoundError
from models.history_models import CloseReason
from models.tab_models import TabRecord


def _drain(engine):
    engine.process_pending()


class TestCreatedTransition:
    def test_background_tab_starts_counting(self, engine, provider, clock):
        """Test a tab opened in the background counts from creation"""
        tab = provider.open_tab("https://a.com/", active=False)
        _drain(engine)
        record = engine.store.get(tab.id)
        assert record.last_active_time == clock.now
        assert record.countdown == 1800
        assert record.initial_countdown == 1800
        assert record.matched_rule is None

    def test_foreground_tab_is_active(self, engine, provider):
        """Test a tab opened in the foreground is frozen"""
        tab = provider.open_tab("https://a.com/")
        _drain(engine)
        assert engine.store.get(tab.id).last_active_time is None

    def test_rule_countdown_applies(self, engine, provider, settings_store, make_rule):
        """Test a matched rule sets the countdown, None included"""
        settings_store.update(exclusionRules=[
            make_rule("domain", "slow.com", 7200).to_dict(),
            make_rule("domain_all", "keep.com", None).to_dict(),
        ])
        engine.controller.reload_settings()
        slow = provider.open_tab("https://slow.com/", active=False)
        keep = provider.open_tab("https://www.keep.com/", active=False)
        _drain(engine)
        assert engine.store.get(slow.id).countdown == 7200
        assert engine.store.get(keep.id).countdown is None
        assert engine.store.get(keep.id).matched_rule.type == "domain_all"

    def test_site_timeout_applies_without_rule(self, engine, provider, settings_store, make_rule):
        """Test per-site overrides sit between rules and the global countdown"""
        settings_store.update(
            perSiteTimeouts=[{"pattern": "news.com", "timeout": 300}],
            exclusionRules=[make_rule("path", "news.com/live*", 9000).to_dict()],
        )
        engine.controller.reload_settings()
        article = provider.open_tab("https://news.com/article", active=False)
        live = provider.open_tab("https://news.com/live/feed", active=False)
        _drain(engine)
        assert engine.store.get(article.id).countdown == 300
        assert engine.store.get(live.id).countdown == 9000

    def test_special_pages_follow_setting(self, engine, provider, settings_store):
        """Test special pages are tracked only when autoCloseSpecial is on"""
        tracked = provider.open_tab("chrome://settings", active=False)
        _drain(engine)
        assert tracked.id in engine.store

        settings_store.update(autoCloseSpecial=False)
        engine.controller.on_settings_changed()
        assert tracked.id not in engine.store

    def test_launch_pause_parameter(self, engine, provider):
        """Test quit_group + quit_pause=true starts the tab paused"""
        tab = provider.open_tab("https://a.com/?quit_group=work&quit_pause=true", active=False)
        _drain(engine)
        assert engine.store.get(tab.id).paused is True

    def test_resume_outlives_launch_pause(self, engine, provider):
        """Test resuming a launch-paused tab survives activation and re-evaluation"""
        tab = provider.open_tab("https://a.com/?quit_group=work&quit_pause=true", active=False)
        _drain(engine)
        assert engine.request({"type": "resumeTab", "tabId": tab.id}) == {"success": True}

        provider.activate(tab.id)
        _drain(engine)
        assert engine.store.get(tab.id).paused is False

        assert engine.request({"type": "settingsUpdated"}) == {"success": True}
        assert engine.store.get(tab.id).paused is False

    def test_navigation_to_launch_pause_url(self, engine, provider):
        """Test a url change onto quit_pause=true pauses an existing tab"""
        tab = provider.open_tab("https://a.com/", active=False)
        _drain(engine)
        provider.navigate(tab.id, "https://a.com/?quit_group=work&quit_pause=true")
        _drain(engine)
        assert engine.store.get(tab.id).paused is True


class TestActivation:
    def test_activation_reset(self, engine, provider, clock):
        """Test leaving a tab starts its countdown and returning resets it"""
        first = provider.open_tab("https://a.com/")
        _drain(engine)
        assert engine.store.get(first.id).last_active_time is None

        clock.advance(5)
        second = provider.open_tab("https://b.com/")
        _drain(engine)
        assert engine.store.get(first.id).last_active_time == clock.now
        assert engine.store.get(second.id).last_active_time is None

        clock.advance(100)
        engine.sweep.run()
        assert engine.store.get(first.id).countdown == 1700

        provider.activate(first.id)
        _drain(engine)
        record = engine.store.get(first.id)
        assert record.last_active_time is None
        assert record.countdown == 1800
        assert engine.store.get(second.id).last_active_time == clock.now

    def test_activation_is_per_window(self, engine, provider, clock):
        """Test activating in one window does not start another window's tab"""
        w1 = provider.open_window()
        a = provider.open_tab("https://a.com/", window_id=w1)
        w2 = provider.open_window()
        b = provider.open_tab("https://b.com/", window_id=w2)
        _drain(engine)
        assert engine.store.get(a.id).last_active_time is None
        assert engine.store.get(b.id).last_active_time is None

    def test_paused_survives_activation(self, engine, provider):
        """Test explicit protection is kept across transitions"""
        tab = provider.open_tab("https://a.com/")
        _drain(engine)
        engine.controller.set_paused(tab.id, True)
        provider.open_tab("https://b.com/")
        provider.activate(tab.id)
        _drain(engine)
        assert engine.store.get(tab.id).paused is True


class TestUpdates:
    def test_metadata_update_keeps_countdown(self, engine, provider, clock):
        """Test audio/pinned changes patch in place"""
        tab = provider.open_tab("https://a.com/", active=False)
        _drain(engine)
        started = engine.store.get(tab.id).last_active_time

        clock.advance(50)
        provider.set_audible(tab.id, True)
        provider.set_pinned(tab.id, True)
        _drain(engine)
        record = engine.store.get(tab.id)
        assert record.has_media and record.is_pinned
        assert record.last_active_time == started

    def test_url_change_recomputes_rule_but_keeps_clock(self, engine, provider, settings_store, clock, make_rule):
        """Test a background navigation keeps counting under the new rule"""
        settings_store.update(exclusionRules=[make_rule("domain", "b.com", 60).to_dict()])
        engine.controller.reload_settings()
        tab = provider.open_tab("https://a.com/", active=False)
        _drain(engine)
        started = engine.store.get(tab.id).last_active_time

        clock.advance(30)
        provider.navigate(tab.id, "https://b.com/")
        _drain(engine)
        record = engine.store.get(tab.id)
        assert record.url == "https://b.com/"
        assert record.countdown == 60
        assert record.last_active_time == started

    def test_url_change_on_active_tab_stays_active(self, engine, provider):
        """Test navigating the active tab keeps it frozen"""
        tab = provider.open_tab("https://a.com/")
        _drain(engine)
        provider.navigate(tab.id, "https://a.com/next")
        _drain(engine)
        assert engine.store.get(tab.id).last_active_time is None


class TestRemoval:
    def test_user_close_logs_manual_browser(self, engine, provider):
        """Test removing a tracked tab deletes it and logs the close"""
        tab = provider.open_tab("https://a.com/", title="A")
        keep = provider.open_tab("https://b.com/")
        _drain(engine)
        provider.remove_tab(tab.id)
        _drain(engine)
        assert tab.id not in engine.store
        assert keep.id in engine.store
        entries = engine.controller.history.entries(CloseReason.MANUAL_BROWSER)
        assert [e.tab_id for e in entries] == [tab.id]

    def test_window_close_releases_window(self, engine, provider):
        """Test closing a window clears its bookkeeping"""
        window = provider.open_window()
        provider.open_tab("https://a.com/", window_id=window)
        b = provider.open_tab("https://b.com/", window_id=window)
        _drain(engine)
        assert engine.store.is_active(b.id, window)

        provider.close_window(window)
        _drain(engine)
        assert len(engine.store) == 0
        assert not engine.store.is_active(b.id, window)


class TestUserActions:
    def test_pause_unknown_tab(self, engine):
        """Test pausing a missing tab raises TabNotFoundError"""
        with pytest.raises(TabNotFoundError):
            engine.controller.set_paused(404, True)

    def test_close_with_history(self, engine, provider):
        """Test manual close bypasses the sweep and logs the reason"""
        a = provider.open_tab("https://a.com/", active=False)
        b = provider.open_tab("https://b.com/", active=False)
        _drain(engine)
        engine.controller.close_with_history(a.id)
        engine.controller.close_with_history(b.id, is_batch=True)
        _drain(engine)
        assert provider.get_tab(a.id) is None
        assert len(engine.store) == 0
        reasons = [e.close_reason for e in engine.controller.history.entries()]
        assert reasons == [CloseReason.MANUAL_QUIT, CloseReason.BATCH_CLOSE]

    def test_close_with_history_unknown(self, engine):
        """Test closing a tab that does not exist"""
        with pytest.raises(TabNotFoundError):
            engine.controller.close_with_history(404)


class TestInitialize:
    def test_reconciles_persisted_state(self, engine_factory, provider, clock):
        """Test stale records drop and open tabs are tracked at start-up"""
        engine = engine_factory(initialize=False)
        a = provider.open_tab("https://a.com/")
        b = provider.open_tab("https://b.com/", active=False)

        engine.store.put(999, TabRecord(url="https://gone.com/", countdown=5, initial_countdown=5))
        engine.store.put(b.id, TabRecord(url="https://b.com/", last_active_time=clock.now - 100,
                                         countdown=10, initial_countdown=10, paused=True))
        engine.store.persist()

        engine.initialize()
        assert 999 not in engine.store
        assert engine.store.get(a.id).last_active_time is None
        assert engine.store.is_active(a.id, a.window_id)
        record = engine.store.get(b.id)
        assert record.last_active_time == clock.now - 100
        assert record.paused is True
        assert record.countdown == 1800
