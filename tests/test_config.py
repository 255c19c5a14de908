"""Tests for settings loading and validation."""

from datetime import datetime, timedelta, timezone

import pytest

from resultcache.clock import FixedClock, SystemClock, clock_from_settings
from resultcache.config import Settings, load_settings
from resultcache.errors import ConfigurationError


class TestDefaults:
    def test_windows(self):
        s = load_settings()
        assert s.expire_after == timedelta(hours=1)
        assert s.reuse_window == timedelta(seconds=60)
        assert s.cutoff_slack == timedelta(seconds=10)
        assert s.expiry_enabled is True
        assert s.reuse_enabled is True

    def test_unset_windows_disable_features(self):
        s = load_settings(expire_after_ms=None, reuse_window_ms=None)
        assert s.expire_after is None
        assert s.reuse_window is None
        assert s.expiry_enabled is False
        assert s.reuse_enabled is False

    def test_zero_reuse_window_disables_reuse(self):
        assert load_settings(reuse_window_ms=0).reuse_enabled is False

    @pytest.mark.parametrize("raw", ["", "null", "None", "none"])
    def test_blank_env_disables_expiry(self, monkeypatch, raw):
        monkeypatch.setenv("RESULTCACHE_EXPIRE_AFTER_MS", raw)
        s = load_settings()
        assert s.expire_after is None
        assert s.expiry_enabled is False

    @pytest.mark.parametrize("raw", ["", "null"])
    def test_blank_env_disables_reuse(self, monkeypatch, raw):
        monkeypatch.setenv("RESULTCACHE_REUSE_WINDOW_MS", raw)
        assert load_settings().reuse_enabled is False

    def test_env_expiry_value(self, monkeypatch):
        monkeypatch.setenv("RESULTCACHE_EXPIRE_AFTER_MS", "2500")
        assert load_settings().expire_after == timedelta(milliseconds=2500)

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("RESULTCACHE_REUSE_WINDOW_MS", "500")
        monkeypatch.setenv("RESULTCACHE_CUTOFF_SLACK_MS", "0")
        s = Settings()
        assert s.reuse_window == timedelta(milliseconds=500)
        assert s.cutoff_slack == timedelta(0)


class TestValidation:
    @pytest.mark.parametrize("field", ["expire_after_ms", "reuse_window_ms", "cutoff_slack_ms"])
    def test_negative_duration_rejected(self, field):
        with pytest.raises(ConfigurationError, match=field):
            load_settings(**{field: -1})

    def test_non_positive_interval_rejected(self):
        with pytest.raises(ConfigurationError):
            load_settings(reap_interval_seconds=0)

    def test_lock_table_size_rejected(self):
        with pytest.raises(ConfigurationError):
            load_settings(lock_table_size=0)

    def test_unparseable_value_rejected(self):
        with pytest.raises(ConfigurationError):
            load_settings(expire_after_ms="soon")

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            load_settings(cutoff_slack_ms=-5)


class TestClockSelection:
    def test_system_clock_by_default(self):
        assert isinstance(clock_from_settings(load_settings()), SystemClock)

    def test_clock_override(self):
        when = datetime(2026, 1, 1, tzinfo=timezone.utc)
        clock = clock_from_settings(load_settings(clock_override=when))
        assert isinstance(clock, FixedClock)
        assert clock.now() == when


class TestFixedClock:
    def test_advance(self):
        clock = FixedClock(datetime(2026, 1, 1, tzinfo=timezone.utc))
        assert clock.advance(milliseconds=250) == datetime(2026, 1, 1, 0, 0, 0, 250000, tzinfo=timezone.utc)

    def test_naive_start_is_utc(self):
        clock = FixedClock(datetime(2026, 1, 1))
        assert clock.now().tzinfo == timezone.utc

    def test_set(self):
        clock = FixedClock()
        when = datetime(2030, 5, 5, tzinfo=timezone.utc)
        clock.set(when)
        assert clock.now() == when

    def test_system_clock_is_aware(self):
        assert SystemClock().now().tzinfo is not None
