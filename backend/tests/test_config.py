"""
test_config.py — Unit tests for timezone parsing and EngineConfig.

All tests are pure unit tests; no database or external services required.
"""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from adherence.config import EngineConfig, daily_run_hour_utc, parse_timezone


class TestParseTimezone:

    @pytest.mark.parametrize("value, hours, minutes", [
        ("+02:00", 2, 0),
        ("+0200", 2, 0),
        ("-05:30", -5, -30),
        ("UTC+03:00", 3, 0),
    ])
    def test_fixed_offsets(self, value, hours, minutes):
        tz = parse_timezone(value)
        assert tz.utcoffset(None) == timedelta(hours=hours, minutes=minutes)

    @pytest.mark.parametrize("value", ["UTC", "utc", "Z", ""])
    def test_utc_aliases(self, value):
        assert parse_timezone(value) is timezone.utc

    def test_iana_zone(self):
        assert parse_timezone("Africa/Cairo") == ZoneInfo("Africa/Cairo")

    @pytest.mark.parametrize("value", ["Mars/Olympus", "+25:00", "two hours"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_timezone(value)


class TestEngineConfig:

    def test_defaults(self):
        config = EngineConfig()
        assert config.batch_size == 50
        assert config.break_tolerance_minutes == 5
        assert config.local_timezone.utcoffset(None) == timedelta(hours=2)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("ADHERENCE_TIMEZONE", "-04:00")
        monkeypatch.setenv("ADHERENCE_BATCH_SIZE", "25")
        monkeypatch.setenv("ADHERENCE_BREAK_TOLERANCE_MINUTES", "3")
        config = EngineConfig.from_env()
        assert config.local_timezone.utcoffset(None) == timedelta(hours=-4)
        assert config.batch_size == 25
        assert config.break_tolerance_minutes == 3

    def test_non_integer_env_rejected(self, monkeypatch):
        monkeypatch.setenv("ADHERENCE_BATCH_SIZE", "fifty")
        with pytest.raises(ValueError):
            EngineConfig.from_env()

    def test_batch_size_must_be_positive(self):
        with pytest.raises(ValueError):
            EngineConfig(batch_size=0)

    def test_local_yesterday_uses_configured_zone(self):
        """23:30 UTC on the 10th is already the 11th at +02:00, so yesterday is the 10th."""
        config = EngineConfig(local_timezone=timezone(timedelta(hours=2)))
        now = datetime(2025, 3, 10, 23, 30, tzinfo=timezone.utc)
        assert config.local_today(now).isoformat() == "2025-03-11"
        assert config.local_yesterday(now).isoformat() == "2025-03-10"

    def test_daily_run_hour(self, monkeypatch):
        monkeypatch.delenv("ADHERENCE_DAILY_RUN_HOUR_UTC", raising=False)
        assert daily_run_hour_utc() == 22
        monkeypatch.setenv("ADHERENCE_DAILY_RUN_HOUR_UTC", "24")
        with pytest.raises(ValueError):
            daily_run_hour_utc()
