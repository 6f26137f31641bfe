"""
Prompt & Pause Backend — Timezone Helper Tests
===============================================

What we test:
    ✅ Zone lookup with default fallback and rejection of unknown zones
    ✅ Local date across the date line and DST
    ✅ Reminder time parsing and hourly matching
"""

from datetime import date, datetime, timezone

import pytest

from app.exceptions import ValidationError
from app.services.timezones import (
    get_zone,
    is_reminder_hour,
    local_time_for,
    local_today,
    parse_reminder_time,
)


class TestGetZone:

    def test_empty_name_uses_default(self):
        assert get_zone(None).zone == "Europe/London"
        assert get_zone("  ").zone == "Europe/London"

    def test_known_zone(self):
        assert get_zone("Asia/Tokyo").zone == "Asia/Tokyo"

    def test_unknown_zone_raises_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            get_zone("Mars/Olympus_Mons")
        assert exc_info.value.field == "timezone"


class TestLocalTime:

    def test_london_summer_time_is_utc_plus_one(self):
        local = local_time_for(datetime(2025, 7, 1, 8, 0, tzinfo=timezone.utc), "Europe/London")
        assert local.hour == 9

    def test_london_winter_time_is_utc(self):
        local = local_time_for(datetime(2025, 1, 15, 8, 0, tzinfo=timezone.utc), "Europe/London")
        assert local.hour == 8

    def test_naive_input_is_treated_as_utc(self):
        local = local_time_for(datetime(2025, 1, 15, 8, 0), "Asia/Tokyo")
        assert local.hour == 17

    def test_local_today_ahead_of_utc(self):
        now = datetime(2025, 3, 12, 23, 30, tzinfo=timezone.utc)
        assert local_today(now, "Asia/Tokyo") == date(2025, 3, 13)

    def test_local_today_behind_utc(self):
        now = datetime(2025, 3, 12, 3, 0, tzinfo=timezone.utc)
        assert local_today(now, "America/Los_Angeles") == date(2025, 3, 11)

    def test_local_today_unknown_zone_falls_back_to_utc_date(self):
        now = datetime(2025, 3, 12, 23, 30, tzinfo=timezone.utc)
        assert local_today(now, "Not/AZone") == date(2025, 3, 12)


class TestReminderTime:

    def test_parse_valid(self):
        assert parse_reminder_time("07:45") == (7, 45)
        assert parse_reminder_time(" 21:05 ") == (21, 5)

    def test_parse_invalid_falls_back_to_default(self):
        assert parse_reminder_time("25:00") == (9, 0)
        assert parse_reminder_time("soon") == (9, 0)
        assert parse_reminder_time(None) == (9, 0)

    def test_matches_on_hour_ignoring_minutes(self):
        now = datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)
        assert is_reminder_hour(now, "Europe/London", "09:30") is True
        assert is_reminder_hour(now, "Europe/London", "10:00") is False

    def test_matches_in_users_zone(self):
        # 14:00 UTC is 09:00 in New York in January
        now = datetime(2025, 1, 15, 14, 0, tzinfo=timezone.utc)
        assert is_reminder_hour(now, "America/New_York", "09:00") is True
        assert is_reminder_hour(now, "Europe/London", "09:00") is False

    def test_unknown_zone_raises(self):
        with pytest.raises(ValidationError):
            is_reminder_hour(datetime(2025, 1, 15, 9, tzinfo=timezone.utc), "Bad/Zone", "09:00")
