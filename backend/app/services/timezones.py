"""
Prompt & Pause Backend — Timezone Helpers
==========================================

What:  Local-time helpers for users spread across timezones.
How:   pytz zones; UTC instants are converted with astimezone() so DST
       transitions are handled by the tz database.
Who:   The daily prompt cron job (reminder-hour matching) and any service
       that needs "today" in the user's own calendar.
"""

import logging
from datetime import date, datetime, timezone
from typing import Optional, Tuple

import pytz

from app.config import settings
from app.exceptions import ValidationError

logger = logging.getLogger(__name__)


def get_zone(tz_name: Optional[str]):
    """
    Resolve an IANA zone name, falling back to the configured default when empty.

    Raises:
        ValidationError: The name is not a known IANA zone.
    """
    name = (tz_name or "").strip() or settings.default_timezone
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        raise ValidationError(
            message=f"Unknown timezone '{name}'",
            field="timezone",
        )


def local_time_for(now_utc: datetime, tz_name: Optional[str]) -> datetime:
    """Convert a UTC instant to the wall-clock time in `tz_name`."""
    if now_utc.tzinfo is None:
        now_utc = now_utc.replace(tzinfo=timezone.utc)
    return now_utc.astimezone(get_zone(tz_name))


def local_today(now_utc: datetime, tz_name: Optional[str]) -> date:
    """The user's calendar date; falls back to the UTC date for unknown zones."""
    try:
        return local_time_for(now_utc, tz_name).date()
    except ValidationError:
        logger.warning("Unknown timezone %r, using UTC date", tz_name)
        return now_utc.astimezone(timezone.utc).date()


def parse_reminder_time(value: Optional[str]) -> Tuple[int, int]:
    """
    Parse 'HH:MM' into (hour, minute).

    Empty or malformed values fall back to the configured default reminder time.
    """
    for candidate in (value, settings.default_reminder_time):
        if not candidate:
            continue
        parts = candidate.strip().split(":")
        if len(parts) < 2 or not parts[0].isdigit() or not parts[1].isdigit():
            continue
        hour, minute = int(parts[0]), int(parts[1])
        if 0 <= hour <= 23 and 0 <= minute <= 59:
            return hour, minute
    return 9, 0


def is_reminder_hour(now_utc: datetime, tz_name: Optional[str], reminder_time: Optional[str]) -> bool:
    """
    True when the current local hour in `tz_name` equals the reminder hour.

    The cron runs hourly, so minutes are ignored: a 09:30 reminder goes out
    in the 09:00 run.

    Raises:
        ValidationError: Unknown timezone.
    """
    hour, _ = parse_reminder_time(reminder_time)
    return local_time_for(now_utc, tz_name).hour == hour
