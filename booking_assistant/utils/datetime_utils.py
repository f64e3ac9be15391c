# booking_assistant/utils/datetime_utils.py
"""Timezone and wire-format helpers shared by the scheduling services"""
import re
from datetime import datetime, date, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from booking_assistant.core.exceptions import ValidationError

TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")
OFFSET_PATTERN = re.compile(r"^(?:UTC|GMT)?([+-])(\d{2}):?(\d{2})$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Normalise a datetime to UTC; naive values (as read back from SQLite) are taken as UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_timezone(name: str) -> tzinfo:
    """
    Resolve a business timezone setting.

    Accepts IANA names ("Asia/Karachi") and fixed offsets ("+05:00", "UTC-03:30").
    """
    if not name:
        raise ValidationError("Timezone is not configured")

    match = OFFSET_PATTERN.match(name.strip())
    if match:
        sign, hours, minutes = match.groups()
        delta = timedelta(hours=int(hours), minutes=int(minutes))
        if delta >= timedelta(hours=24):
            raise ValidationError(f"Invalid timezone offset: {name}")
        return timezone(-delta if sign == "-" else delta)

    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown timezone: {name}")


def day_of_week(day: date) -> int:
    """Day of week with 0=Sunday ... 6=Saturday"""
    return (day.weekday() + 1) % 7


def parse_iso_date(value) -> date:
    """Parse a YYYY-MM-DD range boundary"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"Invalid date format: {value!r}. Use YYYY-MM-DD format.")


def parse_iso_datetime(value) -> datetime:
    """Parse an ISO-8601 datetime that carries an explicit UTC offset"""
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value or "").strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(f"Invalid datetime: {value!r}. Use ISO-8601 with an offset, e.g. 2025-12-29T08:00:00+05:00")

    if parsed.tzinfo is None or parsed.utcoffset() is None:
        raise ValidationError(f"Datetime must carry an explicit UTC offset: {value!r}")
    return parsed


def local_midnight(day: date, tz: tzinfo) -> datetime:
    """Start of the given local date as an aware datetime"""
    return datetime(day.year, day.month, day.day, tzinfo=tz)


def date_range(start: date, end: date):
    """Yield each date in [start, end] inclusive"""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
