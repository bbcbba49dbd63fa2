"""DateTime parsing and wall-clock utilities for meeting scheduling.

Stored meeting times arrive as ISO-8601 strings from the hosted database.
Everything the expander compares is an aware UTC ``datetime``; local
wall-clock values only exist while projecting a recurring meeting onto a
calendar day in its own zone.
"""

import logging
from datetime import UTC, date, datetime, time, timedelta
from typing import Any, Optional
from zoneinfo import ZoneInfo

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)


def ensure_timezone_aware(dt: datetime) -> datetime:
    """Ensure datetime is timezone-aware.

    Args:
        dt: Datetime to make timezone-aware

    Returns:
        Timezone-aware datetime (UTC if originally naive)
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def parse_instant(value: Any) -> datetime:
    """Parse an absolute instant and normalize it to UTC.

    Accepts aware or naive ``datetime`` objects and ISO-8601 strings with a
    ``Z`` suffix, an offset, or no offset at all. Naive values are read as UTC,
    matching how the hosted database serializes ``timestamptz`` columns.

    Raises:
        ValueError: If the value is empty or cannot be parsed
    """
    if isinstance(value, datetime):
        return ensure_timezone_aware(value).astimezone(UTC)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=UTC)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected an ISO-8601 instant, got {value!r}")

    try:
        dt = date_parser.isoparse(value.strip())
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Invalid ISO-8601 instant {value!r}") from e
    return ensure_timezone_aware(dt).astimezone(UTC)


def parse_calendar_date(value: Any) -> date:
    """Parse a calendar date.

    A full instant is accepted too; its date part is used as written, without
    converting it to another zone first.

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected a calendar date, got {value!r}")

    text = value.strip()
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        return date_parser.isoparse(text).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Invalid calendar date {value!r}") from e


def localize_wall_clock(day: date, at: time, tz: ZoneInfo) -> datetime:
    """Build the UTC instant for wall-clock ``at`` on ``day`` in zone ``tz``.

    The wall-clock value is kept across DST transitions, so the UTC instant
    shifts by the zone's offset change. Times inside a spring-forward gap
    resolve with the pre-transition offset (``fold=0``).
    """
    local = datetime.combine(day, at.replace(tzinfo=None), tzinfo=tz)
    return local.astimezone(UTC)


def to_local(dt: datetime, tz: ZoneInfo) -> datetime:
    """Convert an instant to wall-clock time in ``tz``."""
    return ensure_timezone_aware(dt).astimezone(tz)


def start_of_local_day(day: date, tz: ZoneInfo) -> datetime:
    """Return the UTC instant of local midnight starting ``day``."""
    return localize_wall_clock(day, time.min, tz)


def end_of_local_day(day: date, tz: ZoneInfo) -> datetime:
    """Return the UTC instant of the last microsecond of local ``day``."""
    return start_of_local_day(day + timedelta(days=1), tz) - timedelta(microseconds=1)


def format_clock_time(dt: datetime, target_tz: Optional[ZoneInfo] = None) -> str:
    """Format a datetime as a 12-hour clock string.

    Examples:
        >>> from zoneinfo import ZoneInfo
        >>> format_clock_time(datetime(2024, 1, 3, 17, 0, tzinfo=UTC), ZoneInfo("America/Los_Angeles"))
        '9:00 AM'
        >>> format_clock_time(datetime(2024, 1, 3, 12, 5, tzinfo=UTC))
        '12:05 PM'
    """
    local_time = dt.astimezone(target_tz) if target_tz is not None else dt
    hour = local_time.hour % 12 or 12
    meridiem = "AM" if local_time.hour < 12 else "PM"
    return f"{hour}:{local_time.minute:02d} {meridiem}"


def format_short_date(dt: datetime, target_tz: Optional[ZoneInfo] = None) -> str:
    """Format a datetime as e.g. ``Wed, Jan 3``."""
    local_time = dt.astimezone(target_tz) if target_tz is not None else dt
    return f"{local_time:%a}, {local_time:%b} {local_time.day}"


def serialize_iso(dt: Optional[datetime]) -> Optional[str]:
    """Serialize an instant as ISO-8601 UTC with a ``Z`` suffix."""
    if dt is None:
        return None
    return ensure_timezone_aware(dt).astimezone(UTC).isoformat().replace("+00:00", "Z")
