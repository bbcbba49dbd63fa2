"""Timezone lookup and clock utilities for meetingcal."""

from __future__ import annotations

import datetime
import logging
import os
import zoneinfo

logger = logging.getLogger(__name__)

# Default fallback timezone for all timezone operations
DEFAULT_SERVER_TIMEZONE = "America/Los_Angeles"  # Pacific timezone

# Environment variable used to freeze "now" for tests and demos
TEST_TIME_ENV_VAR = "MEETINGCAL_TEST_TIME"

# Short labels shown next to a meeting's original time, e.g. "9:00 AM PT"
US_ZONE_ABBREVIATIONS: dict[str, str] = {
    "America/New_York": "ET",
    "America/Chicago": "CT",
    "America/Denver": "MT",
    "America/Los_Angeles": "PT",
}


class TimeProvider:
    """Provides current time with test time override support.

    This is the only place in the package that reads the wall clock. Callers
    capture ``now`` once per request and pass it down explicitly.
    """

    def now_utc(self) -> datetime.datetime:
        """Return current UTC time with tzinfo.

        Can be overridden via the MEETINGCAL_TEST_TIME environment variable
        (ISO 8601, e.g. "2024-01-10T09:15:00-08:00"). Naive values are UTC.
        """
        test_time = os.environ.get(TEST_TIME_ENV_VAR)
        if test_time:
            try:
                from dateutil import parser as date_parser

                dt = date_parser.isoparse(test_time)
                if dt.tzinfo is not None:
                    return dt.astimezone(datetime.UTC)
                return dt.replace(tzinfo=datetime.UTC)

            except (ValueError, OverflowError) as e:
                logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV_VAR, test_time, e)

        return datetime.datetime.now(datetime.UTC)


# Singleton instance for global use
_time_provider = TimeProvider()


def now_utc() -> datetime.datetime:
    """Get current UTC time (convenience function)."""
    return _time_provider.now_utc()


def is_valid_timezone(name: str | None) -> bool:
    """Return True if ``name`` is a loadable IANA zone identifier."""
    if not name or not isinstance(name, str):
        return False
    try:
        zoneinfo.ZoneInfo(name)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        return False
    return True


def resolve_zone(name: str | None, fallback: str = DEFAULT_SERVER_TIMEZONE) -> zoneinfo.ZoneInfo:
    """Load ``name`` as a ZoneInfo, falling back when it is missing or unknown.

    Args:
        name: IANA zone identifier, may be None
        fallback: Zone used when ``name`` cannot be loaded

    Returns:
        ZoneInfo instance
    """
    if is_valid_timezone(name):
        return zoneinfo.ZoneInfo(name)  # type: ignore[arg-type]
    if name:
        logger.warning("Unknown timezone %r, falling back to %s", name, fallback)
    return zoneinfo.ZoneInfo(fallback)


def tz_abbreviation(zone_name: str) -> str:
    """Return the short US label for a zone, or the IANA identifier itself.

    >>> tz_abbreviation("America/Los_Angeles")
    'PT'
    >>> tz_abbreviation("Europe/London")
    'Europe/London'
    """
    return US_ZONE_ABBREVIATIONS.get(zone_name, zone_name)
