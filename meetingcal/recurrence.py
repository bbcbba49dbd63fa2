"""Recurrence rules for recurring meeting templates.

Each ``RecurrencePattern`` maps to one rule builder. Rules are evaluated on
naive wall-clock datetimes in the meeting's own zone, so a 9:00 AM meeting
stays at 9:00 AM local time across DST changes; the caller converts each
local start to UTC.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from dateutil.rrule import FR, MO, SA, SU, TH, TU, WE, WEEKLY, rrule

from .exceptions import RecurrenceError
from .models import RecurrencePattern, RecurringMeeting, Weekday

logger = logging.getLogger(__name__)

_RRULE_WEEKDAYS = (MO, TU, WE, TH, FR, SA, SU)

RuleBuilder = Callable[[datetime, Weekday, Optional[datetime]], Iterable[datetime]]


def first_matching_day(start: date, target: Weekday) -> date:
    """Return the first date on or after ``start`` that falls on ``target``."""
    return start + timedelta(days=(target.index - start.weekday()) % 7)


def add_calendar_month(day: date) -> date:
    """Return the same day-of-month one month later, overflowing short months.

    Jan 31, 2024 becomes Mar 2 rather than being clamped
    to the end of February.
    """
    year, month = divmod(day.month, 12)
    first_of_next = date(day.year + year, month + 1, 1)
    return first_of_next + timedelta(days=day.day - 1)


def _weekly(first: datetime, day: Weekday, until: Optional[datetime]) -> rrule:
    return rrule(WEEKLY, interval=1, byweekday=_RRULE_WEEKDAYS[day.index], dtstart=first, until=until)


def _biweekly(first: datetime, day: Weekday, until: Optional[datetime]) -> rrule:
    return rrule(WEEKLY, interval=2, byweekday=_RRULE_WEEKDAYS[day.index], dtstart=first, until=until)


def _monthly(first: datetime, day: Weekday, until: Optional[datetime]) -> Iterator[datetime]:
    # One calendar month after the previous start, then on to the next ``day``.
    current = first
    while until is None or current <= until:
        yield current
        next_day = first_matching_day(add_calendar_month(current.date()), day)
        current = datetime.combine(next_day, first.time())


RULE_BUILDERS: dict[RecurrencePattern, RuleBuilder] = {
    RecurrencePattern.WEEKLY: _weekly,
    RecurrencePattern.BIWEEKLY: _biweekly,
    RecurrencePattern.MONTHLY: _monthly,
}


@dataclass(frozen=True)
class RecurrenceRule:
    """Wall-clock recurrence of one series.

    Attributes:
        pattern: Cadence of the series
        day: Weekday every occurrence lands on
        first_local: Naive local start of the first occurrence
        until_local: Naive local end of the last allowed day, if bounded
    """

    pattern: RecurrencePattern
    day: Weekday
    first_local: datetime
    until_local: Optional[datetime] = None

    @classmethod
    def for_schedule(cls, schedule: RecurringMeeting) -> RecurrenceRule:
        """Derive the rule from a recurring schedule.

        The series starts on the first ``day`` on or after the anchor's local
        date, at the anchor's local time of day.
        """
        tz = ZoneInfo(schedule.timezone)
        anchor_day = schedule.anchor_at.astimezone(tz).date()
        first_local = datetime.combine(first_matching_day(anchor_day, schedule.day), schedule.anchor_time)
        until_local = (
            datetime.combine(schedule.end_date, time.max) if schedule.end_date is not None else None
        )
        return cls(
            pattern=schedule.pattern,
            day=schedule.day,
            first_local=first_local,
            until_local=until_local,
        )

    def build(self) -> Iterable[datetime]:
        """Build the ascending, lazily evaluated local starts of this series.

        Raises:
            RecurrenceError: If no builder is registered for the pattern
        """
        builder = RULE_BUILDERS.get(self.pattern)
        if builder is None:
            raise RecurrenceError(f"Unsupported recurrence pattern {self.pattern!r}")
        return builder(self.first_local, self.day, self.until_local)

    def local_starts_between(self, after: datetime, before: datetime) -> list[datetime]:
        """Return naive local starts within ``[after, before]``, ascending.

        Both bounds are naive wall-clock values in the series zone.
        """
        if after > before:
            return []
        if self.until_local is not None and self.until_local < after:
            return []
        starts = []
        for start in self.build():
            if start > before:
                break
            if start >= after:
                starts.append(start)
        return starts
