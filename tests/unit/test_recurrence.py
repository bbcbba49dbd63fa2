"""Unit tests for meetingcal.recurrence."""

from datetime import UTC, date, datetime, time

import pytest

from meetingcal.models import MeetingTemplate, RecurrencePattern, Weekday
from meetingcal.recurrence import RULE_BUILDERS, RecurrenceRule, add_calendar_month, first_matching_day

pytestmark = pytest.mark.unit


def _rule(pattern: str, scheduled_at: str, day: str = "Wednesday", end: str | None = None) -> RecurrenceRule:
    template = MeetingTemplate.model_validate(
        {
            "id": "series",
            "scheduled_at": scheduled_at,
            "timezone": "America/Los_Angeles",
            "is_recurring": True,
            "recurrence_pattern": pattern,
            "recurrence_day": day,
            "recurrence_end_date": end,
        }
    )
    return RecurrenceRule.for_schedule(template.to_schedule())


class TestFirstMatchingDay:
    def test_same_weekday_returns_start(self):
        assert first_matching_day(date(2024, 1, 3), Weekday.WEDNESDAY) == date(2024, 1, 3)

    def test_later_weekday_in_same_week(self):
        assert first_matching_day(date(2024, 1, 3), Weekday.FRIDAY) == date(2024, 1, 5)

    def test_earlier_weekday_wraps_to_next_week(self):
        assert first_matching_day(date(2024, 1, 3), Weekday.MONDAY) == date(2024, 1, 8)


class TestAddCalendarMonth:
    def test_same_day_next_month(self):
        assert add_calendar_month(date(2024, 1, 15)) == date(2024, 2, 15)

    def test_december_rolls_into_next_year(self):
        assert add_calendar_month(date(2024, 12, 15)) == date(2025, 1, 15)

    @pytest.mark.parametrize(
        ("start", "expected"),
        [
            (date(2024, 1, 31), date(2024, 3, 2)),
            (date(2023, 1, 31), date(2023, 3, 3)),
            (date(2024, 3, 31), date(2024, 5, 1)),
        ],
    )
    def test_short_month_overflows(self, start, expected):
        assert add_calendar_month(start) == expected


class TestRecurrenceRule:
    def test_rule_anchors_on_local_date_and_time(self):
        # 2024-01-04T01:00Z is still Wednesday evening in Los Angeles
        rule = _rule("weekly", "2024-01-04T01:00:00Z")

        assert rule.first_local == datetime(2024, 1, 3, 17, 0)
        assert rule.until_local is None

    def test_end_date_covers_whole_local_day(self):
        rule = _rule("weekly", "2024-01-03T17:00:00Z", end="2024-01-17")

        assert rule.until_local == datetime.combine(date(2024, 1, 17), time.max)

    def test_local_starts_between_is_inclusive(self):
        rule = _rule("weekly", "2024-01-03T17:00:00Z")

        starts = rule.local_starts_between(datetime(2024, 1, 3, 9, 0), datetime(2024, 1, 17, 9, 0))

        assert starts == [datetime(2024, 1, 3, 9, 0), datetime(2024, 1, 10, 9, 0), datetime(2024, 1, 17, 9, 0)]

    def test_inverted_bounds_yield_nothing(self):
        rule = _rule("weekly", "2024-01-03T17:00:00Z")

        assert rule.local_starts_between(datetime(2024, 2, 1), datetime(2024, 1, 1)) == []

    def test_series_ended_before_range_yields_nothing(self):
        rule = _rule("weekly", "2024-01-03T17:00:00Z", end="2024-01-10")

        assert rule.local_starts_between(datetime(2024, 2, 1), datetime(2024, 3, 1)) == []

    def test_biweekly_interval(self):
        rule = _rule("biweekly", "2024-01-03T17:00:00Z")

        starts = rule.local_starts_between(datetime(2024, 1, 1), datetime(2024, 2, 1))

        assert [s.date() for s in starts] == [date(2024, 1, 3), date(2024, 1, 17), date(2024, 1, 31)]

    def test_monthly_steps_a_month_then_to_weekday(self):
        # Jan 10 -> Feb 10 (Sat) -> Feb 14; Feb 14 -> Mar 14 (Thu) -> Mar 20
        rule = _rule("monthly", "2024-01-10T17:00:00Z")

        starts = rule.local_starts_between(datetime(2024, 1, 1), datetime(2024, 3, 31))

        assert [s.date() for s in starts] == [date(2024, 1, 10), date(2024, 2, 14), date(2024, 3, 20)]

    def test_monthly_first_weekday_on_other_day(self):
        # Anchor on Monday Jan 1, first Thursday is Jan 4
        rule = _rule("monthly", "2024-01-01T17:00:00Z", day="Thursday")

        starts = rule.local_starts_between(datetime(2024, 1, 1), datetime(2024, 3, 31))

        assert [s.date() for s in starts] == [date(2024, 1, 4), date(2024, 2, 8), date(2024, 3, 14)]

    def test_monthly_respects_end_date(self):
        rule = _rule("monthly", "2024-01-10T17:00:00Z", end="2024-02-29")

        starts = rule.local_starts_between(datetime(2024, 1, 1), datetime(2024, 6, 30))

        assert [s.date() for s in starts] == [date(2024, 1, 10), date(2024, 2, 14)]

    def test_monthly_keeps_local_time(self):
        rule = _rule("monthly", "2024-01-10T09:30:00-08:00")

        starts = rule.local_starts_between(datetime(2024, 3, 1), datetime(2024, 3, 31))

        assert starts == [datetime(2024, 3, 20, 9, 30)]

    def test_every_pattern_has_a_builder(self):
        assert set(RULE_BUILDERS) == set(RecurrencePattern)

    def test_rule_is_independent_of_utc_anchor_time(self):
        first = _rule("weekly", datetime(2024, 1, 3, 17, 0, tzinfo=UTC).isoformat())
        second = _rule("weekly", "2024-01-03T09:00:00-08:00")

        assert first == second
