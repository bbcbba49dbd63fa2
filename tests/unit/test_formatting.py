"""Unit tests for meetingcal.formatting."""

from datetime import UTC, datetime
from zoneinfo import ZoneInfo

import pytest

from meetingcal.expander import expand
from meetingcal.formatting import (
    build_meeting_details,
    build_reminder_text,
    format_dual_time,
    format_relative_day,
    format_time,
    occurrence_to_api_model,
    status_label,
)
from meetingcal.models import OccurrenceStatus

pytestmark = pytest.mark.unit

FIVE_PM_UTC = datetime(2024, 1, 3, 17, 0, tzinfo=UTC)


@pytest.fixture
def huddle(weekly_row, january_window, fixed_now):
    """The Jan 10 weekly occurrence, live at ``fixed_now``."""
    return expand([weekly_row], january_window, now=fixed_now)[1]


class TestDualTime:
    def test_same_zone_shows_single_time(self):
        assert format_dual_time(FIVE_PM_UTC, "America/Los_Angeles", "America/Los_Angeles") == "9:00 AM"

    def test_other_us_zone_uses_abbreviation(self):
        assert format_dual_time(FIVE_PM_UTC, "America/Los_Angeles", "America/New_York") == "12:00 PM (9:00 AM PT)"

    def test_non_us_zone_uses_identifier(self):
        result = format_dual_time(FIVE_PM_UTC, "Europe/London", ZoneInfo("America/New_York"))

        assert result == "12:00 PM (5:00 PM Europe/London)"

    @pytest.mark.parametrize("meeting_zone", [None, "", "Not/AZone"])
    def test_missing_or_unknown_meeting_zone_never_dual_renders(self, meeting_zone):
        assert format_dual_time(FIVE_PM_UTC, meeting_zone, "America/New_York") == "12:00 PM"

    def test_format_time_accepts_name(self):
        assert format_time(FIVE_PM_UTC, "Asia/Tokyo") == "2:00 AM"


class TestRelativeDay:
    def test_today_tomorrow_and_later(self):
        now = datetime(2024, 1, 10, 17, 0, tzinfo=UTC)
        la = "America/Los_Angeles"

        assert format_relative_day(datetime(2024, 1, 11, 7, 0, tzinfo=UTC), now, la) == "Today"
        assert format_relative_day(datetime(2024, 1, 11, 9, 0, tzinfo=UTC), now, la) == "Tomorrow"
        assert format_relative_day(datetime(2024, 1, 13, 9, 0, tzinfo=UTC), now, la) == "Sat, Jan 13"


class TestLabelsAndText:
    def test_status_labels(self):
        assert status_label(OccurrenceStatus.LIVE) == "Live Now"
        assert status_label(OccurrenceStatus.COMPLETED) == "Completed"
        assert status_label(None) == ""

    def test_meeting_details(self, huddle):
        assert build_meeting_details(huddle) == (
            "Zoom Link: https://zoom.us/j/123456789\nMeeting ID: 123 456 789\nPasscode: huddle"
        )

    def test_meeting_details_with_description(self, huddle):
        described = huddle.model_copy(update={"description": "Weekly sync", "zoom_passcode": None})

        assert build_meeting_details(described) == (
            "Weekly sync\n\nZoom Link: https://zoom.us/j/123456789\nMeeting ID: 123 456 789"
        )

    def test_reminder_text(self, huddle):
        assert build_reminder_text(huddle) == (
            "Reminder: Team Huddle\n"
            "Wed, Jan 10 at 9:00 AM PT\n"
            "60 min\n"
            "\n"
            "https://zoom.us/j/123456789\n"
            "ID: 123 456 789\n"
            "Pass: huddle"
        )

    def test_reminder_without_links(self, one_off_row, january_window):
        occ = expand([one_off_row], january_window)[0]

        assert build_reminder_text(occ) == "Reminder: Client Kickoff\nFri, Jan 12 at 10:00 AM ET\n30 min"


class TestApiModel:
    def test_api_model_fields(self, huddle, fixed_now):
        model = occurrence_to_api_model(huddle, "America/New_York", fixed_now)

        assert model["key"] == "weekly-1|2024-01-10T17:00:00Z"
        assert model["occurrence_date"] == "2024-01-10T17:00:00Z"
        assert model["ends_at"] == "2024-01-10T18:00:00Z"
        assert model["local_date"] == "2024-01-10"
        assert model["display_time"] == "12:00 PM (9:00 AM PT)"
        assert model["status"] == "live"
        assert model["status_label"] == "Live Now"
        assert model["recurrence_pattern"] == "weekly"
        assert model["recurrence_day"] == "Wednesday"
        assert model["is_occurrence"] is True
        assert model["day_label"] == "Today"

    def test_api_model_without_now(self, one_off_row, january_window):
        occ = expand([one_off_row], january_window)[0]

        model = occurrence_to_api_model(occ, ZoneInfo("America/New_York"))

        assert "day_label" not in model
        assert model["status"] is None
        assert model["display_time"] == "10:00 AM"
        assert model["recurrence_pattern"] is None
