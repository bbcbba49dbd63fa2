"""Unit tests for meetingcal.invite."""

from datetime import UTC, datetime

import pytest
from icalendar import Calendar

from meetingcal.expander import expand
from meetingcal.invite import PRODID, Participant, build_invite_calendar, build_invite_ics, invite_uid

pytestmark = pytest.mark.unit

STAMP = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def occurrences(weekly_row, january_window):
    return expand([weekly_row], january_window)


def _only_event(ics: str):
    events = list(Calendar.from_ical(ics).walk("VEVENT"))
    assert len(events) == 1
    return events[0]


class TestInvite:
    def test_calendar_headers(self, occurrences):
        cal = build_invite_calendar(occurrences[0], stamp=STAMP)

        assert str(cal["prodid"]) == PRODID
        assert str(cal["method"]) == "REQUEST"
        assert str(cal["version"]) == "2.0"

    def test_event_times_and_summary(self, occurrences):
        event = _only_event(build_invite_ics(occurrences[1], stamp=STAMP))

        assert event.decoded("dtstart") == datetime(2024, 1, 10, 17, 0, tzinfo=UTC)
        assert event.decoded("dtend") == datetime(2024, 1, 10, 18, 0, tzinfo=UTC)
        assert event.decoded("dtstamp") == STAMP
        assert str(event["summary"]) == "Team Huddle"
        assert str(event["status"]) == "CONFIRMED"

    def test_event_carries_join_details(self, occurrences):
        event = _only_event(build_invite_ics(occurrences[0], stamp=STAMP))

        assert str(event["location"]) == "https://zoom.us/j/123456789"
        assert "Passcode: huddle" in str(event["description"])

    def test_uid_is_stable_per_occurrence(self, occurrences):
        first, second = occurrences[0], occurrences[1]

        assert invite_uid(first) == invite_uid(first)
        assert invite_uid(first) != invite_uid(second)
        assert invite_uid(first).endswith("@meetingcal")

    def test_participants(self, occurrences):
        ics = build_invite_ics(
            occurrences[0],
            organizer=Participant("coach@example.com", "Coach Kim"),
            attendee=Participant("client@example.com"),
            stamp=STAMP,
        )
        event = _only_event(ics)

        organizer = event["organizer"]
        attendee = event["attendee"]
        assert str(organizer) == "mailto:coach@example.com"
        assert organizer.params["cn"] == "Coach Kim"
        assert str(attendee) == "mailto:client@example.com"
        assert attendee.params["partstat"] == "NEEDS-ACTION"
        assert attendee.params["rsvp"] == "TRUE"

    def test_no_participants_by_default(self, occurrences):
        event = _only_event(build_invite_ics(occurrences[0], stamp=STAMP))

        assert "organizer" not in event
        assert "attendee" not in event

    def test_one_off_without_links(self, one_off_row, january_window):
        occ = expand([one_off_row], january_window)[0]

        event = _only_event(build_invite_ics(occ, stamp=STAMP))

        assert "location" not in event
        assert "url" not in event
        assert event.decoded("dtend") == datetime(2024, 1, 12, 15, 30, tzinfo=UTC)
