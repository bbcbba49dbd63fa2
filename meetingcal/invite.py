"""Calendar invites (.ics) for a single occurrence."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from icalendar import Calendar, Event, vCalAddress, vText

from .formatting import build_meeting_details
from .models import Occurrence
from .timezone_utils import now_utc

logger = logging.getLogger(__name__)

PRODID = "-//meetingcal//Meeting Calendar//EN"
UID_DOMAIN = "meetingcal"


@dataclass(frozen=True)
class Participant:
    """Invite organizer or attendee."""

    email: str
    name: Optional[str] = None

    def to_address(self) -> vCalAddress:
        address = vCalAddress(f"mailto:{self.email}")
        if self.name:
            address.params["cn"] = vText(self.name)
        return address


def invite_uid(occurrence: Occurrence) -> str:
    """Stable UID: the same occurrence always maps to the same invite."""
    return f"{uuid.uuid5(uuid.NAMESPACE_URL, occurrence.key)}@{UID_DOMAIN}"


def build_invite_calendar(
    occurrence: Occurrence,
    organizer: Optional[Participant] = None,
    attendee: Optional[Participant] = None,
    stamp: Optional[datetime] = None,
) -> Calendar:
    """Build a METHOD:REQUEST calendar holding one event for ``occurrence``."""
    cal = Calendar()
    cal.add("prodid", PRODID)
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("method", "REQUEST")

    event = Event()
    event.add("uid", invite_uid(occurrence))
    event.add("dtstamp", stamp or now_utc())
    event.add("dtstart", occurrence.occurrence_date)
    event.add("dtend", occurrence.ends_at)
    event.add("summary", occurrence.title or "Meeting")

    details = build_meeting_details(occurrence)
    if details:
        event.add("description", details)
    location = occurrence.zoom_link or occurrence.location
    if location:
        event.add("location", location)
    if occurrence.zoom_link:
        event.add("url", occurrence.zoom_link)

    if organizer is not None:
        event.add("organizer", organizer.to_address())
    if attendee is not None:
        address = attendee.to_address()
        address.params["cutype"] = vText("INDIVIDUAL")
        address.params["role"] = vText("REQ-PARTICIPANT")
        address.params["partstat"] = vText("NEEDS-ACTION")
        address.params["rsvp"] = vText("TRUE")
        event.add("attendee", address, encode=0)
    event.add("status", "CONFIRMED")

    cal.add_component(event)
    return cal


def build_invite_ics(
    occurrence: Occurrence,
    organizer: Optional[Participant] = None,
    attendee: Optional[Participant] = None,
    stamp: Optional[datetime] = None,
) -> str:
    """Render the invite for ``occurrence`` as RFC 5545 text."""
    cal = build_invite_calendar(occurrence, organizer, attendee, stamp)
    logger.debug("Built invite for occurrence %s", occurrence.key)
    return cal.to_ical().decode("utf-8")
