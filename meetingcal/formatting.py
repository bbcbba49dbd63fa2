"""Display helpers for occurrences: times, badges, reminders and API payloads."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Optional
from zoneinfo import ZoneInfo

from .datetime_utils import format_clock_time, format_short_date, serialize_iso
from .models import Occurrence, OccurrenceStatus
from .timezone_utils import is_valid_timezone, tz_abbreviation

logger = logging.getLogger(__name__)

STATUS_LABELS: dict[OccurrenceStatus, str] = {
    OccurrenceStatus.UPCOMING: "Upcoming",
    OccurrenceStatus.LIVE: "Live Now",
    OccurrenceStatus.COMPLETED: "Completed",
}


def _zone_name(tz: ZoneInfo | str) -> str:
    return tz.key if isinstance(tz, ZoneInfo) else tz


def format_time(instant: datetime, tz: ZoneInfo | str) -> str:
    """Wall-clock time of ``instant`` in ``tz``, e.g. ``9:00 AM``."""
    zone = tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)
    return format_clock_time(instant, zone)


def format_dual_time(
    instant: datetime,
    meeting_timezone: Optional[str],
    viewer_timezone: ZoneInfo | str,
) -> str:
    """Format a start time for a viewer, adding the meeting's own time if zones differ.

    Examples:
        >>> from datetime import UTC
        >>> format_dual_time(datetime(2024, 1, 3, 17, 0, tzinfo=UTC), "America/Los_Angeles", "America/New_York")
        '12:00 PM (9:00 AM PT)'
        >>> format_dual_time(datetime(2024, 1, 3, 17, 0, tzinfo=UTC), "America/New_York", "America/New_York")
        '12:00 PM'
    """
    local = format_time(instant, viewer_timezone)
    if not is_valid_timezone(meeting_timezone) or meeting_timezone == _zone_name(viewer_timezone):
        return local
    original = format_time(instant, meeting_timezone)  # type: ignore[arg-type]
    return f"{local} ({original} {tz_abbreviation(meeting_timezone)})"  # type: ignore[arg-type]


def format_relative_day(instant: datetime, now: datetime, viewer_timezone: ZoneInfo | str) -> str:
    """``Today``, ``Tomorrow`` or a short date, judged on the viewer's calendar."""
    zone = viewer_timezone if isinstance(viewer_timezone, ZoneInfo) else ZoneInfo(viewer_timezone)
    day = instant.astimezone(zone).date()
    today = now.astimezone(zone).date()
    if day == today:
        return "Today"
    if day == today + timedelta(days=1):
        return "Tomorrow"
    return format_short_date(instant, zone)


def status_label(status: Optional[OccurrenceStatus]) -> str:
    """Badge text for a computed status; empty when unclassified."""
    if status is None:
        return ""
    return STATUS_LABELS[status]


def build_meeting_details(occurrence: Occurrence) -> str:
    """Description followed by the Zoom join details, for invites."""
    parts = [occurrence.description or ""]
    joining = []
    if occurrence.zoom_link:
        joining.append(f"Zoom Link: {occurrence.zoom_link}")
    if occurrence.zoom_meeting_id:
        joining.append(f"Meeting ID: {occurrence.zoom_meeting_id}")
    if occurrence.zoom_passcode:
        joining.append(f"Passcode: {occurrence.zoom_passcode}")
    if joining:
        parts.append("\n".join(joining))
    return "\n\n".join(p for p in parts if p).strip()


def build_reminder_text(occurrence: Occurrence, default_timezone: str = "UTC") -> str:
    """Short SMS-style reminder for one occurrence.

    Date and time are shown in the meeting's own zone with its abbreviation.
    """
    zone_name = occurrence.timezone if is_valid_timezone(occurrence.timezone) else default_timezone
    zone = ZoneInfo(zone_name)  # type: ignore[arg-type]
    date_str = format_short_date(occurrence.occurrence_date, zone)
    time_str = f"{format_clock_time(occurrence.occurrence_date, zone)} {tz_abbreviation(zone_name)}"

    lines = [
        f"Reminder: {occurrence.title}",
        f"{date_str} at {time_str}",
        f"{occurrence.effective_duration_minutes} min",
    ]
    extras = []
    if occurrence.zoom_link:
        extras.append(occurrence.zoom_link)
    if occurrence.zoom_meeting_id:
        extras.append(f"ID: {occurrence.zoom_meeting_id}")
    if occurrence.zoom_passcode:
        extras.append(f"Pass: {occurrence.zoom_passcode}")
    if extras:
        lines.append("")
        lines.extend(extras)
    return "\n".join(lines)


def occurrence_to_api_model(
    occurrence: Occurrence,
    viewer_timezone: ZoneInfo | str,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """Serialize an occurrence to API response fields.

    Args:
        occurrence: Expanded occurrence
        viewer_timezone: Zone used for local day and display time
        now: Optional request instant for the relative day label

    Returns:
        JSON-safe dictionary
    """
    zone = viewer_timezone if isinstance(viewer_timezone, ZoneInfo) else ZoneInfo(viewer_timezone)
    local_start = occurrence.occurrence_date.astimezone(zone)
    model: dict[str, Any] = {
        "key": occurrence.key,
        "id": occurrence.id,
        "source_template_id": occurrence.source_template_id,
        "title": occurrence.title,
        "description": occurrence.description or "",
        "call_type": occurrence.call_type,
        "event_type": occurrence.event_type,
        "occurrence_date": serialize_iso(occurrence.occurrence_date),
        "ends_at": serialize_iso(occurrence.ends_at),
        "local_date": local_start.date().isoformat(),
        "display_time": format_dual_time(occurrence.occurrence_date, occurrence.timezone, zone),
        "duration_minutes": occurrence.effective_duration_minutes,
        "timezone": occurrence.timezone,
        "is_occurrence": occurrence.is_occurrence,
        "is_recurring": occurrence.is_recurring,
        "recurrence_pattern": occurrence.recurrence_pattern.value if occurrence.recurrence_pattern else None,
        "recurrence_day": occurrence.recurrence_day.value if occurrence.recurrence_day else None,
        "status": occurrence.computed_status.value if occurrence.computed_status else None,
        "status_label": status_label(occurrence.computed_status),
        "zoom_link": occurrence.zoom_link,
        "zoom_meeting_id": occurrence.zoom_meeting_id,
        "zoom_passcode": occurrence.zoom_passcode,
        "recording_url": occurrence.recording_url,
        "location": occurrence.location,
    }
    if now is not None:
        model["day_label"] = format_relative_day(occurrence.occurrence_date, now, zone)
    return model
