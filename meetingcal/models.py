"""Data models for meeting templates and their expanded occurrences."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .datetime_utils import parse_calendar_date, parse_instant, serialize_iso
from .exceptions import TemplateError
from .timezone_utils import DEFAULT_SERVER_TIMEZONE, is_valid_timezone

logger = logging.getLogger(__name__)

# Assumed length of a meeting whose duration was never filled in
DEFAULT_DURATION_MINUTES = 60

# Separates the template id from the occurrence instant in string keys
KEY_SEPARATOR = "|"

# String spellings pydantic reads as True for a bool field
_TRUE_STRINGS = frozenset({"1", "on", "t", "true", "y", "yes"})

# Fields that only mean something on a recurring template, under both key styles
_RECURRENCE_KEYS = (
    "recurrence_pattern",
    "recurrencePattern",
    "recurrence_day",
    "recurrenceDay",
    "recurrence_end_date",
    "recurrenceEndDate",
)


class CallType(str, Enum):
    """Audience of a meeting. Opaque to the expander, used for display."""

    COACH_ONLY = "coach_only"
    WITH_CLIENTS = "with_clients"


class TemplateStatus(str, Enum):
    """Persisted lifecycle status of a template row."""

    UPCOMING = "upcoming"
    LIVE = "live"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_active(self) -> bool:
        """Cancelled templates are never expanded."""
        return self is not TemplateStatus.CANCELLED


class OccurrenceStatus(str, Enum):
    """Status computed for one occurrence from its start, duration and now."""

    UPCOMING = "upcoming"
    LIVE = "live"
    COMPLETED = "completed"


class RecurrencePattern(str, Enum):
    """Supported recurrence cadences."""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class Weekday(str, Enum):
    """Day of week a recurring meeting lands on."""

    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"

    @property
    def index(self) -> int:
        """Python/dateutil weekday number (Monday == 0)."""
        return list(Weekday).index(self)

    @classmethod
    def from_name(cls, value: Any) -> Weekday:
        """Parse a day name such as ``"Wednesday"``, ``"wed"`` or ``"WEDNESDAY"``.

        Raises:
            ValueError: If the value is not a recognizable day name
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Day of week must be a name, got {value!r}")
        text = value.strip().lower()
        for day in cls:
            if text in (day.value.lower(), day.value[:3].lower()):
                return day
        raise ValueError(f"Unknown day of week {value!r}")


class RecordingPlatform(str, Enum):
    """Where a meeting recording is hosted."""

    ZOOM = "zoom"
    VIMEO = "vimeo"
    YOUTUBE = "youtube"


def is_truthy_flag(value: Any) -> bool:
    """Read a boolean column that may arrive as text, e.g. ``"true"``."""
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def build_occurrence_key(template_id: str, occurrence_date: datetime) -> str:
    """Build the stable string identity of one occurrence.

    ``|`` never appears in an ISO-8601 instant; it is percent-encoded in the
    template id so the key splits unambiguously.
    """
    safe_id = template_id.replace("%", "%25").replace(KEY_SEPARATOR, "%7C")
    return f"{safe_id}{KEY_SEPARATOR}{serialize_iso(occurrence_date)}"


def parse_occurrence_key(key: str) -> tuple[str, datetime]:
    """Split a key built by :func:`build_occurrence_key`.

    Raises:
        ValueError: If the key is malformed
    """
    safe_id, sep, instant = key.partition(KEY_SEPARATOR)
    if not sep or not safe_id or not instant:
        raise ValueError(f"Malformed occurrence key {key!r}")
    template_id = safe_id.replace("%7C", KEY_SEPARATOR).replace("%25", "%")
    return template_id, parse_instant(instant)


class MeetingTemplate(BaseModel):
    """Persisted meeting definition, one-off or recurring.

    Accepts the store's snake_case row shape as well as camelCase keys.
    Link fields are pass-through display data.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    # Identity and display
    id: str = Field(..., min_length=1, description="Stable template identifier")
    title: str = Field(default="", description="Meeting title")
    description: Optional[str] = Field(default=None, description="Meeting description")
    call_type: Optional[str] = Field(default=None, description="Audience tag, e.g. coach_only")

    # Scheduling
    scheduled_at: datetime = Field(..., description="One-off instant, or recurrence anchor")
    duration_minutes: Optional[int] = Field(default=None, ge=0, description="Length in minutes")
    timezone: Optional[str] = Field(default=None, description="IANA zone of the meeting")

    # Recurrence
    is_recurring: bool = Field(default=False, description="Recurring series flag")
    recurrence_pattern: Optional[RecurrencePattern] = Field(default=None)
    recurrence_day: Optional[Weekday] = Field(default=None)
    recurrence_end_date: Optional[date] = Field(
        default=None, description="Inclusive last date of the series, in the meeting zone"
    )

    # Links
    zoom_link: Optional[str] = None
    zoom_meeting_id: Optional[str] = None
    zoom_passcode: Optional[str] = None
    recording_url: Optional[str] = None
    recording_platform: Optional[str] = None
    recording_available_at: Optional[str] = None

    # Lifecycle and metadata
    status: TemplateStatus = Field(default=TemplateStatus.UPCOMING)
    created_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    # Event-specific fields
    event_type: Optional[str] = None
    end_date: Optional[str] = None
    location: Optional[str] = None
    is_virtual: Optional[bool] = None

    @model_validator(mode="before")
    @classmethod
    def _ignore_recurrence_on_one_off(cls, data: Any) -> Any:
        # One-off rows often carry leftovers such as "none" or "N/A"
        if not isinstance(data, Mapping):
            return data
        if is_truthy_flag(data.get("is_recurring", data.get("isRecurring"))):
            return data
        return {key: value for key, value in data.items() if key not in _RECURRENCE_KEYS}

    @field_validator("id", "zoom_meeting_id", "zoom_passcode", mode="before")
    @classmethod
    def _coerce_identifier(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("scheduled_at", mode="before")
    @classmethod
    def _parse_scheduled_at(cls, value: Any) -> datetime:
        return parse_instant(value)

    @field_validator("recurrence_end_date", mode="before")
    @classmethod
    def _parse_end_date(cls, value: Any) -> Optional[date]:
        value = _blank_to_none(value)
        return None if value is None else parse_calendar_date(value)

    @field_validator("recurrence_day", mode="before")
    @classmethod
    def _parse_day(cls, value: Any) -> Optional[Weekday]:
        value = _blank_to_none(value)
        return None if value is None else Weekday.from_name(value)

    @field_validator("recurrence_pattern", "status", mode="before")
    @classmethod
    def _lower_enum_text(cls, value: Any) -> Any:
        value = _blank_to_none(value)
        if isinstance(value, str) and not isinstance(value, Enum):
            return value.strip().lower()
        return value

    @field_validator("timezone", "description", mode="before")
    @classmethod
    def _empty_is_missing(cls, value: Any) -> Any:
        return _blank_to_none(value)

    def to_schedule(self, default_timezone: str = DEFAULT_SERVER_TIMEZONE) -> MeetingSchedule:
        """Split this record into its one-off or recurring variant.

        Raises:
            TemplateError: If a recurring template lacks its pattern or day
        """
        if not self.is_recurring:
            return OneOffMeeting(template=self, scheduled_at=self.scheduled_at)

        if self.recurrence_pattern is None or self.recurrence_day is None:
            raise TemplateError("recurring template is missing its pattern or day", self.id)

        zone_name = self.timezone
        if not is_valid_timezone(zone_name):
            logger.warning(
                "Template %s has timezone %r; using %s",
                self.id,
                self.timezone,
                default_timezone,
            )
            zone_name = default_timezone

        local_anchor = self.scheduled_at.astimezone(ZoneInfo(zone_name))
        return RecurringMeeting(
            template=self,
            anchor_at=self.scheduled_at,
            anchor_time=local_anchor.time().replace(microsecond=0),
            timezone=zone_name,
            pattern=self.recurrence_pattern,
            day=self.recurrence_day,
            end_date=self.recurrence_end_date,
        )


class OneOffMeeting(BaseModel):
    """A template that represents exactly one meeting at ``scheduled_at``."""

    kind: Literal["one_off"] = "one_off"
    template: MeetingTemplate
    scheduled_at: datetime


class RecurringMeeting(BaseModel):
    """A template that represents a family of meetings.

    ``anchor_at`` bounds the series from below; only its wall-clock time of
    day and zone are reused for each projected date.
    """

    kind: Literal["recurring"] = "recurring"
    template: MeetingTemplate
    anchor_at: datetime
    anchor_time: time
    timezone: str
    pattern: RecurrencePattern
    day: Weekday
    end_date: Optional[date] = None


MeetingSchedule = Annotated[Union[OneOffMeeting, RecurringMeeting], Field(discriminator="kind")]

# What a store may hand to the expander: parsed templates or raw rows
TemplateRecord = Union[MeetingTemplate, Mapping[str, Any]]


class Occurrence(MeetingTemplate):
    """One concrete, dated meeting instance. Derived at read time, never stored.

    Identity is ``(source_template_id, occurrence_date)``; every occurrence of
    a series shares the template ``id``.
    """

    model_config = ConfigDict(frozen=True)

    occurrence_date: datetime = Field(..., description="Start instant of this occurrence (UTC)")
    is_occurrence: bool = Field(..., description="True if projected from a recurring template")
    source_template_id: str = Field(..., description="Template this occurrence came from")
    computed_status: Optional[OccurrenceStatus] = Field(default=None)

    @field_validator("occurrence_date", mode="before")
    @classmethod
    def _parse_occurrence_date(cls, value: Any) -> datetime:
        return parse_instant(value)

    @property
    def key(self) -> str:
        """Stable string key for UI state, never an array index."""
        return build_occurrence_key(self.source_template_id, self.occurrence_date)

    @property
    def identity(self) -> tuple[str, datetime]:
        return (self.source_template_id, self.occurrence_date)

    @property
    def effective_duration_minutes(self) -> int:
        if self.duration_minutes is None:
            return DEFAULT_DURATION_MINUTES
        return self.duration_minutes

    @property
    def ends_at(self) -> datetime:
        return self.occurrence_date + timedelta(minutes=self.effective_duration_minutes)


class QueryWindow(BaseModel):
    """Inclusive ``[start, end]`` instant range a caller wants occurrences for."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @field_validator("start", "end", mode="before")
    @classmethod
    def _parse_bound(cls, value: Any) -> datetime:
        return parse_instant(value)

    @property
    def is_empty(self) -> bool:
        """A window with ``start > end`` yields no occurrences."""
        return self.start > self.end

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.end
