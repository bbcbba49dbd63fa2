"""Occurrence expansion for meeting templates.

Maps ``(templates, window)`` to the concrete occurrences inside the window.
Pure: no I/O, no clock reads, no shared mutable state. One malformed template
is logged and skipped; it never aborts expansion of the rest.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Optional, assert_never
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from .config_manager import get_config_value
from .datetime_utils import localize_wall_clock
from .exceptions import RecurrenceError, TemplateError
from .models import (
    MeetingTemplate,
    Occurrence,
    OneOffMeeting,
    QueryWindow,
    RecurringMeeting,
    TemplateRecord,
)
from .recurrence import RecurrenceRule
from .status import annotate_statuses
from .timezone_utils import DEFAULT_SERVER_TIMEZONE

logger = logging.getLogger(__name__)

# Exception dates: (template id, local calendar date in the template zone)
Exclusions = Iterable[tuple[str, date]]


@dataclass
class ExpanderConfig:
    """Configuration for occurrence expansion.

    Attributes:
        default_timezone: Zone used when a template's timezone is missing or unknown
        max_occurrences_per_template: Safety cap for very large windows
    """

    default_timezone: str = DEFAULT_SERVER_TIMEZONE
    max_occurrences_per_template: int = 500

    @classmethod
    def from_settings(cls, settings: Any) -> ExpanderConfig:
        """Extract expansion configuration from a settings object or mapping."""
        return cls(
            default_timezone=get_config_value(settings, "default_timezone", DEFAULT_SERVER_TIMEZONE),
            max_occurrences_per_template=int(
                get_config_value(settings, "max_occurrences_per_template", 500)
            ),
        )


def _template_id_of(record: Any) -> str:
    if isinstance(record, MeetingTemplate):
        return record.id
    if isinstance(record, Mapping):
        return str(record.get("id", "<no-id>"))
    return "<no-id>"


class OccurrenceExpander:
    """Expands one-off and recurring templates into dated occurrences."""

    def __init__(self, config: Optional[ExpanderConfig] = None):
        self.config = config or ExpanderConfig()

    def expand(
        self,
        templates: Iterable[TemplateRecord],
        window: QueryWindow,
        *,
        now: Optional[datetime] = None,
        exclusions: Optional[Exclusions] = None,
    ) -> list[Occurrence]:
        """Expand templates into occurrences inside ``window``.

        Args:
            templates: Parsed templates or raw store rows
            window: Inclusive query window
            now: If given, each occurrence is tagged with its computed status
            exclusions: Optional (template id, local date) pairs to leave out

        Returns:
            Occurrences sorted by ``occurrence_date`` then template id, with
            duplicate identities removed
        """
        if window.is_empty:
            logger.debug("Empty query window %s > %s; no occurrences", window.start, window.end)
            return []

        excluded = frozenset(exclusions or ())
        seen: set[tuple[str, datetime]] = set()
        occurrences: list[Occurrence] = []
        skipped = 0

        for record in templates:
            try:
                template = self._coerce(record)
                if not template.status.is_active:
                    logger.debug("Skipping cancelled template %s", template.id)
                    continue
                for occ in self._expand_template(template, window, excluded):
                    if occ.identity in seen:
                        continue
                    seen.add(occ.identity)
                    occurrences.append(occ)
            except (TemplateError, RecurrenceError, ValueError, OverflowError) as e:
                skipped += 1
                logger.warning("Skipping malformed template %s: %s", _template_id_of(record), e)
                continue
            except Exception:
                skipped += 1
                logger.exception("Unexpected error expanding template %s", _template_id_of(record))
                continue

        occurrences.sort(key=lambda occ: (occ.occurrence_date, occ.source_template_id))

        if now is not None:
            occurrences = annotate_statuses(occurrences, now)

        logger.debug(
            "Expanded window %s..%s: %d occurrences, %d templates skipped",
            window.start.isoformat(),
            window.end.isoformat(),
            len(occurrences),
            skipped,
        )
        return occurrences

    def _coerce(self, record: TemplateRecord) -> MeetingTemplate:
        """Validate a raw store row into a template.

        Raises:
            TemplateError: If the row fails validation
        """
        if isinstance(record, MeetingTemplate):
            return record
        if not isinstance(record, Mapping):
            raise TemplateError(f"expected a mapping, got {type(record).__name__}")
        try:
            return MeetingTemplate.model_validate(record)
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise TemplateError(f"invalid fields: {fields}", _template_id_of(record)) from e

    def _expand_template(
        self,
        template: MeetingTemplate,
        window: QueryWindow,
        excluded: frozenset[tuple[str, date]],
    ) -> list[Occurrence]:
        schedule = template.to_schedule(self.config.default_timezone)
        match schedule:
            case OneOffMeeting():
                return self._expand_one_off(schedule, window)
            case RecurringMeeting():
                return list(self._expand_recurring(schedule, window, excluded))
            case _:
                assert_never(schedule)

    def _expand_one_off(self, schedule: OneOffMeeting, window: QueryWindow) -> list[Occurrence]:
        if not window.contains(schedule.scheduled_at):
            return []
        return [_make_occurrence(schedule.template, schedule.scheduled_at, is_occurrence=False)]

    def _expand_recurring(
        self,
        schedule: RecurringMeeting,
        window: QueryWindow,
        excluded: frozenset[tuple[str, date]],
    ) -> Iterator[Occurrence]:
        template = schedule.template
        tz = ZoneInfo(schedule.timezone)

        if schedule.anchor_at > window.end:
            return
        if schedule.end_date is not None and schedule.end_date < window.start.astimezone(tz).date():
            return

        rule = RecurrenceRule.for_schedule(schedule)

        # Widen by a day on each side; exact bounds are checked on UTC instants.
        lower = max(window.start, schedule.anchor_at).astimezone(tz).replace(tzinfo=None)
        upper = window.end.astimezone(tz).replace(tzinfo=None)
        local_starts = rule.local_starts_between(lower - timedelta(days=1), upper + timedelta(days=1))

        emitted = 0
        for local_start in local_starts:
            instant = localize_wall_clock(local_start.date(), local_start.time(), tz)
            if instant < window.start:
                continue
            if instant > window.end:
                break
            if (template.id, local_start.date()) in excluded:
                logger.debug("Excluded occurrence %s on %s", template.id, local_start.date())
                continue
            if emitted >= self.config.max_occurrences_per_template:
                logger.warning(
                    "Template %s hit the %d occurrence cap for one window",
                    template.id,
                    self.config.max_occurrences_per_template,
                )
                break
            emitted += 1
            yield _make_occurrence(template, instant, is_occurrence=True)


def _make_occurrence(template: MeetingTemplate, instant: datetime, *, is_occurrence: bool) -> Occurrence:
    data = template.model_dump()
    data.update(
        occurrence_date=instant,
        is_occurrence=is_occurrence,
        source_template_id=template.id,
    )
    return Occurrence.model_validate(data)


def expand(
    templates: Iterable[TemplateRecord],
    window: QueryWindow,
    *,
    now: Optional[datetime] = None,
    exclusions: Optional[Exclusions] = None,
    config: Optional[ExpanderConfig] = None,
) -> list[Occurrence]:
    """Expand templates into the sorted occurrences inside ``window``.

    Convenience wrapper around :class:`OccurrenceExpander`.
    """
    return OccurrenceExpander(config).expand(templates, window, now=now, exclusions=exclusions)
