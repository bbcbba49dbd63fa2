"""Consumer-side occurrence filters for calendar views.

These operate on the expander's ordered output and never reorder it.
Calendar days are always the viewer's local days.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable
from typing import Optional

from .models import Occurrence, OccurrenceStatus
from .timezone_utils import DEFAULT_SERVER_TIMEZONE, resolve_zone

logger = logging.getLogger(__name__)


class OccurrenceFilter:
    """Groups and splits occurrences the way a viewer sees them."""

    def __init__(self, viewer_timezone: str, fallback_timezone: str = DEFAULT_SERVER_TIMEZONE):
        """Initialize occurrence filter.

        Args:
            viewer_timezone: IANA zone of the person looking at the calendar
            fallback_timezone: Zone used when ``viewer_timezone`` is unknown
        """
        self.viewer_tz = resolve_zone(viewer_timezone, fallback_timezone)

    def local_day(self, occurrence: Occurrence) -> datetime.date:
        """Viewer-local calendar date an occurrence starts on."""
        return occurrence.occurrence_date.astimezone(self.viewer_tz).date()

    def group_by_local_day(
        self,
        occurrences: Iterable[Occurrence],
    ) -> dict[datetime.date, list[Occurrence]]:
        """Group occurrences by viewer-local start date, in input order."""
        grouped: dict[datetime.date, list[Occurrence]] = {}
        for occ in occurrences:
            grouped.setdefault(self.local_day(occ), []).append(occ)
        return grouped

    def partition_upcoming_and_past(
        self,
        occurrences: Iterable[Occurrence],
        past_limit: Optional[int] = 10,
    ) -> tuple[list[Occurrence], list[Occurrence]]:
        """Split classified occurrences into (upcoming or live, completed).

        The completed list holds the most recent ``past_limit`` entries,
        newest first. Unclassified occurrences are ignored.
        """
        upcoming: list[Occurrence] = []
        past: list[Occurrence] = []
        for occ in occurrences:
            if occ.computed_status in (OccurrenceStatus.UPCOMING, OccurrenceStatus.LIVE):
                upcoming.append(occ)
            elif occ.computed_status is OccurrenceStatus.COMPLETED:
                past.append(occ)
            else:
                logger.debug("Occurrence %s has no computed status; ignoring", occ.key)

        past.reverse()
        if past_limit is not None:
            past = past[:past_limit]
        return upcoming, past
