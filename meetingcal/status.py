"""Lifecycle status of meeting occurrences.

``classify`` is the single source of truth for upcoming/live/completed. It
never reads the clock: ``now`` is captured once per request by the caller and
passed down, so two badges on the same page always agree.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Optional

from .datetime_utils import ensure_timezone_aware
from .models import DEFAULT_DURATION_MINUTES, Occurrence, OccurrenceStatus

# Display filter: how long an ended meeting stays on "right now" views
RECENTLY_ENDED_GRACE = timedelta(minutes=30)


def effective_duration(duration_minutes: Optional[int]) -> timedelta:
    """Duration to assume for a meeting; only a missing value is defaulted."""
    if duration_minutes is None:
        return timedelta(minutes=DEFAULT_DURATION_MINUTES)
    return timedelta(minutes=duration_minutes)


def classify(
    occurrence_date: datetime,
    duration_minutes: Optional[int],
    now: datetime,
) -> OccurrenceStatus:
    """Classify an occurrence relative to ``now``.

    Rules:
        - ``now < start`` -> upcoming
        - ``start <= now <= end`` -> live
        - ``now > end`` -> completed

    Args:
        occurrence_date: Start instant of the occurrence
        duration_minutes: Length in minutes; None means 60
        now: Current instant supplied by the caller

    Returns:
        OccurrenceStatus
    """
    start = ensure_timezone_aware(occurrence_date)
    current = ensure_timezone_aware(now)
    end = start + effective_duration(duration_minutes)

    if current < start:
        return OccurrenceStatus.UPCOMING
    if current <= end:
        return OccurrenceStatus.LIVE
    return OccurrenceStatus.COMPLETED


def classify_occurrence(occurrence: Occurrence, now: datetime) -> Occurrence:
    """Return a copy of ``occurrence`` tagged with its computed status."""
    status = classify(occurrence.occurrence_date, occurrence.duration_minutes, now)
    if occurrence.computed_status is status:
        return occurrence
    return occurrence.model_copy(update={"computed_status": status})


def annotate_statuses(occurrences: Iterable[Occurrence], now: datetime) -> list[Occurrence]:
    """Tag every occurrence with its status, preserving order."""
    return [classify_occurrence(occ, now) for occ in occurrences]


def drop_recently_ended(
    occurrences: Iterable[Occurrence],
    now: datetime,
    grace: timedelta = RECENTLY_ENDED_GRACE,
) -> list[Occurrence]:
    """Drop occurrences that ended more than ``grace`` before ``now``.

    Optional post-processing for "what's relevant right now" views, applied
    after classification. Order is preserved.
    """
    current = ensure_timezone_aware(now)
    cutoff = current - grace
    return [occ for occ in occurrences if occ.ends_at >= cutoff]
