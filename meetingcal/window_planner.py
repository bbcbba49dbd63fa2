"""Query window planning for calendar views.

Decides which ``[start, end]`` range to request from the template store for a
week, month or "today" view. Sizes here are tuning choices that bound the
result set; correctness only depends on the store returning every recurring
template regardless of its ``scheduled_at``.
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Any

from .datetime_utils import end_of_local_day, start_of_local_day
from .exceptions import WindowError
from .models import QueryWindow, TemplateStatus
from .store import DEFAULT_STATUS_FILTER, TODAY_STATUS_FILTER
from .timezone_utils import DEFAULT_SERVER_TIMEZONE, resolve_zone

logger = logging.getLogger(__name__)

# Month grids always show 6 rows of 7 days, starting on Sunday
MONTH_GRID_CELLS = 42


class ViewMode(str, Enum):
    """Calendar view a window is planned for."""

    WEEK = "week"
    MONTH = "month"
    TODAY = "today"

    @classmethod
    def parse(cls, value: Any) -> ViewMode:
        """Parse a view name.

        Raises:
            WindowError: If the name is not a known view
        """
        try:
            return cls(str(value).strip().lower())
        except ValueError as e:
            raise WindowError(f"Unknown view mode {value!r}") from e


# Persisted statuses each view asks the store for
VIEW_STATUS_FILTERS: dict[ViewMode, tuple[TemplateStatus, ...]] = {
    ViewMode.WEEK: DEFAULT_STATUS_FILTER,
    ViewMode.MONTH: DEFAULT_STATUS_FILTER,
    ViewMode.TODAY: TODAY_STATUS_FILTER,
}


@dataclass(frozen=True)
class WindowPlan:
    """A planned view: the days shown and the instants fetched.

    Attributes:
        view: View mode
        pivot: Date the view was planned around
        display_start: First local date shown
        display_end: Last local date shown
        fetch_window: Window requested from the store and passed to the expander
        status_filter: Persisted statuses requested from the store
    """

    view: ViewMode
    pivot: date
    display_start: date
    display_end: date
    fetch_window: QueryWindow
    status_filter: tuple[TemplateStatus, ...]


def start_of_week(day: date) -> date:
    """Sunday on or before ``day``."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def add_months(day: date, months: int) -> date:
    """Shift ``day`` by whole months, clamping to the last day of the month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


class WindowQueryPlanner:
    """Plans store query windows for calendar views in the viewer's zone."""

    def __init__(
        self,
        viewer_timezone: str = DEFAULT_SERVER_TIMEZONE,
        week_lookbehind: timedelta = timedelta(weeks=1),
        week_lookahead: timedelta = timedelta(weeks=3),
        month_padding: timedelta = timedelta(weeks=1),
    ):
        self.viewer_timezone = viewer_timezone
        self.viewer_tz = resolve_zone(viewer_timezone)
        self.week_lookbehind = week_lookbehind
        self.week_lookahead = week_lookahead
        self.month_padding = month_padding

    def plan(self, view: ViewMode | str, pivot: date) -> WindowPlan:
        """Plan the display range and fetch window for ``view`` around ``pivot``."""
        mode = view if isinstance(view, ViewMode) else ViewMode.parse(view)

        if mode is ViewMode.WEEK:
            display_start = start_of_week(pivot)
            display_end = display_start + timedelta(days=6)
            fetch_start = min(pivot - self.week_lookbehind, display_start)
            fetch_end = max(pivot + self.week_lookahead, display_end)
        elif mode is ViewMode.MONTH:
            display_start = pivot.replace(day=1)
            display_end = pivot.replace(day=calendar.monthrange(pivot.year, pivot.month)[1])
            grid_start = start_of_week(display_start)
            grid_end = grid_start + timedelta(days=MONTH_GRID_CELLS - 1)
            fetch_start = min(display_start - self.month_padding, grid_start)
            fetch_end = max(display_end + self.month_padding, grid_end)
        else:
            display_start = display_end = pivot
            fetch_start = fetch_end = pivot

        window = QueryWindow(
            start=start_of_local_day(fetch_start, self.viewer_tz),
            end=end_of_local_day(fetch_end, self.viewer_tz),
        )
        logger.debug(
            "Planned %s view around %s: display %s..%s, fetch %s..%s",
            mode.value,
            pivot,
            display_start,
            display_end,
            window.start.isoformat(),
            window.end.isoformat(),
        )
        return WindowPlan(
            view=mode,
            pivot=pivot,
            display_start=display_start,
            display_end=display_end,
            fetch_window=window,
            status_filter=VIEW_STATUS_FILTERS[mode],
        )

    def navigate(self, view: ViewMode | str, pivot: date, step: int) -> date:
        """Move the pivot ``step`` views forward (positive) or back (negative)."""
        mode = view if isinstance(view, ViewMode) else ViewMode.parse(view)
        if mode is ViewMode.MONTH:
            return add_months(pivot, step)
        if mode is ViewMode.WEEK:
            return pivot + timedelta(weeks=step)
        return pivot + timedelta(days=step)
