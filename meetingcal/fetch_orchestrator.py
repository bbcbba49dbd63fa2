"""Fetch orchestration: plan window, fetch templates, expand, classify."""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional

from .exceptions import StoreFetchError
from .expander import Exclusions, ExpanderConfig, OccurrenceExpander
from .models import Occurrence
from .status import RECENTLY_ENDED_GRACE, drop_recently_ended
from .store import TemplateStore
from .window_planner import ViewMode, WindowPlan, WindowQueryPlanner

logger = logging.getLogger(__name__)


@dataclass
class CalendarResult:
    """Outcome of one calendar load.

    Attributes:
        plan: Window plan the load was made for
        occurrences: Expanded, classified occurrences in ascending order
        error: Message when the store fetch failed; occurrences are then empty
        stale: True when a newer load was issued before this one finished
        request_id: Token of the load, increasing per service
    """

    plan: WindowPlan
    occurrences: list[Occurrence] = field(default_factory=list)
    error: Optional[str] = None
    stale: bool = False
    request_id: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None and not self.stale


class CalendarService:
    """Loads calendar views from a template store.

    Each ``load`` takes a request token before fetching. When the fetch
    returns, the result is only expanded if no newer load was started in the
    meantime; otherwise it is returned as stale and must be discarded.
    """

    def __init__(
        self,
        store: TemplateStore,
        expander: Optional[OccurrenceExpander] = None,
        planner: Optional[WindowQueryPlanner] = None,
        fetch_timeout_seconds: float = 15.0,
    ):
        """Initialize calendar service.

        Args:
            store: Template store to read from
            expander: Occurrence expander, defaults to default configuration
            planner: Window planner used when ``load`` is not given one
            fetch_timeout_seconds: Timeout for one store fetch
        """
        self.store = store
        self.expander = expander or OccurrenceExpander(ExpanderConfig())
        self.planner = planner or WindowQueryPlanner()
        self.fetch_timeout_seconds = fetch_timeout_seconds
        self._tokens = itertools.count(1)
        self._latest_token = 0

    def _next_token(self) -> int:
        token = next(self._tokens)
        self._latest_token = token
        return token

    def is_latest(self, token: int) -> bool:
        return token == self._latest_token

    async def load(
        self,
        view: ViewMode | str,
        pivot: date,
        now: datetime,
        *,
        planner: Optional[WindowQueryPlanner] = None,
        hide_ended: bool = False,
        grace: timedelta = RECENTLY_ENDED_GRACE,
        exclusions: Optional[Exclusions] = None,
    ) -> CalendarResult:
        """Load one calendar view.

        Args:
            view: View mode name or ViewMode
            pivot: Date the view is centred on, in the viewer's zone
            now: Instant captured once by the caller for this request
            planner: Planner for the viewer's zone, overrides the default one
            hide_ended: Drop occurrences that ended more than ``grace`` ago
            grace: How long ended meetings stay visible with ``hide_ended``
            exclusions: Optional (template id, local date) pairs to leave out

        Raises:
            WindowError: If the view mode is unknown
        """
        plan = (planner or self.planner).plan(view, pivot)
        token = self._next_token()
        logger.debug("Calendar load %d: %s view around %s", token, plan.view.value, pivot)

        try:
            templates = await asyncio.wait_for(
                self.store.fetch_templates(plan.status_filter, plan.fetch_window),
                timeout=self.fetch_timeout_seconds,
            )
        except StoreFetchError as e:
            logger.warning("Calendar load %d: template fetch failed: %s", token, e)
            return CalendarResult(plan=plan, error=str(e), request_id=token)
        except asyncio.TimeoutError:
            logger.warning(
                "Calendar load %d: template fetch timed out after %.1fs",
                token,
                self.fetch_timeout_seconds,
            )
            return CalendarResult(plan=plan, error="Template fetch timed out", request_id=token)

        if not self.is_latest(token):
            logger.debug("Calendar load %d superseded by %d; discarding", token, self._latest_token)
            return CalendarResult(plan=plan, stale=True, request_id=token)

        occurrences = self.expander.expand(
            templates, plan.fetch_window, now=now, exclusions=exclusions
        )
        if hide_ended:
            occurrences = drop_recently_ended(occurrences, now, grace)

        logger.debug(
            "Calendar load %d: %d templates -> %d occurrences",
            token,
            len(templates),
            len(occurrences),
        )
        return CalendarResult(plan=plan, occurrences=occurrences, request_id=token)
