"""JSON API routes for meetingcal."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime, timedelta
from typing import Any

from aiohttp import web

from .. import __version__
from ..datetime_utils import serialize_iso
from ..event_filter import OccurrenceFilter
from ..exceptions import StoreFetchError, WindowError
from ..expander import OccurrenceExpander
from ..fetch_orchestrator import CalendarService
from ..formatting import build_reminder_text, occurrence_to_api_model
from ..invite import Participant, build_invite_ics
from ..models import Occurrence, QueryWindow, parse_occurrence_key
from ..status import annotate_statuses
from ..store import DEFAULT_STATUS_FILTER, TemplateStore, record_id
from ..timezone_utils import is_valid_timezone, resolve_zone
from ..window_planner import WindowQueryPlanner

logger = logging.getLogger(__name__)

_TRUTHY = ("1", "true", "yes", "on")


def _bad_request(message: str) -> web.Response:
    return web.json_response({"error": message}, status=400)


def register_api_routes(
    app: web.Application,
    config: Any,
    store: TemplateStore,
    expander: OccurrenceExpander,
    time_provider: Callable[[], datetime],
) -> None:
    """Register the API routes.

    Args:
        app: aiohttp web application
        config: Application configuration
        store: Template store every request reads from
        expander: Shared occurrence expander
        time_provider: Returns the current UTC instant, read once per request
    """
    default_timezone: str = config.default_timezone
    grace = timedelta(minutes=config.recently_ended_grace_minutes)

    def _viewer_timezone(request: web.Request) -> str:
        tz_name = request.query.get("tz") or default_timezone
        if not is_valid_timezone(tz_name):
            raise ValueError(f"unknown timezone {tz_name!r}")
        return tz_name

    def _service(tz_name: str) -> CalendarService:
        return CalendarService(
            store,
            expander=expander,
            planner=WindowQueryPlanner(tz_name),
            fetch_timeout_seconds=config.fetch_timeout_seconds,
        )

    async def health_check(_request: web.Request) -> web.Response:
        """Liveness endpoint."""
        return web.json_response(
            {
                "status": "ok",
                "version": __version__,
                "server_time_iso": serialize_iso(time_provider()),
                "store": config.store,
                "default_timezone": default_timezone,
            }
        )

    async def list_occurrences(request: web.Request) -> web.Response:
        """Occurrences for a week/month/today view.

        Query Parameters:
            view (str): week | month | today (default: week)
            date (str): pivot date YYYY-MM-DD (default: today in ``tz``)
            tz (str): viewer IANA timezone (default: configured default)
            hide_ended (str): truthy to drop meetings that ended a while ago
        """
        now = time_provider()
        try:
            tz_name = _viewer_timezone(request)
            pivot_raw = request.query.get("date")
            pivot = (
                date.fromisoformat(pivot_raw)
                if pivot_raw
                else now.astimezone(resolve_zone(tz_name)).date()
            )
            view = request.query.get("view", "week")
            hide_ended = request.query.get("hide_ended", "").lower() in _TRUTHY
            result = await _service(tz_name).load(view, pivot, now, hide_ended=hide_ended, grace=grace)
        except (ValueError, WindowError) as e:
            return _bad_request(str(e))

        plan = result.plan
        days = OccurrenceFilter(tz_name, default_timezone).group_by_local_day(result.occurrences)
        body = {
            "now_iso": serialize_iso(now),
            "tz": tz_name,
            "window": {
                "view": plan.view.value,
                "pivot": plan.pivot.isoformat(),
                "display_start": plan.display_start.isoformat(),
                "display_end": plan.display_end.isoformat(),
                "start_iso": serialize_iso(plan.fetch_window.start),
                "end_iso": serialize_iso(plan.fetch_window.end),
            },
            "occurrences": [occurrence_to_api_model(o, tz_name, now) for o in result.occurrences],
            "days": [{"date": day.isoformat(), "keys": [o.key for o in occs]} for day, occs in days.items()],
            "error": result.error,
        }
        logger.debug(
            "/api/occurrences view=%s date=%s tz=%s -> %d occurrences",
            plan.view.value,
            plan.pivot,
            tz_name,
            len(result.occurrences),
        )
        return web.json_response(body, status=200 if result.error is None else 503)

    async def agenda(request: web.Request) -> web.Response:
        """Upcoming meetings and the most recent completed ones.

        Covers the month view around the viewer's today.

        Query Parameters:
            tz (str): viewer IANA timezone (default: configured default)
            past_limit (int): how many completed meetings to list (default: 10)
        """
        now = time_provider()
        try:
            tz_name = _viewer_timezone(request)
            past_limit = int(request.query.get("past_limit", "10"))
            if past_limit < 0:
                raise ValueError("past_limit must not be negative")
        except ValueError as e:
            return _bad_request(str(e))

        today = now.astimezone(resolve_zone(tz_name)).date()
        result = await _service(tz_name).load("month", today, now)
        upcoming, past = OccurrenceFilter(tz_name, default_timezone).partition_upcoming_and_past(
            result.occurrences, past_limit
        )
        body = {
            "now_iso": serialize_iso(now),
            "tz": tz_name,
            "upcoming": [occurrence_to_api_model(o, tz_name, now) for o in upcoming],
            "past": [occurrence_to_api_model(o, tz_name, now) for o in past],
            "error": result.error,
        }
        return web.json_response(body, status=200 if result.error is None else 503)

    async def _find_occurrence(request: web.Request, now: datetime) -> Occurrence:
        """Resolve ``{key}`` to its occurrence, classified at ``now``."""
        key = request.match_info["key"]
        try:
            template_id, instant = parse_occurrence_key(key)
        except ValueError as e:
            raise web.HTTPBadRequest(text=str(e)) from e

        window = QueryWindow(start=instant, end=instant)
        try:
            templates = await store.fetch_templates(DEFAULT_STATUS_FILTER, window)
        except StoreFetchError as e:
            logger.warning("Template fetch for %s failed: %s", key, e)
            raise web.HTTPServiceUnavailable(text=str(e)) from e

        candidates = [t for t in templates if record_id(t) == template_id]
        for occ in expander.expand(candidates, window):
            if occ.key == key:
                return annotate_statuses([occ], now)[0]
        raise web.HTTPNotFound(text=f"No occurrence {key}")

    async def occurrence_invite(request: web.Request) -> web.Response:
        """``.ics`` invite for one occurrence.

        Query Parameters:
            organizer_email, organizer_name, attendee_email, attendee_name (optional)
        """
        now = time_provider()
        occ = await _find_occurrence(request, now)
        query = request.query
        organizer = (
            Participant(query["organizer_email"], query.get("organizer_name"))
            if query.get("organizer_email")
            else None
        )
        attendee = (
            Participant(query["attendee_email"], query.get("attendee_name"))
            if query.get("attendee_email")
            else None
        )
        ics = build_invite_ics(occ, organizer, attendee, stamp=now)
        return web.Response(
            text=ics,
            content_type="text/calendar",
            headers={"Content-Disposition": 'attachment; filename="invite.ics"'},
        )

    async def occurrence_reminder(request: web.Request) -> web.Response:
        """SMS-style reminder text for one occurrence."""
        occ = await _find_occurrence(request, time_provider())
        return web.json_response(
            {"key": occ.key, "text": build_reminder_text(occ, default_timezone)}
        )

    app.router.add_get("/api/health", health_check)
    app.router.add_get("/api/occurrences", list_occurrences)
    app.router.add_get("/api/agenda", agenda)
    app.router.add_get("/api/occurrences/{key}/invite.ics", occurrence_invite)
    app.router.add_get("/api/occurrences/{key}/reminder", occurrence_reminder)

    logger.debug("API routes registered")
