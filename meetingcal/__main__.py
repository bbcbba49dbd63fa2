"""Command-line entry for meetingcal.

``serve`` (the default) runs the JSON API; ``expand`` prints the occurrences
of one calendar view, which is handy for checking a templates file.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from datetime import date
from typing import NoReturn, Optional, TextIO

from . import _init_logging, run_server
from .exceptions import MeetingCalError

logger = logging.getLogger(__name__)


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the meetingcal CLI."""
    parser = argparse.ArgumentParser(
        prog="meetingcal",
        description="meetingcal - recurring meeting calendar engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  meetingcal serve --port 3000
  meetingcal expand --templates calls.yaml --view month --date 2024-01-15 --tz America/New_York
        """,
    )
    parser.add_argument("--config", metavar="PATH", help="YAML or JSON config file")

    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the JSON API server")
    serve.add_argument("--port", type=int, metavar="PORT", help="Port (default: 8080)")
    serve.add_argument("--bind", metavar="HOST", help="Bind address (default: 127.0.0.1)")

    expand = sub.add_parser("expand", help="Print the occurrences of one calendar view")
    expand.add_argument("--templates", metavar="PATH", help="Templates file (uses the file store)")
    expand.add_argument("--view", default="week", choices=("week", "month", "today"))
    expand.add_argument("--date", metavar="YYYY-MM-DD", help="Pivot date (default: today)")
    expand.add_argument("--tz", metavar="ZONE", help="Viewer timezone (default: configured)")
    expand.add_argument("--now", metavar="ISO", help="Instant used for statuses (default: clock)")
    expand.add_argument("--hide-ended", action="store_true", help="Drop meetings that ended a while ago")
    expand.add_argument("--json", action="store_true", help="Print JSON instead of text")

    return parser


async def _expand_view(args: argparse.Namespace, out: TextIO) -> int:
    from datetime import timedelta

    from .config_loader import load_config
    from .config_manager import ConfigManager
    from .datetime_utils import parse_instant, serialize_iso
    from .event_filter import OccurrenceFilter
    from .expander import ExpanderConfig, OccurrenceExpander
    from .fetch_orchestrator import CalendarService
    from .formatting import format_dual_time, format_relative_day, occurrence_to_api_model, status_label
    from .store import create_store
    from .timezone_utils import now_utc, resolve_zone
    from .window_planner import WindowQueryPlanner

    overrides = ConfigManager().load_full_config()
    if args.templates:
        overrides.update(store="file", templates_path=args.templates)
    cfg = load_config(args.config, overrides)

    tz_name = args.tz or cfg.default_timezone
    zone = resolve_zone(tz_name, cfg.default_timezone)
    now = parse_instant(args.now) if args.now else now_utc()
    pivot = date.fromisoformat(args.date) if args.date else now.astimezone(zone).date()

    service = CalendarService(
        create_store(cfg),
        expander=OccurrenceExpander(ExpanderConfig.from_settings(cfg)),
        planner=WindowQueryPlanner(zone.key),
        fetch_timeout_seconds=cfg.fetch_timeout_seconds,
    )
    result = await service.load(
        args.view,
        pivot,
        now,
        hide_ended=args.hide_ended,
        grace=timedelta(minutes=cfg.recently_ended_grace_minutes),
    )

    if args.json:
        payload = {
            "now_iso": serialize_iso(now),
            "window": {
                "start_iso": serialize_iso(result.plan.fetch_window.start),
                "end_iso": serialize_iso(result.plan.fetch_window.end),
            },
            "occurrences": [occurrence_to_api_model(o, zone, now) for o in result.occurrences],
            "error": result.error,
        }
        json.dump(payload, out, indent=2)
        out.write("\n")
    else:
        if result.error:
            out.write(f"error: {result.error}\n")
        days = OccurrenceFilter(zone.key, cfg.default_timezone).group_by_local_day(result.occurrences)
        for occs in days.values():
            out.write(f"{format_relative_day(occs[0].occurrence_date, now, zone)}\n")
            for occ in occs:
                out.write(
                    f"  {format_dual_time(occ.occurrence_date, occ.timezone, zone):<24} "
                    f"{occ.title}  [{status_label(occ.computed_status)}]\n"
                )
        if not result.occurrences and not result.error:
            out.write("No meetings in this view.\n")

    return 1 if result.error else 0


def main(argv: Optional[list[str]] = None) -> NoReturn:
    """Run the meetingcal CLI."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    if args.command == "expand":
        _init_logging(os.environ.get("MEETINGCAL_LOG_LEVEL", "WARNING"))
        try:
            code = asyncio.run(_expand_view(args, sys.stdout))
        except (MeetingCalError, ValueError, OSError) as exc:
            logger.error("expand failed: %s", exc)
            sys.exit(2)
        sys.exit(code)

    run_server(args)
    sys.exit(0)


if __name__ == "__main__":
    main()
