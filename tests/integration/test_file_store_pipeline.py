"""Templates file -> store -> planner -> expander, end to end."""

from datetime import UTC, date, datetime, timedelta

import pytest
import yaml
from aiohttp import test_utils

from meetingcal.config_loader import Config
from meetingcal.expander import ExpanderConfig, OccurrenceExpander
from meetingcal.fetch_orchestrator import CalendarService
from meetingcal.server import _make_app
from meetingcal.store import FileTemplateStore
from meetingcal.window_planner import WindowQueryPlanner

pytestmark = pytest.mark.integration

NOW = datetime(2024, 3, 11, 16, 0, tzinfo=UTC)

TEMPLATES_YAML = """\
templates:
  - id: standup
    title: Coach Standup
    scheduled_at: "2024-02-28T09:00:00-08:00"
    duration_minutes: 15
    timezone: America/Los_Angeles
    is_recurring: true
    recurrence_pattern: weekly
    recurrence_day: Wednesday
    status: upcoming
  - id: review
    title: Monthly Review
    scheduled_at: "2024-01-01T12:00:00-05:00"
    timezone: America/New_York
    is_recurring: true
    recurrence_pattern: monthly
    recurrence_day: Monday
    status: upcoming
  - id: workshop
    title: Client Workshop
    call_type: with_clients
    scheduled_at: "2024-03-15T18:00:00Z"
    duration_minutes: 90
    timezone: Europe/London
    status: upcoming
  - id: broken
    title: Missing its day
    scheduled_at: "2024-03-01T18:00:00Z"
    is_recurring: true
    recurrence_pattern: weekly
  - id: dropped
    title: Cancelled Call
    scheduled_at: "2024-03-12T18:00:00Z"
    status: cancelled
"""


@pytest.fixture
def templates_file(tmp_path):
    path = tmp_path / "templates.yaml"
    path.write_text(TEMPLATES_YAML)
    return path


class TestFileStorePipeline:
    async def test_month_view(self, templates_file):
        service = CalendarService(
            FileTemplateStore(templates_file),
            expander=OccurrenceExpander(ExpanderConfig()),
            planner=WindowQueryPlanner("America/Los_Angeles", month_padding=timedelta(0)),
        )

        result = await service.load("month", date(2024, 3, 1), NOW)

        assert result.ok
        march = [o for o in result.occurrences if o.occurrence_date.month == 3]
        assert [(o.source_template_id, o.occurrence_date) for o in march] == [
            ("standup", datetime(2024, 3, 6, 17, 0, tzinfo=UTC)),
            ("review", datetime(2024, 3, 11, 16, 0, tzinfo=UTC)),
            ("standup", datetime(2024, 3, 13, 16, 0, tzinfo=UTC)),
            ("workshop", datetime(2024, 3, 15, 18, 0, tzinfo=UTC)),
            ("standup", datetime(2024, 3, 20, 16, 0, tzinfo=UTC)),
            ("standup", datetime(2024, 3, 27, 16, 0, tzinfo=UTC)),
        ]
        assert [o.computed_status.value for o in march[:3]] == ["completed", "live", "upcoming"]

    async def test_file_edits_are_picked_up(self, templates_file):
        service = CalendarService(FileTemplateStore(templates_file))
        rows = yaml.safe_load(TEMPLATES_YAML)["templates"][2:3]
        templates_file.write_text(yaml.safe_dump(rows))

        result = await service.load("today", date(2024, 3, 15), NOW)

        assert [o.title for o in result.occurrences] == ["Client Workshop"]

    async def test_server_over_file_store(self, templates_file):
        config = Config.from_dict({"store": "file", "templates_path": str(templates_file)})
        app = _make_app(config, time_provider=lambda: NOW)

        async with test_utils.TestClient(test_utils.TestServer(app)) as client:
            resp = await client.get("/api/occurrences", params={"view": "today", "tz": "America/New_York"})
            body = await resp.json()

        assert resp.status == 200
        assert [o["title"] for o in body["occurrences"]] == ["Monthly Review"]
        assert body["occurrences"][0]["status"] == "live"
