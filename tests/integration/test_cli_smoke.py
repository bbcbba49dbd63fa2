"""Smoke tests for the meetingcal command line."""

import json
from unittest.mock import patch

import pytest
import yaml

from meetingcal.__main__ import _create_parser, main

pytestmark = pytest.mark.smoke

NOW = "2024-01-10T17:15:00Z"


@pytest.fixture
def templates_file(tmp_path, monkeypatch, weekly_row, one_off_row):
    # Keep a developer's .env or meetingcal.yaml out of the run
    monkeypatch.chdir(tmp_path)
    for name in ("MEETINGCAL_STORE", "MEETINGCAL_TEMPLATES_PATH", "MEETINGCAL_DEFAULT_TIMEZONE"):
        monkeypatch.delenv(name, raising=False)
    path = tmp_path / "calls.yaml"
    path.write_text(yaml.safe_dump([weekly_row, one_off_row]))
    return path


@pytest.fixture(autouse=True)
def quiet_cli_logging():
    with patch("meetingcal.__main__._init_logging"):
        yield


class TestParser:
    def test_serve_options(self):
        args = _create_parser().parse_args(["--config", "cfg.yaml", "serve", "--port", "3000", "--bind", "0.0.0.0"])

        assert (args.command, args.port, args.bind, args.config) == ("serve", 3000, "0.0.0.0", "cfg.yaml")

    def test_expand_defaults(self):
        args = _create_parser().parse_args(["expand"])

        assert args.view == "week"
        assert args.json is False
        assert args.hide_ended is False

    def test_rejects_unknown_view(self):
        with pytest.raises(SystemExit):
            _create_parser().parse_args(["expand", "--view", "year"])


class TestExpandCommand:
    def test_json_output(self, templates_file, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["expand", "--templates", str(templates_file), "--date", "2024-01-10", "--now", NOW, "--json"])

        assert exc_info.value.code == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["error"] is None
        assert [o["key"] for o in payload["occurrences"]] == [
            "weekly-1|2024-01-03T17:00:00Z",
            "weekly-1|2024-01-10T17:00:00Z",
            "oneoff-1|2024-01-12T15:00:00Z",
            "weekly-1|2024-01-17T17:00:00Z",
        ]

    def test_text_output(self, templates_file, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(
                [
                    "expand",
                    "--templates",
                    str(templates_file),
                    "--view",
                    "today",
                    "--date",
                    "2024-01-10",
                    "--tz",
                    "America/New_York",
                    "--now",
                    NOW,
                ]
            )

        out = capsys.readouterr().out
        assert exc_info.value.code == 0
        assert out.splitlines()[0] == "Today"
        assert "12:00 PM (9:00 AM PT)" in out
        assert "Team Huddle" in out
        assert "[Live Now]" in out

    def test_text_output_groups_by_day(self, templates_file, capsys):
        with pytest.raises(SystemExit):
            main(["expand", "--templates", str(templates_file), "--date", "2024-01-10", "--now", NOW])

        lines = capsys.readouterr().out.splitlines()
        headers = [line for line in lines if not line.startswith("  ")]
        assert len(headers) == 4
        assert headers[1] == "Today"
        assert len(lines) == 8

    def test_empty_view(self, templates_file, capsys):
        with pytest.raises(SystemExit):
            main(["expand", "--templates", str(templates_file), "--date", "2024-06-01", "--view", "today", "--now", NOW])

        assert "No meetings in this view." in capsys.readouterr().out

    def test_missing_templates_file_reports_error(self, templates_file, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["expand", "--templates", str(templates_file.parent / "missing.yaml"), "--now", NOW])

        assert exc_info.value.code == 1
        assert "error: Cannot read templates file" in capsys.readouterr().out

    def test_bad_date_exits_with_usage_error(self, templates_file):
        with pytest.raises(SystemExit) as exc_info:
            main(["expand", "--templates", str(templates_file), "--date", "2024-13-01"])

        assert exc_info.value.code == 2


def test_serve_hands_off_to_server(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with patch("meetingcal.__main__.run_server") as run_server:
        with pytest.raises(SystemExit) as exc_info:
            main(["serve", "--port", "3000"])

    assert exc_info.value.code == 0
    assert run_server.call_args.args[0].port == 3000
