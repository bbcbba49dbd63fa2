"""Shared fixtures for meetingcal tests."""

from collections.abc import AsyncIterator, Generator
from datetime import UTC, datetime
from typing import Any

import pytest

from meetingcal.http_client import close_all_clients
from meetingcal.models import QueryWindow


def pytest_configure(config: Any) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "integration: Tests that wire several modules together")
    config.addinivalue_line("markers", "smoke: Basic smoke tests")


@pytest.fixture
def test_timezone() -> str:
    """Deterministic meeting timezone, independent of the host zone."""
    return "America/Los_Angeles"


@pytest.fixture
def january_window() -> QueryWindow:
    """All of January 2024 in UTC."""
    return QueryWindow(
        start=datetime(2024, 1, 1, tzinfo=UTC),
        end=datetime(2024, 1, 31, 23, 59, 59, tzinfo=UTC),
    )


@pytest.fixture
def fixed_now() -> datetime:
    """Wednesday 2024-01-10 09:15 PT, a quarter hour into the weekly call."""
    return datetime(2024, 1, 10, 17, 15, tzinfo=UTC)


@pytest.fixture
def weekly_row() -> dict[str, Any]:
    """Store row for a weekly Wednesday 9:00 AM PT call that ends on Jan 17."""
    return {
        "id": "weekly-1",
        "title": "Team Huddle",
        "call_type": "coach_only",
        "scheduled_at": "2024-01-03T09:00:00-08:00",
        "duration_minutes": 60,
        "timezone": "America/Los_Angeles",
        "is_recurring": True,
        "recurrence_pattern": "weekly",
        "recurrence_day": "Wednesday",
        "recurrence_end_date": "2024-01-17",
        "zoom_link": "https://zoom.us/j/123456789",
        "zoom_meeting_id": "123 456 789",
        "zoom_passcode": "huddle",
        "status": "upcoming",
    }


@pytest.fixture
def one_off_row() -> dict[str, Any]:
    """Store row for a single client call on 2024-01-12 at 10:00 AM ET."""
    return {
        "id": "oneoff-1",
        "title": "Client Kickoff",
        "call_type": "with_clients",
        "scheduled_at": "2024-01-12T15:00:00Z",
        "duration_minutes": 30,
        "timezone": "America/New_York",
        "is_recurring": False,
        "status": "upcoming",
    }


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Clear the frozen-clock variable so tests never leak a fake "now"."""
    monkeypatch.delenv("MEETINGCAL_TEST_TIME", raising=False)
    yield
    monkeypatch.delenv("MEETINGCAL_TEST_TIME", raising=False)


@pytest.fixture(autouse=True)
async def cleanup_shared_http_clients() -> AsyncIterator[None]:
    """Close pooled httpx clients after every test."""
    yield
    await close_all_clients()
