"""Unit tests for meetingcal.http_client."""

import httpx
import pytest

from meetingcal import http_client

pytestmark = pytest.mark.unit


class TestSharedClient:
    async def test_same_id_reuses_client(self):
        first = await http_client.get_shared_client("store-a")
        second = await http_client.get_shared_client("store-a")
        other = await http_client.get_shared_client("store-b")

        assert first is second
        assert first is not other
        assert first.headers["User-Agent"] == http_client.USER_AGENT

    async def test_closed_client_is_replaced(self):
        first = await http_client.get_shared_client("store-a")
        await first.aclose()

        second = await http_client.get_shared_client("store-a")

        assert second is not first
        assert not second.is_closed

    async def test_close_all_clients(self):
        client = await http_client.get_shared_client("store-a")

        await http_client.close_all_clients()

        assert client.is_closed
        assert http_client.client_error_count("store-a") == 0

    async def test_unhealthy_client_is_recreated(self):
        first = await http_client.get_shared_client("store-a")
        for _ in range(http_client.HEALTH_ERROR_THRESHOLD):
            await http_client.record_client_error("store-a")

        second = await http_client.get_shared_client("store-a")

        assert first.is_closed
        assert second is not first
        assert http_client.client_error_count("store-a") == 0

    async def test_few_errors_keep_client(self):
        first = await http_client.get_shared_client("store-a")
        await http_client.record_client_error("store-a")

        assert await http_client.get_shared_client("store-a") is first
        assert http_client.client_error_count("store-a") == 1

    async def test_success_resets_errors(self):
        await http_client.get_shared_client("store-a")
        await http_client.record_client_error("store-a")

        await http_client.record_client_success("store-a")

        assert http_client.client_error_count("store-a") == 0

    async def test_custom_timeout(self):
        client = await http_client.get_shared_client("store-a", timeout=http_client.default_timeout(2.0))

        assert client.timeout == httpx.Timeout(connect=2.0, read=2.0, write=2.0, pool=2.0)


def test_default_timeout_caps_connect():
    timeout = http_client.default_timeout(30.0)

    assert timeout.connect == 5.0
    assert timeout.read == 30.0


def test_default_timeout_without_total():
    assert http_client.default_timeout() is http_client._DEFAULT_TIMEOUT
