"""Template stores: where meeting templates are read from.

Every store honours the same inclusion rule for a window hint ``W``:

- one-off templates are returned when their ``scheduled_at`` falls in ``W``;
- recurring templates are returned unconditionally, whatever their
  ``scheduled_at``, because only the expander knows which of their dates land
  in ``W``.

Over-fetching is allowed, omitting a recurring template is not. Rows are
handed to the expander as-is; malformed rows are skipped there, one by one.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable

import httpx
import yaml

from . import http_client
from .datetime_utils import parse_instant, serialize_iso
from .exceptions import ConfigError, StoreFetchError
from .models import MeetingTemplate, QueryWindow, TemplateRecord, TemplateStatus, is_truthy_flag

logger = logging.getLogger(__name__)

# Calendar views show finished meetings too; "today" only what is still ahead.
DEFAULT_STATUS_FILTER: tuple[TemplateStatus, ...] = (
    TemplateStatus.UPCOMING,
    TemplateStatus.LIVE,
    TemplateStatus.COMPLETED,
)
TODAY_STATUS_FILTER: tuple[TemplateStatus, ...] = (TemplateStatus.UPCOMING, TemplateStatus.LIVE)


@runtime_checkable
class TemplateStore(Protocol):
    """Read side of the template store."""

    async def fetch_templates(
        self,
        status_filter: Sequence[TemplateStatus],
        window_hint: QueryWindow,
    ) -> list[TemplateRecord]:
        """Return every template that could project into ``window_hint``.

        Raises:
            StoreFetchError: If the store cannot be read
        """
        ...


def _field(record: TemplateRecord, snake: str, camel: str) -> Any:
    if isinstance(record, MeetingTemplate):
        return getattr(record, snake)
    if snake in record:
        return record[snake]
    return record.get(camel)


def record_id(record: Any) -> Optional[str]:
    """Template id of a parsed template or raw row, if it has one."""
    if isinstance(record, MeetingTemplate):
        return record.id
    if isinstance(record, Mapping) and record.get("id") is not None:
        return str(record["id"])
    return None


def matches_query(
    record: TemplateRecord,
    status_filter: Sequence[TemplateStatus],
    window_hint: QueryWindow,
) -> bool:
    """Apply the store inclusion rule to one record.

    Records whose status or date cannot be read are kept; the expander
    decides what to do with them.
    """
    raw_status = _field(record, "status", "status")
    if raw_status is not None:
        status_text = raw_status.value if isinstance(raw_status, TemplateStatus) else str(raw_status)
        if status_text.strip().lower() not in {s.value for s in status_filter}:
            return False

    if is_truthy_flag(_field(record, "is_recurring", "isRecurring")):
        return True

    try:
        scheduled_at = parse_instant(_field(record, "scheduled_at", "scheduledAt"))
    except ValueError:
        return True
    return window_hint.contains(scheduled_at)


def _scheduled_sort_key(record: TemplateRecord) -> str:
    value = _field(record, "scheduled_at", "scheduledAt")
    try:
        return serialize_iso(parse_instant(value)) or ""
    except ValueError:
        return ""


class InMemoryTemplateStore:
    """Template store over a list held in memory."""

    def __init__(self, records: Optional[Iterable[TemplateRecord]] = None):
        self._records: list[TemplateRecord] = list(records or [])

    def add(self, record: TemplateRecord) -> None:
        self._records.append(record)

    def replace_all(self, records: Iterable[TemplateRecord]) -> None:
        self._records = list(records)

    def __len__(self) -> int:
        return len(self._records)

    async def fetch_templates(
        self,
        status_filter: Sequence[TemplateStatus],
        window_hint: QueryWindow,
    ) -> list[TemplateRecord]:
        rows = [r for r in self._records if matches_query(r, status_filter, window_hint)]
        rows.sort(key=_scheduled_sort_key)
        logger.debug("In-memory store returned %d of %d templates", len(rows), len(self._records))
        return rows


class FileTemplateStore:
    """Template store backed by a YAML or JSON file.

    The file holds either a list of template rows or a mapping with a
    ``templates`` list. It is re-read on every fetch so edits show up without
    a restart.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read_rows(self) -> list[Any]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise StoreFetchError(f"Cannot read templates file {self.path}: {e}") from e

        try:
            if self.path.suffix.lower() == ".json":
                data = json.loads(text)
            else:
                data = yaml.safe_load(text)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise StoreFetchError(f"Cannot parse templates file {self.path}: {e}") from e

        if data is None:
            return []
        if isinstance(data, Mapping):
            data = data.get("templates", [])
        if not isinstance(data, list):
            raise StoreFetchError(f"Templates file {self.path} must hold a list of templates")
        return data

    async def fetch_templates(
        self,
        status_filter: Sequence[TemplateStatus],
        window_hint: QueryWindow,
    ) -> list[TemplateRecord]:
        rows = await asyncio.to_thread(self._read_rows)
        # Non-mapping entries pass through so the expander logs and skips them
        selected = [
            r for r in rows if not isinstance(r, Mapping) or matches_query(r, status_filter, window_hint)
        ]
        logger.debug("File store %s returned %d of %d templates", self.path, len(selected), len(rows))
        return selected


class SupabaseTemplateStore:
    """Template store reading the hosted Postgres table through PostgREST."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        table: str = "zoom_calls",
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 15.0,
    ):
        """Initialize the Supabase store.

        Args:
            base_url: Project URL, e.g. ``https://xyz.supabase.co``
            api_key: Anon or service key
            table: Table holding meeting templates
            client: Optional client; the shared pool is used when omitted
            timeout_seconds: Per-request timeout
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.table = table
        self._client = client
        self.timeout_seconds = timeout_seconds
        self.client_id = f"supabase:{self.base_url}"

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/rest/v1/{self.table}"

    def build_params(
        self,
        status_filter: Sequence[TemplateStatus],
        window_hint: QueryWindow,
    ) -> dict[str, str]:
        """PostgREST query for the inclusion rule, ordered by ``scheduled_at``."""
        statuses = ",".join(s.value for s in status_filter)
        start = serialize_iso(window_hint.start)
        end = serialize_iso(window_hint.end)
        return {
            "select": "*",
            "status": f"in.({statuses})",
            "or": f"(is_recurring.eq.true,and(scheduled_at.gte.{start},scheduled_at.lte.{end}))",
            "order": "scheduled_at.asc",
        }

    def build_headers(self) -> dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
        }

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        return await http_client.get_shared_client(
            self.client_id, timeout=http_client.default_timeout(self.timeout_seconds)
        )

    async def fetch_templates(
        self,
        status_filter: Sequence[TemplateStatus],
        window_hint: QueryWindow,
    ) -> list[TemplateRecord]:
        client = await self._get_client()
        params = self.build_params(status_filter, window_hint)

        try:
            response = await client.get(self.endpoint, params=params, headers=self.build_headers())
            response.raise_for_status()
            rows = response.json()
        except httpx.HTTPStatusError as e:
            await http_client.record_client_error(self.client_id)
            logger.warning(
                "Template fetch from %s failed with HTTP %d", self.endpoint, e.response.status_code
            )
            raise StoreFetchError(f"Store returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            await http_client.record_client_error(self.client_id)
            logger.warning("Template fetch from %s failed: %s", self.endpoint, e)
            raise StoreFetchError(f"Store request failed: {e}") from e
        except ValueError as e:
            await http_client.record_client_error(self.client_id)
            raise StoreFetchError("Store returned a non-JSON response") from e

        if not isinstance(rows, list):
            raise StoreFetchError(f"Store returned {type(rows).__name__}, expected a list of rows")

        await http_client.record_client_success(self.client_id)
        logger.debug("Supabase store returned %d templates", len(rows))
        return rows


def create_store(config: Any) -> TemplateStore:
    """Build the store selected by ``config.store``.

    Raises:
        ConfigError: If the store kind is unknown or missing its settings
    """
    kind = getattr(config, "store", "memory")
    if kind == "memory":
        return InMemoryTemplateStore()
    if kind == "file":
        if not config.templates_path:
            raise ConfigError("store 'file' requires templates_path")
        return FileTemplateStore(config.templates_path)
    if kind == "supabase":
        if not (config.supabase_url and config.supabase_key):
            raise ConfigError("store 'supabase' requires supabase_url and supabase_key")
        return SupabaseTemplateStore(
            config.supabase_url,
            config.supabase_key,
            table=config.supabase_table,
            timeout_seconds=config.fetch_timeout_seconds,
        )
    raise ConfigError(f"Unknown store {kind!r}")
