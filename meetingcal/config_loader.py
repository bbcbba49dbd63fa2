"""meetingcal.config_loader

Config loader for meetingcal.

- Reads YAML (PyYAML) or JSON, chosen by file suffix.
- Exposes a typed dataclass `Config` and a `load_config()` helper that accepts
  an optional path override.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigError
from .timezone_utils import DEFAULT_SERVER_TIMEZONE, is_valid_timezone

logger = logging.getLogger(__name__)

STORE_KINDS = ("memory", "file", "supabase")

DEFAULT_CONFIG_PATH = Path("meetingcal.yaml")


@dataclass
class Config:
    """Typed configuration for meetingcal.

    Fields:
        store: template store backend, one of memory/file/supabase
        templates_path: YAML/JSON file of templates for the file store
        supabase_url: project URL for the supabase store
        supabase_key: API key sent as ``apikey`` and bearer token
        supabase_table: table holding meeting templates
        default_timezone: zone used for templates with a missing/unknown zone
        recently_ended_grace_minutes: how long ended meetings stay on "now" views
        max_occurrences_per_template: expansion safety cap per template
        fetch_timeout_seconds: store fetch timeout
        server_bind: host to bind the HTTP server to
        server_port: port for the HTTP server
        log_level: logging level name
    """

    store: str = "memory"
    templates_path: str | None = None
    supabase_url: str | None = None
    supabase_key: str | None = None
    supabase_table: str = "zoom_calls"
    default_timezone: str = DEFAULT_SERVER_TIMEZONE
    recently_ended_grace_minutes: int = 30
    max_occurrences_per_template: int = 500
    fetch_timeout_seconds: float = 15.0
    server_bind: str = "127.0.0.1"
    server_port: int = 8080
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Numeric-like values are coerced, out-of-range values are clamped and an
        unknown default timezone is replaced, each with a warning. An unknown
        store kind raises ConfigError since there is no sensible fallback.
        """
        if data is None:
            data = {}

        def _coerce_int(key: str, default: int, minimum: int = 0) -> int:
            raw = data.get(key, default)
            try:
                value = int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default
            if value < minimum:
                logger.warning("Config %s=%d below minimum; coercing to %d", key, value, minimum)
                return minimum
            return value

        store = str(data.get("store") or "memory").strip().lower()
        if store not in STORE_KINDS:
            raise ConfigError(f"Unknown store {store!r}; expected one of {', '.join(STORE_KINDS)}")

        default_timezone = str(data.get("default_timezone") or DEFAULT_SERVER_TIMEZONE)
        if not is_valid_timezone(default_timezone):
            logger.warning(
                "Config default_timezone=%r is not a known zone; using %s",
                default_timezone,
                DEFAULT_SERVER_TIMEZONE,
            )
            default_timezone = DEFAULT_SERVER_TIMEZONE

        raw_timeout = data.get("fetch_timeout_seconds", 15.0)
        try:
            fetch_timeout = float(raw_timeout)
        except (TypeError, ValueError):
            logger.warning("Config fetch_timeout_seconds=%r is not a number; using 15", raw_timeout)
            fetch_timeout = 15.0
        if fetch_timeout <= 0:
            logger.warning("fetch_timeout_seconds %s must be positive; coercing to 15", fetch_timeout)
            fetch_timeout = 15.0

        server_bind = data.get("server_bind") or "127.0.0.1"
        log_level = str(data.get("log_level") or "INFO").upper()

        def _optional_str(key: str) -> str | None:
            value = data.get(key)
            return str(value) if value not in (None, "") else None

        cfg = cls(
            store=store,
            templates_path=_optional_str("templates_path"),
            supabase_url=_optional_str("supabase_url"),
            supabase_key=_optional_str("supabase_key"),
            supabase_table=str(data.get("supabase_table") or "zoom_calls"),
            default_timezone=default_timezone,
            recently_ended_grace_minutes=_coerce_int("recently_ended_grace_minutes", 30),
            max_occurrences_per_template=_coerce_int("max_occurrences_per_template", 500, minimum=1),
            fetch_timeout_seconds=fetch_timeout,
            server_bind=str(server_bind),
            server_port=_coerce_int("server_port", 8080, minimum=1),
            log_level=log_level,
        )
        cfg.validate()
        return cfg

    def validate(self) -> None:
        """Check that the chosen store has what it needs.

        Raises:
            ConfigError: If a required store setting is missing
        """
        if self.store == "file" and not self.templates_path:
            raise ConfigError("store 'file' requires templates_path")
        if self.store == "supabase" and not (self.supabase_url and self.supabase_key):
            raise ConfigError("store 'supabase' requires supabase_url and supabase_key")


def _load_yaml_or_json(path: Path) -> Any:
    """Load a YAML or JSON document; ``.json`` files use json, anything else YAML.

    Raises:
        ConfigError: If the file cannot be parsed
    """
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            return json.loads(text)
        loaded = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Unable to parse {path}: {exc}") from exc
    # safe_load returns None for empty files
    return {} if loaded is None else loaded


def load_config(path: str | Path | None = None, overrides: dict[str, Any] | None = None) -> Config:
    """Load configuration from a YAML/JSON file and return a Config instance.

    Args:
        path: Optional path to the config file, defaults to ./meetingcal.yaml
        overrides: Values applied on top of the file, e.g. from the environment

    Behavior:
    - If the file is missing: defaults plus overrides.
    - If the file exists but top-level is not a mapping: raises ConfigError.
    """
    p = Path(path) if path else Path.cwd() / DEFAULT_CONFIG_PATH
    logger.debug("Attempting to load config from %s", p)

    raw: Any = {}
    if p.exists():
        raw = _load_yaml_or_json(p)
        if not isinstance(raw, dict):
            logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, raw)
            raise ConfigError("Config file must contain a mapping at top level")
        logger.info("Loaded configuration from %s", p)
    else:
        logger.info("Config file %s not found; using defaults", p)

    merged = {**raw, **(overrides or {})}
    cfg = Config.from_dict(merged)
    logger.debug("Configuration values: %s", cfg.__dict__ | {"supabase_key": "***" if cfg.supabase_key else None})
    return cfg
