"""Environment configuration for the meetingcal server and CLI."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

ENV_PREFIX = "MEETINGCAL_"

# Environment variable suffix -> (config key, converter)
_ENV_KEYS: dict[str, tuple[str, type]] = {
    "STORE": ("store", str),
    "TEMPLATES_PATH": ("templates_path", str),
    "SUPABASE_URL": ("supabase_url", str),
    "SUPABASE_KEY": ("supabase_key", str),
    "SUPABASE_TABLE": ("supabase_table", str),
    "DEFAULT_TIMEZONE": ("default_timezone", str),
    "RECENTLY_ENDED_GRACE_MINUTES": ("recently_ended_grace_minutes", int),
    "MAX_OCCURRENCES_PER_TEMPLATE": ("max_occurrences_per_template", int),
    "FETCH_TIMEOUT_SECONDS": ("fetch_timeout_seconds", float),
    "SERVER_BIND": ("server_bind", str),
    "SERVER_PORT": ("server_port", int),
    "LOG_LEVEL": ("log_level", str),
}


class ConfigManager:
    """Manages application configuration from environment variables and .env files."""

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file and set environment variables.

        Only sets variables that are not already in the environment.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        set_keys = []

        try:
            content = self.env_file_path.read_text(encoding="utf-8")
        except OSError:
            logger.warning("Failed to read .env file %s (continuing)", self.env_file_path, exc_info=True)
            return []

        for raw_line in content.splitlines():
            line = raw_line.strip()

            # Skip empty lines and comments
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, val = line.split("=", 1)
            key = key.strip()
            if key.startswith("export "):
                key = key[len("export ") :].strip()
            val = val.strip().strip('"').strip("'")

            if key and key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))

        return set_keys

    def build_config_from_env(self) -> dict[str, Any]:
        """Build a configuration mapping from ``MEETINGCAL_*`` environment variables.

        Values that fail conversion are ignored with a warning.
        """
        cfg: dict[str, Any] = {}
        for suffix, (key, convert) in _ENV_KEYS.items():
            env_name = f"{ENV_PREFIX}{suffix}"
            raw = os.environ.get(env_name)
            if raw is None or raw == "":
                continue
            try:
                cfg[key] = convert(raw)
            except ValueError:
                logger.warning("Invalid %s=%r; ignoring", env_name, raw)
        return cfg

    def load_full_config(self) -> dict[str, Any]:
        """Load .env file and build configuration from environment.

        This is the main entry point for loading configuration overrides.
        """
        self.load_env_file()
        return self.build_config_from_env()


def get_config_value(config: Any, key: str, default: Any = None) -> Any:
    """Get configuration value supporting both dict and dataclass-like objects."""
    if isinstance(config, dict):
        return config.get(key, default)
    return getattr(config, key, default)
