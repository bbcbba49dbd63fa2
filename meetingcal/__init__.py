"""meetingcal - recurring meeting calendar engine.

Expands stored meeting templates (one-off and recurring) into dated
occurrences for calendar views, classifies them as upcoming/live/completed,
and serves them over a small JSON API.

Imports are kept light here; submodules pull in pydantic, dateutil and aiohttp
only when used.
"""

__version__ = "0.1.0"

from typing import Optional


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize console logging early, before configuration is loaded.

    Honors MEETINGCAL_DEBUG / MEETINGCAL_LOG_LEVEL (see
    :func:`meetingcal.lite_logging.configure_lite_logging`).
    """
    import logging

    from .lite_logging import configure_lite_logging

    level = configure_lite_logging(level_name)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )


def run_server(args: Optional[object] = None) -> None:
    """Start the meetingcal API server.

    Configuration is read from the optional ``--config`` file, then
    MEETINGCAL_* environment variables (and a .env file), then command line
    overrides for ``--port`` and ``--bind``.
    """
    import logging
    import os

    _init_logging(os.environ.get("MEETINGCAL_LOG_LEVEL"))

    from .config_loader import load_config
    from .config_manager import ConfigManager
    from .server import start_server

    logger = logging.getLogger(__name__)

    overrides = ConfigManager().load_full_config()
    if args is not None:
        port = getattr(args, "port", None)
        if port is not None:
            overrides["server_port"] = int(port)
            logger.debug("Applied command line port override: %d", port)
        bind = getattr(args, "bind", None)
        if bind:
            overrides["server_bind"] = bind

    cfg = load_config(getattr(args, "config", None), overrides)
    logging.getLogger().setLevel(getattr(logging, cfg.log_level, logging.INFO))
    logger.debug(
        "Resolved configuration (diagnostic): %s",
        {"store": cfg.store, "server_bind": cfg.server_bind, "server_port": cfg.server_port},
    )

    start_server(cfg)
