"""
Central logging configuration for meetingcal.

Colorized console output via colorlog, request ids on every record, and
third-party loggers held at WARNING so expansion diagnostics stay readable.
"""

import logging
import os
import sys
from typing import Optional

from colorlog import ColoredFormatter

DEBUG_ENV_VAR = "MEETINGCAL_DEBUG"
LOG_LEVEL_ENV_VAR = "MEETINGCAL_LOG_LEVEL"

CONSOLE_FORMAT = (
    "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s [%(request_id)s] %(name)s: %(message)s"
)

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}

# Third-party loggers that are noisy below WARNING
QUIET_LOGGERS: dict[str, int] = {
    "aiohttp.access": logging.WARNING,
    "aiohttp.server": logging.WARNING,
    "aiohttp.web": logging.INFO,
    "aiohttp.web_log": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
    "icalendar": logging.INFO,
}


class CorrelationIdFilter(logging.Filter):
    """Add correlation ID to all log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        from .middleware import get_request_id

        record.request_id = get_request_id()
        return True


def _debug_from_env() -> bool:
    return os.getenv(DEBUG_ENV_VAR, "").strip().lower() in ("1", "true", "yes", "on")


def build_console_handler(level: int = logging.NOTSET) -> logging.Handler:
    """Stream handler with the colorized format and the correlation id filter."""
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(ColoredFormatter(CONSOLE_FORMAT, datefmt="%H:%M:%S", log_colors=LOG_COLORS))
    handler.addFilter(CorrelationIdFilter())
    return handler


def configure_lite_logging(
    level_name: Optional[str] = None,
    debug_mode: bool = False,
    force_debug: Optional[bool] = None,
) -> int:
    """Configure logging for meetingcal.

    Args:
        level_name: Root level name from configuration, e.g. "INFO"
        debug_mode: Whether to enable debug logging for meetingcal modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        MEETINGCAL_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        MEETINGCAL_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        The root level that was applied
    """
    if force_debug is not None:
        final_debug = force_debug
    else:
        final_debug = debug_mode or _debug_from_env()

    root_level = logging.DEBUG if final_debug else logging.INFO
    env_log_level = os.getenv(LOG_LEVEL_ENV_VAR, "").upper()
    for candidate in (env_log_level, (level_name or "").upper()):
        if candidate in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL") and not final_debug:
            root_level = getattr(logging, candidate)
            break

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    if not root_logger.handlers:
        root_logger.addHandler(build_console_handler())
    else:
        for handler in root_logger.handlers:
            if not any(isinstance(f, CorrelationIdFilter) for f in handler.filters):
                handler.addFilter(CorrelationIdFilter())

    for logger_name, level in QUIET_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(level)
    logging.getLogger("meetingcal").setLevel(logging.DEBUG if final_debug else root_level)

    root_logger.debug("Logging configured at %s", logging.getLevelName(root_level))
    return root_level


def get_logging_status() -> dict[str, str]:
    """Current level of the root logger and the key meetingcal/third-party loggers."""
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ("meetingcal", "aiohttp.access", "httpx", "asyncio"):
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
