"""aiohttp server for the meetingcal JSON API."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from collections.abc import Callable
from datetime import datetime
from typing import Optional

from aiohttp import web

from .config_loader import Config
from .expander import ExpanderConfig, OccurrenceExpander
from .http_client import close_all_clients
from .middleware import correlation_id_middleware
from .routes import register_api_routes
from .store import TemplateStore, create_store
from .timezone_utils import now_utc

logger = logging.getLogger(__name__)


def _make_app(
    config: Config,
    store: Optional[TemplateStore] = None,
    time_provider: Callable[[], datetime] = now_utc,
) -> web.Application:
    """Create the aiohttp application with routes wired to ``store``.

    Args:
        config: Application configuration
        store: Template store; built from ``config`` when omitted
        time_provider: Clock used once per request
    """
    if store is None:
        store = create_store(config)

    app = web.Application(middlewares=[correlation_id_middleware])
    expander = OccurrenceExpander(ExpanderConfig.from_settings(config))

    register_api_routes(
        app=app,
        config=config,
        store=store,
        expander=expander,
        time_provider=time_provider,
    )

    async def _cleanup(_app: web.Application) -> None:
        logger.info("Application cleanup: closing shared HTTP clients")
        await close_all_clients()

    app.on_cleanup.append(_cleanup)
    logger.debug("Web application created with %s store", config.store)
    return app


async def _serve(config: Config, store: Optional[TemplateStore] = None) -> None:
    """Run the server until SIGINT/SIGTERM."""
    app = _make_app(config, store)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host=config.server_bind, port=config.server_port)
    try:
        await site.start()
    except OSError:
        logger.exception("Failed to start server on %s:%d", config.server_bind, config.server_port)
        await runner.cleanup()
        raise
    logger.info("Server started on %s:%d", config.server_bind, config.server_port)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _on_signal() -> None:
        logger.info("Shutdown signal received")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, _on_signal)

    try:
        await stop_event.wait()
    finally:
        logger.info("Stopping server")
        await runner.cleanup()


def start_server(config: Config, store: Optional[TemplateStore] = None) -> None:
    """Blocking entrypoint: serve the API until interrupted."""
    try:
        asyncio.run(_serve(config, store))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
