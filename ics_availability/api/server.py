"""aiohttp server for the availability API.

``create_app`` wires configuration, store, fetcher, cache, rate limiter and
orchestrator into a ``web.Application``; ``start_server`` runs it until
SIGINT/SIGTERM.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import Optional

import httpx
from aiohttp import web

from ics_availability.calendar.fetcher import IcsFeedFetcher
from ics_availability.core.config_loader import Config
from ics_availability.core.http_client import close_all_clients
from ics_availability.core.kv_store import MemoryStore
from ics_availability.domain.feed_cache import FeedCache
from ics_availability.domain.orchestrator import AvailabilityService, FeedFetcher
from ics_availability.domain.rate_limiter import RateLimiter

from .middleware import correlation_id_middleware
from .routes import register_api_routes

logger = logging.getLogger(__name__)


def create_app(
    config: Config,
    store: Optional[MemoryStore] = None,
    fetcher: Optional[FeedFetcher] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> web.Application:
    """Create the aiohttp application.

    Args:
        config: Application configuration
        store: Key/value store shared by cache and rate limiter (in-memory if None)
        fetcher: Feed fetcher (an IcsFeedFetcher if None)
        http_client: Client handed to the default fetcher instead of the shared one
    """
    store = store if store is not None else MemoryStore()
    fetcher = fetcher if fetcher is not None else IcsFeedFetcher(config, client=http_client)

    cache = FeedCache(store, ttl_seconds=config.cache_ttl_seconds)
    rate_limiter = RateLimiter(store, max_per_minute=config.rate_limit_per_minute)
    service = AvailabilityService(config, fetcher, cache, rate_limiter)

    app = web.Application(middlewares=[correlation_id_middleware])
    register_api_routes(app, config=config, service=service, cache=cache)

    async def _shutdown(_app: web.Application) -> None:
        logger.info("Application shutdown requested")
        try:
            await close_all_clients()
            logger.debug("Shared HTTP clients cleaned up")
        except Exception as e:
            logger.warning("Error cleaning up shared HTTP clients: %s", e)

    app.on_shutdown.append(_shutdown)
    logger.debug(
        "Web application created (feed_configured=%s, ttl=%ds, rate_limit=%d/min)",
        bool(config.ics_url),
        cache.ttl_seconds,
        rate_limiter.max_per_minute,
    )
    return app


async def _serve(config: Config, external_stop_event: Optional[asyncio.Event] = None) -> None:
    """Run the server until signalled to stop.

    Args:
        config: Server configuration
        external_stop_event: Optional event to signal shutdown. If provided,
            signal handlers are not registered (caller owns signal handling).
    """
    stop_event = external_stop_event or asyncio.Event()

    app = create_app(config)
    runner = web.AppRunner(app)
    await runner.setup()

    host = config.server_bind
    port = config.server_port
    site = web.TCPSite(runner, host=host, port=port)
    try:
        await site.start()
    except OSError:
        logger.exception("Failed to start server on %s:%d", host, port)
        await runner.cleanup()
        raise

    logger.info("Server started successfully on %s:%d", host, port)
    if not config.ics_url:
        logger.warning("No iCal feed URL configured; availability requests will fail")

    loop = asyncio.get_running_loop()
    if external_stop_event is None:

        def _on_signal() -> None:
            logger.info("Shutdown signal received")
            stop_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, _on_signal)
    else:
        logger.debug("Using external stop event - skipping signal handler registration")

    await stop_event.wait()
    logger.info("Stop event received, shutting down")

    await runner.cleanup()
    logger.info("Server shutdown complete")


def start_server(config: Config) -> None:
    """Start the asyncio event loop and HTTP server.

    Blocks the calling thread until SIGINT/SIGTERM is received.
    """
    from ics_availability.core.logging_config import configure_logging

    configure_logging(debug_mode=config.debug_logging, log_level=config.log_level)
    logger.info(
        "Logging configuration applied: debug_mode=%s level=%s", config.debug_logging, config.log_level
    )

    try:
        logger.debug("Running asyncio event loop for server")
        asyncio.run(_serve(config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception:
        logger.exception("Server terminated unexpectedly")
        raise
