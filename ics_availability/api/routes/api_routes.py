"""Availability API routes."""

from __future__ import annotations

import hmac
import logging
import time
from typing import Any, Callable

from aiohttp import web

from ics_availability.core.config_loader import Config
from ics_availability.domain.feed_cache import FeedCache
from ics_availability.domain.orchestrator import AvailabilityService
from ics_availability.exceptions import (
    AuthorizationError,
    AvailabilityError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

INTERNAL_ERROR_BODY = {"error": "Internal server error", "code": "internal_error"}


def get_client_ip(request: web.Request, trust_proxy_headers: bool = False) -> str:
    """Caller identity for rate limiting.

    Uses the first ``X-Forwarded-For`` hop when proxy headers are trusted,
    otherwise the socket peer address.
    """
    if trust_proxy_headers:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    return request.remote or "unknown"


def check_bearer_token(request: web.Request, required_token: str | None) -> None:
    """Require ``Authorization: Bearer <required_token>``.

    Raises:
        AuthorizationError: If no token is configured or the header does not match
    """
    if not required_token:
        raise AuthorizationError(detail="admin token not configured")

    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise AuthorizationError(detail="missing bearer token")

    provided_token = auth_header[7:]
    if not hmac.compare_digest(provided_token.encode(), required_token.encode()):
        raise AuthorizationError(detail="bearer token mismatch")


def error_response(error: AvailabilityError) -> web.Response:
    """JSON error body with the status mapped from the error kind."""
    response = web.json_response(error.to_payload(), status=error.status)
    if isinstance(error, RateLimitError):
        response.headers["Retry-After"] = str(error.retry_after)
    return response


def register_api_routes(
    app: web.Application,
    config: Config,
    service: AvailabilityService,
    cache: FeedCache,
    time_provider: Callable[[], float] = time.monotonic,
) -> None:
    """Register availability, cache administration and health routes.

    Args:
        app: aiohttp web application
        config: Application configuration
        service: Request orchestrator
        cache: Feed cache (cleared by the admin route, reported by health)
        time_provider: Monotonic clock used for uptime
    """
    started_at = time_provider()

    async def availability(request: web.Request) -> web.Response:
        """Busy blocks or day availability for ``start``/``end``/``view``."""
        params = request.query
        caller = get_client_ip(request, config.trust_proxy_headers)
        try:
            result = await service.get_availability(
                params.get("start"),
                params.get("end"),
                params.get("view"),
                caller=caller,
            )
        except AvailabilityError as e:
            if e.status >= 500:
                logger.error("Availability request failed: %s (%s)", e.code, e.detail or e.message)
            else:
                logger.debug("Availability request rejected: %s (%s)", e.code, e.message)
            return error_response(e)
        except Exception:
            logger.exception("Availability request failed unexpectedly")
            return web.json_response(INTERNAL_ERROR_BODY, status=500)

        return web.json_response(result.to_payload(), status=200)

    async def clear_cache(request: web.Request) -> web.Response:
        """Drop every cached window (admin only)."""
        try:
            check_bearer_token(request, config.admin_token)
        except AuthorizationError as e:
            logger.warning("Cache clear denied: %s", e.detail)
            return error_response(e)

        cleared = await cache.clear()
        return web.json_response({"cleared": cleared}, status=200)

    async def health_check(_request: web.Request) -> web.Response:
        """Liveness and cache counters."""
        health_data: dict[str, Any] = {
            "status": "ok",
            "feed_configured": bool(config.ics_url),
            "uptime_s": int(time_provider() - started_at),
            "cache": cache.get_stats(),
        }
        return web.json_response(health_data, status=200)

    app.router.add_get("/api/availability", availability)
    app.router.add_delete("/api/cache", clear_cache)
    app.router.add_get("/api/health", health_check)

    logger.debug("API routes registered")
