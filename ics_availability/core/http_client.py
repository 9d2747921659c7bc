"""Shared HTTP client manager.

Keeps one ``httpx.AsyncClient`` per client id so that repeated feed fetches
reuse connections instead of paying a TLS handshake each time.
"""

import asyncio
import logging
from typing import Optional

import httpx

from ics_availability import __version__

logger = logging.getLogger(__name__)

_shared_clients: dict[str, httpx.AsyncClient] = {}
_client_lock = asyncio.Lock()

DEFAULT_LIMITS = httpx.Limits(
    max_connections=10,
    max_keepalive_connections=5,
)

DEFAULT_TIMEOUT = httpx.Timeout(15.0, connect=10.0)

DEFAULT_HEADERS: dict[str, str] = {
    "User-Agent": f"ics-availability/{__version__}",
    "Accept": "text/calendar, text/plain, application/octet-stream, */*",
    "Accept-Encoding": "gzip, deflate",
}


def create_client(
    limits: Optional[httpx.Limits] = None,
    timeout: Optional[httpx.Timeout] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create an AsyncClient with certificate verification and redirects enabled.

    Args:
        limits: Custom connection limits
        timeout: Custom timeout configuration
        transport: Optional transport (tests pass ``httpx.MockTransport``)
    """
    kwargs = {}
    if transport is not None:
        kwargs["transport"] = transport
    else:
        kwargs["limits"] = limits or DEFAULT_LIMITS
    return httpx.AsyncClient(
        timeout=timeout or DEFAULT_TIMEOUT,
        follow_redirects=True,
        verify=True,
        headers=DEFAULT_HEADERS,
        **kwargs,
    )


async def get_shared_client(
    client_id: str = "default",
    limits: Optional[httpx.Limits] = None,
    timeout: Optional[httpx.Timeout] = None,
) -> httpx.AsyncClient:
    """Get or create a shared HTTP client with connection pooling.

    Args:
        client_id: Identifier for the client (allows multiple clients if needed)
        limits: Custom connection limits
        timeout: Custom timeout configuration

    Returns:
        Shared httpx.AsyncClient

    Raises:
        RuntimeError: If client creation fails
    """
    async with _client_lock:
        client = _shared_clients.get(client_id)
        if client is None or client.is_closed:
            try:
                client = create_client(limits=limits, timeout=timeout)
            except Exception as e:
                logger.exception("Failed to create shared HTTP client '%s'", client_id)
                raise RuntimeError(f"Failed to create shared HTTP client: {e}") from e
            _shared_clients[client_id] = client
            logger.info("Created shared HTTP client '%s'", client_id)
        return client


async def close_all_clients() -> None:
    """Close all shared HTTP clients.

    Called during application shutdown.
    """
    async with _client_lock:
        for client_id, client in _shared_clients.items():
            if not client.is_closed:
                try:
                    await client.aclose()
                    logger.debug("Closed shared HTTP client '%s'", client_id)
                except Exception as e:
                    logger.warning("Error closing shared HTTP client '%s': %s", client_id, e)

        _shared_clients.clear()
        logger.info("All shared HTTP clients closed")
