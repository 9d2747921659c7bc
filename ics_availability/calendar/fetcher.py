"""HTTP fetcher for the remote iCal feed."""

import logging
from typing import Optional
from urllib.parse import urlparse

import httpx

from ics_availability.api.middleware.correlation_id import request_id_var
from ics_availability.core.config_loader import Config
from ics_availability.core.http_client import get_shared_client
from ics_availability.exceptions import ConfigurationError, UpstreamFetchError

logger = logging.getLogger(__name__)

CLIENT_ID = "ics_fetcher"


def validate_feed_url(url: str) -> None:
    """Check that ``url`` is an absolute http(s) URL with a hostname.

    Raises:
        ConfigurationError: If the URL is empty or unusable
    """
    if not url:
        raise ConfigurationError(detail="ics_url is not set")

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        logger.error("Configured feed URL has unsupported scheme %r", parsed.scheme)
        raise ConfigurationError(detail=f"unsupported URL scheme: {parsed.scheme!r}")
    if not parsed.hostname:
        logger.error("Configured feed URL has no hostname")
        raise ConfigurationError(detail="feed URL missing hostname")


class IcsFeedFetcher:
    """Downloads the raw text of the configured calendar feed.

    A single GET per call; failures are not retried. Success requires HTTP 200
    and a non-blank body.
    """

    def __init__(self, config: Config, client: Optional[httpx.AsyncClient] = None) -> None:
        """Initialize fetcher.

        Args:
            config: Application configuration (timeout is read from it)
            client: Optional client to use instead of the shared one
        """
        self.config = config
        self._client = client
        self._timeout = httpx.Timeout(float(config.fetch_timeout_seconds), connect=10.0)
        logger.debug("ICS fetcher initialized (injected_client: %s)", client is not None)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        return await get_shared_client(CLIENT_ID, timeout=self._timeout)

    async def fetch_text(self, url: Optional[str] = None) -> str:
        """Fetch the feed body.

        Args:
            url: Feed URL (defaults to ``config.ics_url``)

        Returns:
            Feed text

        Raises:
            ConfigurationError: If the URL is missing or not http(s)
            UpstreamFetchError: On network error, timeout, non-200 status or empty body
        """
        url = self.config.ics_url if url is None else url
        validate_feed_url(url)

        headers = {}
        request_id = request_id_var.get()
        if request_id:
            headers["X-Request-ID"] = request_id

        client = await self._get_client()
        logger.debug("Fetching ICS feed from %s", _redact(url))
        try:
            response = await client.get(url, headers=headers, timeout=self._timeout)
        except httpx.TimeoutException as e:
            logger.error("Timeout fetching ICS feed from %s", _redact(url))
            raise UpstreamFetchError(detail=f"timeout: {e}") from e
        except httpx.HTTPError as e:
            logger.error("Network error fetching ICS feed from %s: %s", _redact(url), e)
            raise UpstreamFetchError(detail=f"network error: {e}") from e

        if response.status_code != 200:
            logger.error(
                "ICS feed returned HTTP %d from %s", response.status_code, _redact(url)
            )
            raise UpstreamFetchError(
                detail=f"HTTP {response.status_code}", status_code=response.status_code
            )

        text = response.text
        if not text.strip():
            logger.error("Empty ICS content received from %s", _redact(url))
            raise UpstreamFetchError(detail="empty body", status_code=response.status_code)

        logger.debug("Fetched ICS feed (%d bytes)", len(text))
        return text


def _redact(url: str) -> str:
    """Strip the path and query of a feed URL; private feed URLs embed secrets."""
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.hostname or ''}/..."
