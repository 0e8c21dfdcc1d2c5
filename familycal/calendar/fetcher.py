"""HTTP client for downloading raw calendar feeds."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from familycal.calendar.models import FeedSource
from familycal.core.exceptions import (
    FeedAuthError,
    FeedFetchError,
    FeedNetworkError,
    FeedTimeoutError,
)

logger = logging.getLogger(__name__)

# Backoff calculation constants
MAX_BACKOFF_SECONDS = 30.0
JITTER_MIN_FACTOR = 0.1
JITTER_MAX_FACTOR = 0.3

DEFAULT_FEED_HEADERS: dict[str, str] = {
    "User-Agent": "familycal/0.1 (+calendar display)",
    "Accept": "text/calendar, text/plain, application/octet-stream, */*",
    "Accept-Encoding": "gzip, deflate",
}


def calculate_backoff(attempt: int, backoff_factor: float) -> float:
    """Exponential backoff with jitter.

    Args:
        attempt: Current retry attempt number (0-indexed)
        backoff_factor: Base factor for exponential backoff calculation

    Returns:
        Backoff time in seconds including jitter, capped at MAX_BACKOFF_SECONDS
    """
    base_backoff = min(backoff_factor**attempt, MAX_BACKOFF_SECONDS)
    jitter = random.uniform(JITTER_MIN_FACTOR, JITTER_MAX_FACTOR) * base_backoff  # nosec B311 - jitter not cryptographic
    return base_backoff + jitter


def validate_feed_url(url: str) -> bool:
    """Only http(s) URLs with a hostname are fetched."""
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


class FeedFetcher:
    """Async HTTP client for raw calendar feeds.

    Retries network errors, timeouts and 5xx responses with exponential
    backoff; 401/403 and other 4xx responses fail immediately.
    """

    def __init__(
        self,
        settings: Any,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize feed fetcher.

        Args:
            settings: Object with api_timeout, max_retries and retry_backoff_factor
            client: Optional pre-built client (not closed by this fetcher)
        """
        self.settings = settings
        self.client = client
        self._owns_client = client is None

    async def __aenter__(self) -> FeedFetcher:
        self._ensure_client()
        return self

    async def __aexit__(self, _exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self.client is None or self.client.is_closed:
            request_timeout = float(getattr(self.settings, "api_timeout", 30))
            self.client = httpx.AsyncClient(
                timeout=httpx.Timeout(connect=10.0, read=request_timeout, write=10.0, pool=30.0),
                limits=httpx.Limits(max_connections=4, max_keepalive_connections=2),
                follow_redirects=True,
                headers=DEFAULT_FEED_HEADERS,
            )
            self._owns_client = True
        return self.client

    async def close(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self.client is not None and self._owns_client and not self.client.is_closed:
            await self.client.aclose()
            logger.debug("Closed feed HTTP client")
        if self._owns_client:
            self.client = None

    async def fetch(self, source: FeedSource) -> bytes:
        """Download one feed.

        Returns:
            Raw feed body

        Raises:
            FeedAuthError: On HTTP 401/403 (not retried)
            FeedFetchError: On an invalid URL or a non-success status
            FeedTimeoutError: When every attempt timed out
            FeedNetworkError: When every attempt failed at the network level
        """
        if not validate_feed_url(source.url):
            raise FeedFetchError(f"Refusing to fetch non-http(s) feed URL for {source.id}")

        client = self._ensure_client()
        max_retries = int(getattr(self.settings, "max_retries", 3))
        backoff_factor = float(getattr(self.settings, "retry_backoff_factor", 1.5))

        attempt = 0
        while True:
            try:
                response = await client.get(source.url)
            except httpx.TimeoutException as e:
                error: FeedFetchError = FeedTimeoutError(f"Timeout fetching feed {source.id}: {e}")
                cause: Exception = e
            except httpx.TransportError as e:
                error = FeedNetworkError(f"Network error fetching feed {source.id}: {e}")
                cause = e
            else:
                status = response.status_code
                if status in (401, 403):
                    raise FeedAuthError(
                        f"Feed {source.id} rejected credentials (HTTP {status})", status
                    )
                if status < 400:
                    logger.debug(
                        "Fetched feed %s (attempt %d) - %d bytes",
                        source.id,
                        attempt + 1,
                        len(response.content),
                    )
                    return response.content
                error = FeedFetchError(
                    f"Feed {source.id} returned HTTP {status}: {response.reason_phrase}", status
                )
                cause = error
                if status < 500:
                    raise error

            if attempt >= max_retries:
                logger.error("All %d attempts failed for feed %s", attempt + 1, source.id)
                if cause is error:
                    raise error
                raise error from cause

            backoff_time = calculate_backoff(attempt, backoff_factor)
            logger.warning(
                "Feed %s failed (attempt %d/%d), retrying in %.1fs: %s",
                source.id,
                attempt + 1,
                max_retries + 1,
                backoff_time,
                error.message,
            )
            await asyncio.sleep(backoff_time)
            attempt += 1
