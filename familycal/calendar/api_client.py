"""Async API client for the familycal JSON backend.

The backend aggregates the family's calendars and returns one JSON document
for a time range (see ``json_parser``). This client only transports bytes;
parsing and publication happen in the refresh service.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
import time

import aiohttp

from familycal.core.config import Config
from familycal.core.exceptions import (
    FeedAuthError,
    FeedFetchError,
    FeedNetworkError,
    FeedTimeoutError,
)

logger = logging.getLogger(__name__)

RANGE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def format_range_param(instant: datetime.datetime) -> str:
    """Format an instant as the backend's UTC ``from``/``to`` parameter."""
    return instant.astimezone(datetime.timezone.utc).strftime(RANGE_FORMAT)


class CalendarAPIClient:
    """Async HTTP client for the JSON backend.

    Handles:
    - GET of the calendar document for a from/to range
    - ``x-api-key`` authentication when a key is configured
    - Mapping transport failures onto the FeedFetchError hierarchy
    - Connection state tracking for status display
    """

    def __init__(self, config: Config):
        """Initialize API client.

        Args:
            config: Configuration instance
        """
        self.config = config
        self.endpoint = config.get_api_endpoint()

        # State tracking
        self.last_success_time: float | None = None
        self.consecutive_failures: int = 0

        # Session (created on first use)
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session.

        Returns:
            Active ClientSession
        """
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.api_timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)

        return self._session

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json", "Cache-Control": "no-cache"}
        if self.config.api_key:
            headers["x-api-key"] = self.config.api_key
        return headers

    async def fetch_document(
        self, range_start: datetime.datetime, range_end: datetime.datetime
    ) -> bytes:
        """Fetch the calendar document covering ``[range_start, range_end]``.

        Returns:
            Raw response body

        Raises:
            FeedAuthError: On HTTP 401/403
            FeedFetchError: On any other non-success status
            FeedTimeoutError: When the request exceeds the configured timeout
            FeedNetworkError: On connection-level failures
        """
        params = {
            "from": format_range_param(range_start),
            "to": format_range_param(range_end),
        }

        try:
            session = await self._get_session()
            async with session.get(self.endpoint, params=params, headers=self._headers()) as response:
                if response.status in (401, 403):
                    raise FeedAuthError(
                        f"Backend rejected credentials (HTTP {response.status})", response.status
                    )
                if response.status >= 400:
                    raise FeedFetchError(
                        f"Backend returned HTTP {response.status}: {response.reason}",
                        response.status,
                    )
                body = await response.read()

        except FeedFetchError:
            self._record_failure()
            raise
        except asyncio.TimeoutError as e:
            self._record_failure()
            raise FeedTimeoutError(
                f"Backend request timed out after {self.config.api_timeout}s"
            ) from e
        except aiohttp.ClientError as e:
            self._record_failure()
            raise FeedNetworkError(f"Backend request failed: {e}") from e

        self.last_success_time = time.time()
        self.consecutive_failures = 0
        logger.debug("API fetch successful - %d bytes", len(body))
        return body

    def _record_failure(self) -> None:
        self.consecutive_failures += 1
        logger.warning("API fetch failed (attempt %d)", self.consecutive_failures)

    async def close(self) -> None:
        """Close the HTTP session.

        Should be called during shutdown to cleanly close connections.
        """
        if self._session is not None and not self._session.closed:
            await self._session.close()
            self._session = None
            logger.debug("API client session closed")
