"""Refresh orchestration and refresh loop management."""

from __future__ import annotations

import asyncio
import datetime
import logging
from dataclasses import dataclass

from familycal.calendar.api_client import CalendarAPIClient
from familycal.calendar.fetcher import FeedFetcher
from familycal.calendar.ics_parser import ingest_feeds, retention_window
from familycal.calendar.json_parser import parse_json_feed
from familycal.calendar.store import EventStore, Snapshot
from familycal.core.config import Config
from familycal.core.exceptions import FeedError
from familycal.core.time_utils import now_local

logger = logging.getLogger(__name__)


@dataclass
class RefreshStatus:
    """Outcome of the most recent refresh attempts."""

    last_attempt: datetime.datetime | None = None
    last_success: datetime.datetime | None = None
    last_error: str | None = None
    consecutive_failures: int = 0
    event_count: int = 0

    def record_success(self, when: datetime.datetime, event_count: int) -> None:
        self.last_attempt = when
        self.last_success = when
        self.last_error = None
        self.consecutive_failures = 0
        self.event_count = event_count

    def record_failure(self, when: datetime.datetime, error: str) -> None:
        self.last_attempt = when
        self.last_error = error
        self.consecutive_failures += 1

    def is_stale(self, now: datetime.datetime, max_age: datetime.timedelta) -> bool:
        """True when no refresh has succeeded within ``max_age``."""
        return self.last_success is None or now - self.last_success > max_age


class RefreshService:
    """Runs ingestion passes and publishes their results.

    Every pass is fail-closed: any transport or parse failure leaves the
    previously published snapshot in place.
    """

    def __init__(
        self,
        config: Config,
        store: EventStore,
        tz: datetime.tzinfo,
        api_client: CalendarAPIClient | None = None,
        fetcher: FeedFetcher | None = None,
    ):
        """Initialize refresh service.

        Args:
            config: Application configuration
            store: Store receiving new snapshots
            tz: Local zone
            api_client: JSON backend client (json mode)
            fetcher: Raw feed fetcher (ics mode)
        """
        self.config = config
        self.store = store
        self.tz = tz
        self.api_client = api_client
        self.fetcher = fetcher
        self.status = RefreshStatus()
        self._pass_lock = asyncio.Lock()

    async def refresh_once(self) -> bool:
        """Run one ingestion pass.

        Returns:
            True if a new snapshot was published; False if the pass failed
            or was skipped because another pass is running
        """
        if self._pass_lock.locked():
            logger.debug("Refresh already in progress, skipping")
            return False

        async with self._pass_lock:
            now = now_local(self.tz)
            logger.debug("=== Starting refresh (%s mode) ===", self.config.feed_mode)
            try:
                snapshot = await self._ingest(now)
            except FeedError as e:
                self.status.record_failure(now, e.message)
                logger.warning(
                    "Refresh failed (%d consecutive), keeping %d published events: %s",
                    self.status.consecutive_failures,
                    len(self.store.snapshot.events),
                    e.message,
                )
                return False

            await self.store.publish(snapshot)
            self.status.record_success(now, len(snapshot.events))
            logger.info(
                "Calendar data refreshed - %d calendars, %d events",
                len(snapshot.calendars),
                len(snapshot.events),
            )
            return True

    async def _ingest(self, now: datetime.datetime) -> Snapshot:
        window = retention_window(
            now, self.config.retention_past_days, self.config.retention_future_days
        )

        if self.config.feed_mode == "json":
            if self.api_client is None:
                raise FeedError("JSON feed mode requires an API client")
            body = await self.api_client.fetch_document(*window)
            parsed = parse_json_feed(body, self.tz, self.config.max_events)
            return Snapshot.build(parsed.calendars, parsed.events, now)

        if self.fetcher is None:
            raise FeedError("Raw feed mode requires a feed fetcher")

        # Any failing feed aborts the pass
        feeds: list[tuple[str, bytes]] = []
        for source in self.config.sources:
            feeds.append((source.id, await self.fetcher.fetch(source)))

        events = ingest_feeds(feeds, self.tz, window, self.config.max_events)
        calendars = [source.to_calendar() for source in self.config.sources]
        return Snapshot.build(calendars, events, now)

    async def run_forever(self, stop_event: asyncio.Event) -> None:
        """Background refresher: immediate refresh then periodic refreshes.

        Args:
            stop_event: Event to signal shutdown
        """
        interval = self.config.refresh_interval
        logger.debug("Refresh loop starting with interval %d seconds", interval)

        while not stop_event.is_set():
            try:
                await self.refresh_once()
            except Exception:
                logger.exception("Refresh loop unexpected error")

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue

        logger.debug("Refresh loop stopped")
