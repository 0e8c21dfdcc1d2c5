"""Main application coordinator for familycal.

This module wires the refresh service, navigation state, touch input and
renderer into one async event loop.
"""

from __future__ import annotations

import asyncio
import contextlib
import datetime
import logging
import signal
import time
from typing import Any

import pygame

from familycal.calendar.api_client import CalendarAPIClient
from familycal.calendar.fetcher import FeedFetcher
from familycal.calendar.refresh import RefreshService
from familycal.calendar.store import EventStore
from familycal.core.config import Config
from familycal.core.time_utils import local_timezone, now_local
from familycal.display.geometry import ScreenGeometry
from familycal.display.renderer import FramebufferRenderer
from familycal.display.touch import GestureInterpreter, TouchTracker
from familycal.domain.navigation import Command, Navigator, Next, Prev, SwitchMode, ViewMode
from familycal.domain.view_model import ViewModel, ViewSettings, build_view

logger = logging.getLogger(__name__)

EVENT_POLL_INTERVAL = 0.05  # seconds between input polls
STALE_AFTER_REFRESHES = 3  # missed refreshes before the status line warns

_KEY_COMMANDS: dict[int, Command] = {
    pygame.K_LEFT: Prev(),
    pygame.K_RIGHT: Next(),
    pygame.K_d: SwitchMode(ViewMode.DAY),
    pygame.K_w: SwitchMode(ViewMode.WEEK),
    pygame.K_m: SwitchMode(ViewMode.MONTH),
}


class FamilyCalApp:
    """Main application coordinator.

    Runs two concurrent tasks: the refresh loop, which publishes new event
    snapshots, and the display loop, which handles input and redraws when the
    view, the data or the clock changes.
    """

    def __init__(self, config: Config, renderer: Any = None):
        """Initialize the application.

        Args:
            config: Validated configuration instance
            renderer: Optional renderer (defaults to the pygame framebuffer renderer)
        """
        self.config = config
        self.running = False
        self.stop_event = asyncio.Event()

        self.tz = local_timezone(config.utc_offset_minutes)
        self.view_settings = ViewSettings.from_config(config)
        self.store = EventStore()

        self.api_client: CalendarAPIClient | None = None
        self.fetcher: FeedFetcher | None = None
        if config.feed_mode == "json":
            self.api_client = CalendarAPIClient(config)
        else:
            self.fetcher = FeedFetcher(config)
        self.refresh = RefreshService(
            config, self.store, self.tz, api_client=self.api_client, fetcher=self.fetcher
        )

        geometry = ScreenGeometry(width=config.display_width, height=config.display_height)
        self.navigator = Navigator(now_local(self.tz).date())
        self.touch = TouchTracker(GestureInterpreter(geometry))
        self.renderer = renderer or FramebufferRenderer(config, geometry)

        self.view: ViewModel | None = None
        self._needs_redraw = True
        self._last_draw = 0.0

        logger.info("familycal initialized")
        logger.info("Feed mode: %s", config.feed_mode)
        logger.info("Data refresh interval: %ds", config.refresh_interval)
        logger.info("Display refresh interval: %ds", config.display_refresh_interval)

    async def run(self) -> None:
        """Main event loop.

        Runs until ``stop()`` is called or a quit event is received.
        """
        self.running = True
        logger.info("Starting main event loop")

        self.renderer.render_message("familycal", "Loading calendars...")

        refresh_task = asyncio.create_task(self.refresh.run_forever(self.stop_event))
        display_task = asyncio.create_task(self._display_loop())

        try:
            await asyncio.gather(refresh_task, display_task)
        except Exception:
            logger.exception("Error in main event loop")
        finally:
            for task in (refresh_task, display_task):
                if not task.done():
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task

        logger.info("Main event loop stopped")

    def stop(self) -> None:
        self.running = False
        self.stop_event.set()

    def apply_command(self, command: Command) -> None:
        """Apply one navigation command and schedule a redraw if it changed the view."""
        before = self.navigator.cursor
        if self.navigator.apply(command) != before:
            self._needs_redraw = True

    def status_message(self, now: datetime.datetime) -> str | None:
        """Short warning for the bottom of the screen, or None when data is fresh."""
        status = self.refresh.status
        if status.last_attempt is None:
            return None
        if status.last_success is None:
            return f"Calendar unavailable: {status.last_error}"
        max_age = datetime.timedelta(seconds=self.config.refresh_interval * STALE_AFTER_REFRESHES)
        if status.is_stale(now, max_age):
            return f"Offline - last update {status.last_success.astimezone(self.tz):%H:%M}"
        return None

    def redraw(self) -> None:
        now = now_local(self.tz)
        self.view = build_view(
            self.navigator.cursor, self.store.snapshot, self.view_settings, now.date()
        )
        self.renderer.render(self.view, now, self.status_message(now))
        self._needs_redraw = False
        self._last_draw = time.monotonic()

    async def _display_loop(self) -> None:
        """Display task - input handling and redraws."""
        last_snapshot = None
        last_status_attempt = None

        while self.running:
            try:
                self._handle_input()

                snapshot = self.store.snapshot
                attempt = self.refresh.status.last_attempt
                if snapshot is not last_snapshot or attempt != last_status_attempt:
                    last_snapshot = snapshot
                    last_status_attempt = attempt
                    self._needs_redraw = True

                elapsed = time.monotonic() - self._last_draw
                if attempt is not None and (
                    self._needs_redraw or elapsed >= self.config.display_refresh_interval
                ):
                    self.redraw()
                    logger.debug("Display updated")

            except Exception:
                logger.exception("Error in display loop")

            await asyncio.sleep(EVENT_POLL_INTERVAL)

    def _handle_input(self) -> None:
        """Translate pygame events into navigation commands."""
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                logger.info("Received QUIT event")
                self.stop()
            elif event.type == pygame.KEYDOWN:
                if event.key in (pygame.K_ESCAPE, pygame.K_q):
                    logger.info("Received quit key")
                    self.stop()
                elif event.key in _KEY_COMMANDS:
                    self.apply_command(_KEY_COMMANDS[event.key])
            elif event.type == pygame.MOUSEBUTTONDOWN:
                self.touch.press(event.pos[0], event.pos[1], time.monotonic())
            elif event.type == pygame.MOUSEBUTTONUP:
                self._release(event.pos[0], event.pos[1])
            elif event.type == pygame.FINGERDOWN:
                x, y = self._finger_pos(event)
                self.touch.press(x, y, time.monotonic())
            elif event.type == pygame.FINGERUP:
                self._release(*self._finger_pos(event))

    def _finger_pos(self, event: Any) -> tuple[int, int]:
        # Finger coordinates are normalised to 0..1
        return int(event.x * self.config.display_width), int(event.y * self.config.display_height)

    def _release(self, x: int, y: int) -> None:
        days = [column.date for column in self.view.columns] if self.view else []
        command = self.touch.release(x, y, time.monotonic(), self.navigator.cursor.mode, days)
        if command is not None:
            self.apply_command(command)

    async def shutdown(self) -> None:
        """Graceful shutdown.

        Renderer cleanup (pygame.quit) happens after run() returns, since the
        display loop uses pygame event handling.
        """
        logger.info("Shutting down...")
        self.stop()

        if self.api_client is not None:
            await self.api_client.close()
        if self.fetcher is not None:
            await self.fetcher.close()

        logger.info("Shutdown complete")


async def run_app(config: Config) -> None:
    """Create the application, install signal handlers and run until stopped."""
    app = FamilyCalApp(config)

    loop = asyncio.get_running_loop()

    def signal_handler(sig: Any) -> None:
        logger.info("Received signal: %s", sig)
        app.stop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))  # type: ignore[misc]

    try:
        await app.run()
    except KeyboardInterrupt:
        logger.info("Received KeyboardInterrupt")
    finally:
        await app.shutdown()
        app.renderer.cleanup()
