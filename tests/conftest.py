"""Shared fixtures for familycal tests."""

import datetime
import os
from collections.abc import Generator
from types import SimpleNamespace
from typing import Any, Callable

import pytest

from familycal.calendar.models import Event
from familycal.core.config import Config


@pytest.fixture
def tz() -> datetime.timezone:
    """Fixed UTC+02:00 zone.

    A non-zero offset catches code that confuses UTC with local time.
    """
    return datetime.timezone(datetime.timedelta(hours=2))


@pytest.fixture
def now(tz: datetime.timezone) -> datetime.datetime:
    """Deterministic "now": Wednesday 2025-06-04 10:30 local."""
    return datetime.datetime(2025, 6, 4, 10, 30, tzinfo=tz)


@pytest.fixture
def simple_settings() -> SimpleNamespace:
    """Lightweight settings object for the HTTP collaborators.

    Fields:
      - api_timeout: HTTP read timeout in seconds
      - max_retries: retry attempts for feed fetches
      - retry_backoff_factor: multiplier for retry backoff delays
    """
    return SimpleNamespace(api_timeout=5, max_retries=2, retry_backoff_factor=1.0)


@pytest.fixture
def config() -> Config:
    """Default configuration in JSON feed mode."""
    return Config(feed_mode="json", api_url="https://backend.example.com/api/calendar")


@pytest.fixture
def make_event(tz: datetime.timezone) -> Callable[..., Event]:
    """Factory for events on a given day with HH:MM start and end strings."""

    def _make(
        title: str,
        start: str,
        end: str,
        day: datetime.date = datetime.date(2025, 6, 4),
        **kwargs: Any,
    ) -> Event:
        sh, sm = (int(p) for p in start.split(":"))
        eh, em = (int(p) for p in end.split(":"))
        return Event(
            title=title,
            start=datetime.datetime.combine(day, datetime.time(sh, sm), tzinfo=tz),
            end=datetime.datetime.combine(day, datetime.time(eh, em), tzinfo=tz),
            **kwargs,
        )

    return _make


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Clear FAMILYCAL_* variables so host settings never leak into tests."""
    for key in list(os.environ):
        if key.startswith("FAMILYCAL_"):
            monkeypatch.delenv(key, raising=False)
    yield
    # Values written straight to os.environ (.env loading, --config)
    for key in list(os.environ):
        if key.startswith("FAMILYCAL_"):
            del os.environ[key]
