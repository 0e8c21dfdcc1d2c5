"""Data models for calendars, events and feed sources."""

from __future__ import annotations

import datetime
import logging
import re
from collections.abc import Iterable
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

DEFAULT_CALENDAR_ID = "default"
DEFAULT_COLOR = 0x3B82F6

_HEX_COLOR_RE = re.compile(r"^#?([0-9a-fA-F]{6})$")


def parse_hex_color(value: str) -> int:
    """Parse a ``#RRGGBB`` string into a 24-bit RGB integer.

    Raises:
        ValueError: If the string is not a six-digit hex colour
    """
    if not isinstance(value, str):
        raise ValueError(f"Colour must be a string, got {type(value).__name__}")
    match = _HEX_COLOR_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid colour {value!r}, expected #RRGGBB")
    return int(match.group(1), 16)


def color_to_rgb(color: int) -> tuple[int, int, int]:
    return (color >> 16) & 0xFF, (color >> 8) & 0xFF, color & 0xFF


class Calendar(BaseModel):
    """Display identity of one calendar."""

    id: str = Field(..., min_length=1, description="Calendar id, unique within a load")
    name: str = Field(..., description="Human-readable calendar name")
    display_color: int = Field(
        default=DEFAULT_COLOR, ge=0, le=0xFFFFFF, description="24-bit RGB colour"
    )

    model_config = ConfigDict(frozen=True)


class Event(BaseModel):
    """One calendar event.

    Instants are timezone-aware. ``end == start`` is a zero-duration event,
    kept for day membership but never laid out in the time grid.
    """

    title: str = Field(default="", description="Event title, may be empty")
    start: datetime.datetime = Field(..., description="Start instant")
    end: datetime.datetime = Field(..., description="End instant, never before start")
    calendar_id: str = Field(default=DEFAULT_CALENDAR_ID, description="Owning calendar id")
    all_day: bool = Field(default=False, description="Whole-day span, rendered outside the grid")
    location: Optional[str] = Field(default=None, description="Event location")

    # Feed-supplied extras
    color: Optional[int] = Field(
        default=None, ge=0, le=0xFFFFFF, description="Per-event colour override"
    )
    uid: Optional[str] = Field(default=None, description="Identifier from the source feed")

    model_config = ConfigDict(frozen=True)

    @field_validator("start", "end")
    @classmethod
    def _require_aware(cls, value: datetime.datetime) -> datetime.datetime:
        if value.tzinfo is None:
            raise ValueError("event instants must be timezone-aware")
        return value

    @model_validator(mode="after")
    def _check_interval(self) -> Event:
        if self.end < self.start:
            raise ValueError(f"end {self.end.isoformat()} is before start {self.start.isoformat()}")
        return self

    @property
    def is_zero_duration(self) -> bool:
        return self.end == self.start

    @property
    def duration(self) -> datetime.timedelta:
        return self.end - self.start


class FeedSource(BaseModel):
    """Configuration for one raw calendar feed."""

    id: str = Field(..., min_length=1, description="Calendar id the feed's events are tagged with")
    url: str = Field(..., min_length=1, description="Feed URL")
    name: str = Field(default="", description="Display name (defaults to the id)")
    color: int = Field(default=DEFAULT_COLOR, ge=0, le=0xFFFFFF, description="24-bit RGB colour")

    @field_validator("color", mode="before")
    @classmethod
    def _parse_color(cls, value: object) -> object:
        if isinstance(value, str):
            return parse_hex_color(value)
        return value

    def to_calendar(self) -> Calendar:
        return Calendar(id=self.id, name=self.name or self.id, display_color=self.color)


def order_events(events: Iterable[Event], max_events: Optional[int] = None) -> list[Event]:
    """Stable-sort events by start and apply the capacity limit.

    When more than ``max_events`` remain, the earliest-starting events are
    evicted first so the kept list covers the most recent and upcoming ones.
    """
    ordered = sorted(events, key=lambda e: e.start)
    if max_events is not None and len(ordered) > max_events:
        evicted = len(ordered) - max_events
        logger.warning(
            "Event capacity %d exceeded, evicting %d earliest events", max_events, evicted
        )
        ordered = ordered[evicted:]
    return ordered
