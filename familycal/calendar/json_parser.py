"""JSON feed ingestion.

The backend returns one document::

    {
      "calendars": [{"id": "family", "name": "Family", "color": "#FF8800"}],
      "events": [{"title": "...", "start": "2025-06-01T09:00:00",
                  "end": "2025-06-01T10:00:00", "color": "#FF8800",
                  "allDay": false, "location": "...", "calendar": "family"}]
    }

The whole document is rejected when it is not valid JSON or when any event is
missing a required field or carries an unparseable date-time or colour.
"""

from __future__ import annotations

import datetime
import json
import logging
from typing import NamedTuple, Optional, Union

from dateutil import parser as date_parser
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from familycal.calendar.models import (
    DEFAULT_CALENDAR_ID,
    DEFAULT_COLOR,
    Calendar,
    Event,
    order_events,
    parse_hex_color,
)
from familycal.core.exceptions import FeedParseError
from familycal.core.time_utils import to_local

logger = logging.getLogger(__name__)


def _parse_iso(value: object) -> datetime.datetime:
    if not isinstance(value, str):
        raise ValueError(f"expected an ISO-8601 string, got {type(value).__name__}")
    try:
        return date_parser.isoparse(value)
    except (ValueError, OverflowError) as e:
        raise ValueError(f"invalid ISO-8601 date-time {value!r}: {e}") from e


class CalendarPayload(BaseModel):
    """One entry of the document's ``calendars`` array."""

    id: Optional[str] = Field(default=None, description="Calendar id (defaults to name)")
    name: str = Field(..., description="Display name")
    color: int = Field(default=DEFAULT_COLOR, description="#RRGGBB colour")

    model_config = ConfigDict(extra="ignore")

    @field_validator("color", mode="before")
    @classmethod
    def _parse_color(cls, value: object) -> object:
        return parse_hex_color(value)  # type: ignore[arg-type]


class EventPayload(BaseModel):
    """One entry of the document's ``events`` array."""

    title: str = Field(..., description="Event title")
    start: datetime.datetime = Field(..., description="ISO-8601 start")
    end: datetime.datetime = Field(..., description="ISO-8601 end")
    color: int = Field(..., description="#RRGGBB colour")
    all_day: bool = Field(default=False, alias="allDay")
    location: Optional[str] = Field(default=None)
    calendar: Optional[str] = Field(default=None, description="Calendar reference")
    calendar_id: Optional[str] = Field(default=None, alias="calendarId")
    id: Optional[Union[str, int]] = Field(default=None, description="Backend event id")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @field_validator("start", "end", mode="before")
    @classmethod
    def _parse_datetime(cls, value: object) -> datetime.datetime:
        return _parse_iso(value)

    @field_validator("color", mode="before")
    @classmethod
    def _parse_color(cls, value: object) -> object:
        return parse_hex_color(value)  # type: ignore[arg-type]

    @property
    def calendar_ref(self) -> Optional[str]:
        return self.calendar_id or self.calendar


class FeedDocument(BaseModel):
    """Top-level JSON feed document."""

    calendars: list[CalendarPayload] = Field(default_factory=list)
    events: list[EventPayload] = Field(...)
    fetched_at: Optional[str] = Field(default=None, alias="fetchedAt")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ParsedFeed(NamedTuple):
    calendars: list[Calendar]
    events: list[Event]


def parse_json_feed(
    data: Union[bytes, str],
    tz: datetime.tzinfo,
    max_events: Optional[int] = None,
) -> ParsedFeed:
    """Parse a JSON feed document into calendars and start-ordered events.

    Args:
        data: Raw document (bytes are decoded as UTF-8)
        tz: Local zone; naive date-times are local, aware ones are converted
        max_events: Optional capacity limit applied after sorting

    Returns:
        ParsedFeed with the document's calendars and events

    Raises:
        FeedParseError: If the document is malformed or any event is invalid
    """
    try:
        raw = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise FeedParseError(f"Malformed JSON feed: {e}") from e

    if not isinstance(raw, dict):
        raise FeedParseError(f"JSON feed must be an object, got {type(raw).__name__}")

    try:
        document = FeedDocument.model_validate(raw)
    except ValidationError as e:
        raise FeedParseError(f"Invalid JSON feed: {e.error_count()} error(s): {e}") from e

    calendars: list[Calendar] = []
    seen_ids: set[str] = set()
    for payload in document.calendars:
        cal_id = payload.id or payload.name
        if not cal_id:
            logger.warning("Skipping calendar with empty id and name")
            continue
        if cal_id in seen_ids:
            logger.warning("Duplicate calendar id %r in feed, keeping the first", cal_id)
            continue
        seen_ids.add(cal_id)
        calendars.append(Calendar(id=cal_id, name=payload.name, display_color=payload.color))

    events: list[Event] = []
    for index, payload in enumerate(document.events):
        start = to_local(payload.start, tz)
        end = to_local(payload.end, tz)
        if end < start:
            logger.warning(
                "Dropping event %d (%r): end %s before start %s",
                index,
                payload.title,
                end.isoformat(),
                start.isoformat(),
            )
            continue

        events.append(
            Event(
                title=payload.title,
                start=start,
                end=end,
                calendar_id=payload.calendar_ref or DEFAULT_CALENDAR_ID,
                all_day=payload.all_day,
                location=payload.location,
                color=payload.color,
                uid=None if payload.id is None else str(payload.id),
            )
        )

    logger.debug("Parsed JSON feed: %d calendars, %d events", len(calendars), len(events))
    return ParsedFeed(calendars=calendars, events=order_events(events, max_events))
