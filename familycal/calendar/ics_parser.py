"""Raw calendar feed (RFC 5545 style) ingestion.

This is a line-oriented reader for the subset of iCalendar the display needs:
VEVENT records with SUMMARY, DTSTART, DTEND, DURATION, LOCATION, UID and
STATUS. Recurrence rules are not expanded; each VEVENT is one event. Content
lines and property values are decoded with ``icalendar``; folding and record
state are tracked here, line by line.

Parsing is tolerant: a malformed property value discards only that property,
and a record is dropped at close when it lacks a title or start, has an end
before its start, or falls outside the retention window.
"""

from __future__ import annotations

import datetime
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional, Union

from icalendar.parser import Contentline, unescape_backslash
from icalendar.prop import vDate, vDDDTypes, vDuration

from familycal.calendar.models import Event, order_events

logger = logging.getLogger(__name__)

_LINE_BREAK_RE = re.compile(r"\r\n|\n|\r")


@dataclass(frozen=True)
class ContentLine:
    """One logical ``NAME;PARAM=VALUE:VALUE`` line, name and params upper-cased."""

    name: str
    params: dict[str, str]
    value: str


@dataclass
class _Record:
    """Fields collected for the VEVENT currently open."""

    title: str = ""
    start: Optional[datetime.datetime] = None
    end: Optional[datetime.datetime] = None
    duration: Optional[datetime.timedelta] = None
    all_day: bool = False
    location: Optional[str] = None
    uid: Optional[str] = None
    cancelled: bool = False


def unfold_lines(data: Union[bytes, str]) -> list[str]:
    """Split feed text into logical lines.

    Physical lines are separated by CRLF, LF or CR. A line starting with a
    space or tab continues the previous logical line; exactly one leading
    whitespace character is removed and the remainder appended verbatim.
    """
    if isinstance(data, bytes):
        text = data.decode("utf-8", errors="replace")
    else:
        text = data
    text = text.lstrip("\ufeff")

    lines: list[str] = []
    for physical in _LINE_BREAK_RE.split(text):
        if physical[:1] in (" ", "\t"):
            if lines:
                lines[-1] += physical[1:]
            continue
        if physical:
            lines.append(physical)
    return lines


def split_content_line(line: str) -> Optional[ContentLine]:
    """Split a logical line into name, parameters and raw value.

    Returns:
        ContentLine, or None when the line is not a valid content line
    """
    try:
        name, params, value = Contentline(line).raw_parts()
    except ValueError:
        return None

    flat: dict[str, str] = {}
    for key, param in params.items():
        flat[key.upper()] = param if isinstance(param, str) else ",".join(param)
    return ContentLine(name=name.upper(), params=flat, value=value)


def unescape_text(value: str) -> str:
    r"""Undo TEXT escaping: ``\,`` ``\;`` ``\\`` and ``\n``/``\N`` (as a space)."""
    return unescape_backslash(value).replace("\n", " ")


def parse_date_time(
    value: str, params: dict[str, str], tz: datetime.tzinfo
) -> tuple[datetime.datetime, bool]:
    """Parse a DATE or DATE-TIME value into a local instant.

    Args:
        value: Property value
        params: Property parameters (``VALUE=DATE`` marks a date)
        tz: Local zone. ``Z`` values are UTC and converted; others are local.
            TZID parameters are ignored under the fixed-offset model.

    Returns:
        (instant, is_date) where is_date is True for date-only values

    Raises:
        ValueError: If the value is not a valid date or date-time
    """
    value = value.strip()
    if params.get("VALUE", "").upper() == "DATE":
        parsed = vDate.from_ical(value)
    else:
        parsed = vDDDTypes.from_ical(value)

    if isinstance(parsed, datetime.datetime):
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=tz), False
        return parsed.astimezone(tz), False
    if isinstance(parsed, datetime.date):
        return datetime.datetime(parsed.year, parsed.month, parsed.day, tzinfo=tz), True
    raise ValueError(f"invalid date-time {value!r}")


def parse_duration(value: str) -> datetime.timedelta:
    """Parse an RFC 5545 DURATION such as ``PT1H30M`` or ``-P1D``.

    Raises:
        ValueError: If the value is not a duration or has no components
    """
    value = value.strip()
    if not any(ch.isdigit() for ch in value):
        raise ValueError(f"invalid duration {value!r}")
    return vDuration.from_ical(value)


def retention_window(
    now: datetime.datetime, past_days: int = 30, future_days: int = 60
) -> tuple[datetime.datetime, datetime.datetime]:
    """Return the ``[now - past_days, now + future_days]`` ingestion window."""
    return (
        now - datetime.timedelta(days=past_days),
        now + datetime.timedelta(days=future_days),
    )


def in_window(
    start: datetime.datetime,
    end: datetime.datetime,
    window: tuple[datetime.datetime, datetime.datetime],
) -> bool:
    """True when ``[start, end)`` intersects the window.

    A zero-duration event is kept when its instant lies in ``[lo, hi)``.
    """
    lo, hi = window
    if start == end:
        return lo <= start < hi
    return start < hi and end > lo


class ICSParser:
    """Reads VEVENT records from raw feed text into Events.

    Args:
        tz: Local zone for floating and UTC times
        window: Optional retention window; records outside it are dropped
    """

    def __init__(
        self,
        tz: datetime.tzinfo,
        window: Optional[tuple[datetime.datetime, datetime.datetime]] = None,
    ):
        self.tz = tz
        self.window = window

    def parse(self, data: Union[bytes, str], calendar_id: str) -> list[Event]:
        """Parse one feed, tagging every event with ``calendar_id``.

        Returns:
            Retained events in feed order
        """
        events: list[Event] = []
        record: Optional[_Record] = None
        nested_depth = 0
        stats = {"discarded": 0, "bad_properties": 0}

        for line in unfold_lines(data):
            content = split_content_line(line)
            if content is None:
                continue

            if content.name == "BEGIN":
                component = content.value.strip().upper()
                if component == "VEVENT":
                    if record is not None:
                        logger.debug("BEGIN:VEVENT inside open record; discarding open record")
                        stats["discarded"] += 1
                    record = _Record()
                    nested_depth = 0
                elif record is not None:
                    nested_depth += 1
                continue

            if content.name == "END":
                component = content.value.strip().upper()
                if record is None:
                    continue
                if component == "VEVENT" and nested_depth == 0:
                    event = self._close(record, calendar_id)
                    if event is None:
                        stats["discarded"] += 1
                    else:
                        events.append(event)
                    record = None
                elif nested_depth > 0:
                    nested_depth -= 1
                continue

            # Properties of VALARM and other sub-components are not event fields
            if record is None or nested_depth > 0:
                continue

            try:
                self._apply(record, content)
            except ValueError as e:
                stats["bad_properties"] += 1
                logger.debug("Ignoring malformed %s property: %s", content.name, e)

        if record is not None:
            logger.debug("Discarding unterminated VEVENT at end of feed %s", calendar_id)
            stats["discarded"] += 1

        logger.debug(
            "Parsed feed %s: %d events kept, %d records discarded, %d bad properties",
            calendar_id,
            len(events),
            stats["discarded"],
            stats["bad_properties"],
        )
        return events

    def _apply(self, record: _Record, content: ContentLine) -> None:
        name = content.name
        if name == "SUMMARY":
            record.title = unescape_text(content.value)
        elif name == "DTSTART":
            record.start, record.all_day = parse_date_time(content.value, content.params, self.tz)
        elif name == "DTEND":
            record.end, _ = parse_date_time(content.value, content.params, self.tz)
        elif name == "DURATION":
            record.duration = parse_duration(content.value)
        elif name == "LOCATION":
            record.location = unescape_text(content.value) or None
        elif name == "UID":
            record.uid = content.value.strip() or None
        elif name == "STATUS":
            record.cancelled = content.value.strip().upper() == "CANCELLED"

    def _close(self, record: _Record, calendar_id: str) -> Optional[Event]:
        if record.cancelled:
            logger.debug("Skipping cancelled event %r", record.title)
            return None
        if not record.title or record.start is None:
            return None

        start = record.start
        if record.end is not None:
            end = record.end
        elif record.duration is not None:
            end = start + record.duration
        elif record.all_day:
            end = start + datetime.timedelta(days=1)
        else:
            end = start

        if end < start:
            logger.warning(
                "Dropping event %r from %s: end %s before start %s",
                record.title,
                calendar_id,
                end.isoformat(),
                start.isoformat(),
            )
            return None

        if self.window is not None and not in_window(start, end, self.window):
            return None

        return Event(
            title=record.title,
            start=start,
            end=end,
            calendar_id=calendar_id,
            all_day=record.all_day,
            location=record.location,
            uid=record.uid,
        )


def ingest_feeds(
    feeds: Iterable[tuple[str, Union[bytes, str]]],
    tz: datetime.tzinfo,
    window: Optional[tuple[datetime.datetime, datetime.datetime]] = None,
    max_events: Optional[int] = None,
) -> list[Event]:
    """Parse several feeds into one start-ordered list.

    Args:
        feeds: (calendar_id, feed data) pairs, ingested in order
        tz: Local zone
        window: Optional retention window
        max_events: Optional capacity limit applied after the sort

    Returns:
        All retained events, stable-sorted by start
    """
    parser = ICSParser(tz, window)
    collected: list[Event] = []
    for calendar_id, data in feeds:
        collected.extend(parser.parse(data, calendar_id))
    return order_events(collected, max_events)
