"""Day-range queries over the published event list.

Every view (day column, week column, month cell) is built on one predicate:
half-open interval overlap with the day's ``[midnight, next midnight)``.
"""

from __future__ import annotations

import datetime
from collections.abc import Sequence

from familycal.calendar.models import Event
from familycal.core.time_utils import day_bounds


def overlaps(
    event: Event, range_start: datetime.datetime, range_end: datetime.datetime
) -> bool:
    """True when the event overlaps ``[range_start, range_end)``.

    An event ending exactly at ``range_start`` is excluded; one starting
    exactly at ``range_start`` is included. Zero-duration events are members
    of the range their instant falls in.
    """
    if event.is_zero_duration:
        return range_start <= event.start < range_end
    return event.start < range_end and event.end > range_start


def events_on_day(
    events: Sequence[Event], day: datetime.date, tz: datetime.tzinfo
) -> list[Event]:
    """Return every event overlapping the local day, in store order."""
    day_start, day_end = day_bounds(day, tz)
    return [e for e in events if overlaps(e, day_start, day_end)]


def split_all_day(events: Sequence[Event]) -> tuple[list[Event], list[Event]]:
    """Partition into (timed, all_day), preserving order."""
    timed: list[Event] = []
    all_day: list[Event] = []
    for event in events:
        (all_day if event.all_day else timed).append(event)
    return timed, all_day


class DayIndex:
    """Day queries bound to one published event list and local zone."""

    def __init__(self, events: Sequence[Event], tz: datetime.tzinfo):
        self._events = events
        self._tz = tz

    def __len__(self) -> int:
        return len(self._events)

    def on_day(self, day: datetime.date) -> list[Event]:
        return events_on_day(self._events, day, self._tz)

    def timed_and_all_day(self, day: datetime.date) -> tuple[list[Event], list[Event]]:
        return split_all_day(self.on_day(day))
