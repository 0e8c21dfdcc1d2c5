"""Time-grid layout engine.

Places one day's timed events into side-by-side columns so that concurrent
events never share a column, then sizes each event's width by the overlap
cluster it belongs to.

Positions are in hours: ``display_top`` is measured from the top of the
visible window and ``display_height`` is the drawn extent, the clipped
duration raised to the configured minimum. Columns and clusters are computed
on these drawn extents, so boxes in one column never overlap on screen. The
renderer multiplies by its pixels-per-hour.
"""

from __future__ import annotations

import datetime
from collections.abc import Sequence
from dataclasses import dataclass

from familycal.calendar.models import Event
from familycal.core.time_utils import day_bounds, hours_since


@dataclass(frozen=True)
class LayoutOptions:
    """Visible window and limits for one grid.

    ``start_hour`` is the first visible hour and ``end_hour`` the hour at the
    bottom edge. Events past ``max_columns`` overflow into the last column.
    ``min_height`` is the smallest drawn box, in hours.
    """

    start_hour: int = 7
    end_hour: int = 18
    max_columns: int = 10
    min_height: float = 0.25

    @property
    def visible_hours(self) -> int:
        return self.end_hour - self.start_hour


@dataclass(frozen=True)
class LayoutSlot:
    """Resolved grid position for one event.

    ``source_index`` is the event's position in the input sequence and
    ``column_count`` the number of columns in its overlap cluster.
    ``display_top`` and ``display_height`` are hours from the window start.
    ``overflow`` marks events placed in the last column past ``max_columns``.
    """

    event: Event
    source_index: int
    column_index: int
    column_count: int
    display_top: float
    display_height: float
    overflow: bool = False


@dataclass
class _Clipped:
    event: Event
    source_index: int
    # Hours since the day's midnight: start is the clipped start, top/bottom
    # the drawn box
    start: float
    top: float
    bottom: float
    column: int = 0
    overflow: bool = False


def _clip(
    events: Sequence[Event], midnight: datetime.datetime, options: LayoutOptions
) -> list[_Clipped]:
    window_start = float(options.start_hour)
    window_end = float(options.end_hour)
    clipped: list[_Clipped] = []
    for index, event in enumerate(events):
        if event.all_day or event.is_zero_duration:
            continue
        start = max(hours_since(midnight, event.start), window_start)
        end = min(hours_since(midnight, event.end), window_end)
        if end <= start:
            continue
        # Short boxes grow downward, and move up when they would pass the bottom edge
        bottom = min(max(end, start + options.min_height), window_end)
        top = min(start, max(bottom - options.min_height, window_start))
        clipped.append(
            _Clipped(event=event, source_index=index, start=start, top=top, bottom=bottom)
        )
    return clipped


def _assign_columns(items: list[_Clipped], max_columns: int) -> None:
    """Greedy first-fit column assignment over start-ordered items."""
    column_ends: list[float] = []
    for item in items:
        for column, column_end in enumerate(column_ends):
            if column_end <= item.top:
                item.column = column
                column_ends[column] = item.bottom
                break
        else:
            if len(column_ends) < max_columns:
                column_ends.append(item.bottom)
                item.column = len(column_ends) - 1
            else:
                item.column = max_columns - 1
                item.overflow = True


def _cluster_widths(items: list[_Clipped]) -> dict[int, int]:
    """Map source index to column count of its overlap cluster.

    Clusters are maximal runs of transitively overlapping boxes in top order:
    a new cluster begins once a box starts at or after the latest bottom seen
    so far.
    """
    widths: dict[int, int] = {}
    cluster: list[_Clipped] = []
    cluster_end = float("-inf")

    def flush() -> None:
        count = max(item.column for item in cluster) + 1
        for item in cluster:
            widths[item.source_index] = count

    for item in sorted(items, key=lambda item: (item.top, item.source_index)):
        if cluster and item.top >= cluster_end:
            flush()
            cluster = []
        cluster.append(item)
        cluster_end = max(cluster_end, item.bottom)

    if cluster:
        flush()
    return widths


def layout_day(
    events: Sequence[Event],
    day: datetime.date,
    tz: datetime.tzinfo,
    options: LayoutOptions | None = None,
) -> list[LayoutSlot]:
    """Lay out one day's timed events.

    Events outside the visible window, zero-duration events, all-day events
    and events whose clipped span is empty are not placed. Ties on start time
    go to the lower source index. Never raises for well-formed events.

    Args:
        events: The day's events, usually from ``events_on_day``
        day: Local date whose midnight is the hour origin
        tz: Local zone
        options: Window and limits (defaults: 07-18, 10 columns, 0.25h)

    Returns:
        One LayoutSlot per placed event, in source order
    """
    options = options or LayoutOptions()
    midnight, _ = day_bounds(day, tz)

    items = _clip(events, midnight, options)
    items.sort(key=lambda item: (item.start, item.source_index))

    _assign_columns(items, max(1, options.max_columns))
    widths = _cluster_widths(items)

    slots = [
        LayoutSlot(
            event=item.event,
            source_index=item.source_index,
            column_index=item.column,
            column_count=widths[item.source_index],
            display_top=item.top - options.start_hour,
            display_height=item.bottom - item.top,
            overflow=item.overflow,
        )
        for item in items
    ]
    slots.sort(key=lambda slot: slot.source_index)
    return slots
