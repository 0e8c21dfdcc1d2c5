"""View model builder.

Turns the navigation cursor and the published snapshot into the per-column
data the renderer draws: which days are visible, their grid slots, all-day
strips and month-cell event lists.
"""

from __future__ import annotations

import calendar as calendar_module
import datetime
from collections.abc import Sequence
from dataclasses import dataclass

from familycal.calendar.models import Calendar, Event
from familycal.calendar.store import Snapshot
from familycal.core.config import Config
from familycal.core.time_utils import add_days, local_timezone, week_start
from familycal.domain.day_index import DayIndex, split_all_day
from familycal.domain.grid_layout import LayoutOptions, LayoutSlot, layout_day
from familycal.domain.navigation import ViewCursor, ViewMode

MONTH_CELLS = 42  # six weeks


@dataclass(frozen=True)
class ViewSettings:
    """Settings the view builder needs, independent of the full Config."""

    tz: datetime.tzinfo
    first_weekday: int = 0
    layout: LayoutOptions = LayoutOptions()

    @classmethod
    def from_config(cls, config: Config) -> ViewSettings:
        return cls(
            tz=local_timezone(config.utc_offset_minutes),
            first_weekday=config.first_weekday,
            layout=LayoutOptions(
                start_hour=config.visible_start_hour,
                end_hour=config.visible_end_hour,
                max_columns=config.max_columns,
                min_height=config.min_event_height,
            ),
        )


@dataclass(frozen=True)
class DayColumn:
    """One visible day (a grid column or a month cell)."""

    date: datetime.date
    slots: tuple[LayoutSlot, ...]  # timed grid placement (day/week views)
    all_day: tuple[Event, ...]
    events: tuple[Event, ...]  # every event overlapping the day, store order
    is_today: bool
    in_anchor_month: bool


@dataclass(frozen=True)
class ViewModel:
    """Everything needed to draw one screen."""

    cursor: ViewCursor
    columns: tuple[DayColumn, ...]
    calendars: tuple[Calendar, ...]
    today: datetime.date
    settings: ViewSettings
    snapshot: Snapshot

    @property
    def title(self) -> str:
        anchor = self.cursor.anchor_date
        return f"{calendar_module.month_name[anchor.month]} {anchor.year}"

    def color_for(self, event: Event) -> int:
        return resolve_color(event, self.snapshot)


def resolve_color(event: Event, snapshot: Snapshot) -> int:
    """Event override, else the calendar's colour, else the default colour."""
    if event.color is not None:
        return event.color
    return snapshot.calendar_for(event).display_color


def visible_days(cursor: ViewCursor, first_weekday: int = 0) -> list[datetime.date]:
    """Dates shown for a cursor.

    Day: the anchor. Week: seven days from the week start. Month: 42 cells
    starting at the week containing the 1st of the anchor's month.
    """
    anchor = cursor.anchor_date
    if cursor.mode is ViewMode.DAY:
        return [anchor]
    if cursor.mode is ViewMode.WEEK:
        first = week_start(anchor, first_weekday)
        return [add_days(first, i) for i in range(7)]
    first = week_start(anchor.replace(day=1), first_weekday)
    return [add_days(first, i) for i in range(MONTH_CELLS)]


def build_view(
    cursor: ViewCursor,
    snapshot: Snapshot,
    settings: ViewSettings,
    today: datetime.date,
) -> ViewModel:
    """Build the render model for the current cursor and snapshot."""
    index = DayIndex(snapshot.events, settings.tz)
    with_grid = cursor.mode is not ViewMode.MONTH

    columns: list[DayColumn] = []
    for day in visible_days(cursor, settings.first_weekday):
        members = index.on_day(day)
        timed, all_day = split_all_day(members)
        slots: Sequence[LayoutSlot] = (
            layout_day(timed, day, settings.tz, settings.layout) if with_grid else ()
        )
        columns.append(
            DayColumn(
                date=day,
                slots=tuple(slots),
                all_day=tuple(all_day),
                events=tuple(members),
                is_today=day == today,
                in_anchor_month=(day.year, day.month)
                == (cursor.anchor_date.year, cursor.anchor_date.month),
            )
        )

    return ViewModel(
        cursor=cursor,
        columns=tuple(columns),
        calendars=snapshot.calendars,
        today=today,
        settings=settings,
        snapshot=snapshot,
    )
