"""View/navigation state machine.

The cursor is a (mode, anchor date) pair. Commands produce a new cursor;
``transition`` never mutates its input.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Union

from familycal.core.time_utils import add_days, add_months

logger = logging.getLogger(__name__)


class ViewMode(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


@dataclass(frozen=True)
class ViewCursor:
    """What the screen shows: a view mode anchored on a date."""

    mode: ViewMode
    anchor_date: datetime.date


@dataclass(frozen=True)
class SwitchMode:
    mode: ViewMode


@dataclass(frozen=True)
class Prev:
    pass


@dataclass(frozen=True)
class Next:
    pass


@dataclass(frozen=True)
class JumpToDate:
    date: datetime.date


Command = Union[SwitchMode, Prev, Next, JumpToDate]


def initial_cursor(today: datetime.date) -> ViewCursor:
    """Week view anchored on today."""
    return ViewCursor(mode=ViewMode.WEEK, anchor_date=today)


def _step(cursor: ViewCursor, direction: int) -> datetime.date:
    if cursor.mode is ViewMode.DAY:
        return add_days(cursor.anchor_date, direction)
    if cursor.mode is ViewMode.WEEK:
        return add_days(cursor.anchor_date, 7 * direction)
    return add_months(cursor.anchor_date, direction)


def transition(cursor: ViewCursor, command: Command) -> ViewCursor:
    """Apply one navigation command.

    - SwitchMode keeps the anchor date.
    - Prev/Next move one day, seven days or one month (clamped to the
      target month's last day) depending on the mode.
    - JumpToDate anchors on the date and switches to Day view.

    Raises:
        TypeError: If ``command`` is not a navigation command
    """
    if isinstance(command, SwitchMode):
        return replace(cursor, mode=command.mode)
    if isinstance(command, Prev):
        return replace(cursor, anchor_date=_step(cursor, -1))
    if isinstance(command, Next):
        return replace(cursor, anchor_date=_step(cursor, 1))
    if isinstance(command, JumpToDate):
        return ViewCursor(mode=ViewMode.DAY, anchor_date=command.date)
    raise TypeError(f"Unknown navigation command: {command!r}")


class Navigator:
    """Holds the current cursor for the UI task."""

    def __init__(self, today: datetime.date):
        self.cursor = initial_cursor(today)

    def apply(self, command: Command) -> ViewCursor:
        previous = self.cursor
        self.cursor = transition(previous, command)
        if self.cursor != previous:
            logger.debug(
                "Navigation %s: %s %s -> %s %s",
                type(command).__name__,
                previous.mode.value,
                previous.anchor_date,
                self.cursor.mode.value,
                self.cursor.anchor_date,
            )
        return self.cursor
