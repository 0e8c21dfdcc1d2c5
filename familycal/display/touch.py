"""Touch gesture interpretation.

A completed touch (press, optional drag, release) becomes at most one
navigation command:

- horizontal swipe (|dx| > 50 and |dy| < 60): right swipe is Prev, left is Next
- short tap (< 500 ms, |dx| and |dy| < 10) in the header: left edge is Prev,
  right edge is Next, otherwise a view mode button
- short tap on a week column or month cell: jump to that day
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from familycal.display.geometry import ScreenGeometry
from familycal.domain.navigation import Command, JumpToDate, Next, Prev, SwitchMode, ViewMode

logger = logging.getLogger(__name__)

SWIPE_MIN_DX = 50
SWIPE_MAX_DY = 60
TAP_MAX_MOVE = 10
TAP_MAX_SECONDS = 0.5


@dataclass(frozen=True)
class TouchPoint:
    x: int
    y: int
    t: float  # seconds, monotonic


class GestureInterpreter:
    """Maps completed touches onto navigation commands."""

    def __init__(self, geometry: ScreenGeometry | None = None):
        self.geometry = geometry or ScreenGeometry()

    def interpret(
        self,
        start: TouchPoint,
        end: TouchPoint,
        mode: ViewMode,
        days: Sequence[datetime.date] = (),
    ) -> Command | None:
        """Interpret one touch.

        Args:
            start: Press position and time
            end: Last position and release time
            mode: Current view mode (decides what a body tap means)
            days: Dates of the visible columns/cells, in screen order

        Returns:
            A navigation command, or None when the touch means nothing
        """
        dx = end.x - start.x
        dy = end.y - start.y

        if abs(dx) > SWIPE_MIN_DX and abs(dy) < SWIPE_MAX_DY:
            return Prev() if dx > 0 else Next()

        is_tap = (
            end.t - start.t < TAP_MAX_SECONDS
            and abs(dx) < TAP_MAX_MOVE
            and abs(dy) < TAP_MAX_MOVE
        )
        if not is_tap:
            return None

        if start.y < self.geometry.header_height:
            return self._header_tap(start.x)
        return self._body_tap(start.x, start.y, mode, days)

    def _header_tap(self, x: int) -> Command | None:
        geometry = self.geometry
        if x < geometry.arrow_zone:
            return Prev()
        if x > geometry.width - geometry.arrow_zone:
            return Next()
        for mode, rect in geometry.mode_button_rects():
            if rect.x <= x < rect.x + rect.w:
                return SwitchMode(mode)
        return None

    def _body_tap(
        self, x: int, y: int, mode: ViewMode, days: Sequence[datetime.date]
    ) -> Command | None:
        geometry = self.geometry
        if mode is ViewMode.WEEK and len(days) == 7:
            if x < geometry.week_gutter:
                return None
            column = (x - geometry.week_gutter) // geometry.week_column_width()
            if 0 <= column < 7:
                return JumpToDate(days[column])
        elif mode is ViewMode.MONTH and days:
            if y < geometry.month_top:
                return None
            cell_w, cell_h = geometry.month_cell_size()
            index = ((y - geometry.month_top) // cell_h) * 7 + x // cell_w
            if 0 <= index < len(days) and x // cell_w < 7:
                return JumpToDate(days[index])
        return None


class TouchTracker:
    """Pairs press and release events into completed touches."""

    def __init__(self, interpreter: GestureInterpreter):
        self.interpreter = interpreter
        self._start: TouchPoint | None = None

    def press(self, x: int, y: int, t: float) -> None:
        self._start = TouchPoint(x, y, t)

    def release(
        self,
        x: int,
        y: int,
        t: float,
        mode: ViewMode,
        days: Sequence[datetime.date] = (),
    ) -> Command | None:
        if self._start is None:
            return None
        start = self._start
        self._start = None
        command = self.interpreter.interpret(start, TouchPoint(x, y, t), mode, days)
        if command is not None:
            logger.debug("Touch (%d,%d)->(%d,%d) -> %s", start.x, start.y, x, y, command)
        return command
