"""Screen geometry shared by the renderer and the touch interpreter."""

from __future__ import annotations

from dataclasses import dataclass

from familycal.domain.navigation import ViewMode

MODE_BUTTONS: tuple[tuple[ViewMode, str], ...] = (
    (ViewMode.DAY, "Day"),
    (ViewMode.WEEK, "Week"),
    (ViewMode.MONTH, "Month"),
)


@dataclass(frozen=True)
class Rect:
    x: int
    y: int
    w: int
    h: int


@dataclass(frozen=True)
class ScreenGeometry:
    """Pixel layout of the 3 views (defaults match a 1024x600 panel)."""

    width: int = 1024
    height: int = 600
    header_height: int = 50
    arrow_zone: int = 80  # header strip at each edge acting as prev/next
    button_width: int = 70
    button_height: int = 34
    button_spacing: int = 75
    buttons_right_offset: int = 250  # first mode button starts at width - offset
    hour_height: int = 48  # pixels per grid hour
    week_gutter: int = 50  # hour labels left of the week grid
    week_header_height: int = 45  # weekday + date strip above the week grid
    day_gutter: int = 60
    day_header_height: int = 40
    month_top: int = 80  # header + weekday names
    all_day_height: int = 18  # per all-day event strip

    def mode_button_rects(self) -> list[tuple[ViewMode, Rect]]:
        x = self.width - self.buttons_right_offset
        y = (self.header_height - self.button_height) // 2
        rects = []
        for mode, _label in MODE_BUTTONS:
            rects.append((mode, Rect(x, y, self.button_width, self.button_height)))
            x += self.button_spacing
        return rects

    def week_column_width(self) -> int:
        return (self.width - self.week_gutter) // 7

    def week_grid_top(self, all_day_rows: int = 0) -> int:
        return self.header_height + self.week_header_height + all_day_rows * self.all_day_height

    def day_grid_top(self, all_day_rows: int = 0) -> int:
        return self.header_height + self.day_header_height + all_day_rows * self.all_day_height

    def month_cell_size(self) -> tuple[int, int]:
        return self.width // 7, (self.height - self.month_top) // 6
