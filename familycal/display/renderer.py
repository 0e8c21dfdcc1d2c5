"""Pygame-based framebuffer renderer for the familycal display.

Draws a ViewModel (day, week or month view) directly to the framebuffer
without requiring X11. All positions come from ScreenGeometry so that the
touch interpreter and the drawing agree on where things are.
"""

from __future__ import annotations

import datetime
import logging
import os
import platform
from typing import Optional

import pygame

from familycal.calendar.models import color_to_rgb
from familycal.core.config import Config
from familycal.display.geometry import MODE_BUTTONS, ScreenGeometry
from familycal.domain.grid_layout import LayoutOptions, LayoutSlot
from familycal.domain.navigation import ViewMode
from familycal.domain.view_model import DayColumn, ViewModel

logger = logging.getLogger(__name__)

# Dark palette
COLORS = {
    "background": (8, 8, 16),
    "header": (16, 16, 32),
    "today": (64, 64, 64),
    "text": (255, 255, 255),
    "text_dim": (156, 184, 248),
    "text_muted": (56, 60, 56),
    "grid": (40, 40, 44),
    "now": (248, 0, 0),
    "accent": (96, 104, 120),
    "warning": (255, 200, 80),
}

WEEKDAY_SHORT = ("Mo", "Tu", "We", "Th", "Fr", "Sa", "Su")
MONTH_CELL_MAX_EVENTS = 5
SLOT_PADDING = 2
LEGEND_ITEM_WIDTH = 120


def slot_rect(
    slot: LayoutSlot,
    column_x: int,
    column_width: int,
    grid_top: int,
    hour_height: int,
    padding: int = SLOT_PADDING,
) -> tuple[int, int, int, int]:
    """Pixel rectangle (x, y, w, h) for a grid slot inside one day column."""
    usable = column_width - 2 * padding
    sub_width = usable // slot.column_count
    x = column_x + padding + slot.column_index * sub_width
    y = grid_top + int(slot.display_top * hour_height)
    w = max(sub_width - padding, 10)
    h = max(int(slot.display_height * hour_height), 1)
    return x, y, w, h


def truncate(text: str, max_chars: int) -> str:
    if max_chars <= 0:
        return ""
    if len(text) <= max_chars:
        return text
    return text[: max(max_chars - 1, 0)] + "."


def dim(rgb: tuple[int, int, int]) -> tuple[int, int, int]:
    """Half-brightness version of a colour for days outside the anchor month."""
    return rgb[0] // 2, rgb[1] // 2, rgb[2] // 2


class FramebufferRenderer:
    """Direct framebuffer rendering using pygame.

    Screen regions:
    - Header (0-50px): prev/next arrows, month title, Day/Week/Month buttons
    - Body: the time grid (day, week) or the 6x7 month grid
    - Legend: calendar names and colours along the bottom edge
    """

    def __init__(self, config: Config, geometry: ScreenGeometry | None = None):
        """Initialize pygame renderer.

        Args:
            config: Configuration instance
            geometry: Screen geometry (defaults to the configured display size)
        """
        self.config = config
        self.geometry = geometry or ScreenGeometry(
            width=config.display_width, height=config.display_height
        )
        self.width = self.geometry.width
        self.height = self.geometry.height

        self._init_pygame()
        self._load_fonts()

        logger.info("Renderer initialized: %dx%d display", self.width, self.height)

    def _init_pygame(self) -> None:
        """Initialize pygame with framebuffer backend."""
        # SDL environment can be overridden by the user
        if not os.environ.get("SDL_VIDEODRIVER"):
            system = platform.system()
            if system == "Linux":
                os.environ["SDL_VIDEODRIVER"] = "kmsdrm"
                logger.debug("SDL_VIDEODRIVER not set, using default for Linux: kmsdrm")
            else:
                logger.debug("SDL_VIDEODRIVER not set, letting pygame auto-detect for %s", system)

        if "SDL_NOMOUSE" not in os.environ:
            os.environ["SDL_NOMOUSE"] = "1"

        pygame.init()

        # Fullscreen only on Linux; other platforms are development machines
        if platform.system() == "Linux":
            try:
                self.screen = pygame.display.set_mode((self.width, self.height), pygame.FULLSCREEN)
                logger.info("Framebuffer display created (fullscreen)")
            except pygame.error as e:
                logger.warning(
                    "Failed to create fullscreen display, falling back to windowed: %s", e
                )
                self.screen = pygame.display.set_mode((self.width, self.height))
        else:
            self.screen = pygame.display.set_mode((self.width, self.height))
            logger.info("Windowed display created for testing")

        pygame.display.set_caption("familycal")
        pygame.mouse.set_visible(False)

    def _load_fonts(self) -> None:
        """Load fonts.

        Uses DejaVuSans from ``config.font_dir`` when present, else pygame's
        built-in default font.
        """
        regular: Optional[str] = None
        bold: Optional[str] = None
        if self.config.font_dir:
            regular_path = self.config.font_dir / "DejaVuSans.ttf"
            bold_path = self.config.font_dir / "DejaVuSans-Bold.ttf"
            if regular_path.exists():
                regular = str(regular_path)
                bold = str(bold_path) if bold_path.exists() else regular
            else:
                logger.warning("Font not found in %s, using default font", self.config.font_dir)

        self.fonts = {
            "title": pygame.font.Font(bold, 30),
            "button": pygame.font.Font(bold, 20),
            "subheader": pygame.font.Font(regular, 24),
            "day_number": pygame.font.Font(bold, 22),
            "label": pygame.font.Font(regular, 16),
            "event": pygame.font.Font(regular, 16),
            "event_small": pygame.font.Font(regular, 13),
        }

    def render(
        self,
        view: ViewModel,
        now: datetime.datetime,
        status_message: str | None = None,
    ) -> None:
        """Render one complete screen.

        Args:
            view: View model to draw
            now: Current local time (for the "now" marker)
            status_message: Optional warning shown above the legend
        """
        self.screen.fill(COLORS["background"])

        mode = view.cursor.mode
        if mode is ViewMode.DAY:
            self._render_day(view, now)
        elif mode is ViewMode.WEEK:
            self._render_week(view, now)
        else:
            self._render_month(view)

        self._render_header(view)
        self._render_legend(view, status_message)
        pygame.display.flip()

    def render_message(self, title: str, message: str) -> None:
        """Render a full-screen message (loading or fatal error)."""
        self.screen.fill(COLORS["background"])
        title_surf = self.fonts["title"].render(title, True, COLORS["text"])
        self.screen.blit(title_surf, ((self.width - title_surf.get_width()) // 2, self.height // 2 - 40))
        msg_surf = self.fonts["subheader"].render(message, True, COLORS["text_dim"])
        self.screen.blit(msg_surf, ((self.width - msg_surf.get_width()) // 2, self.height // 2 + 10))
        pygame.display.flip()

    def _render_header(self, view: ViewModel) -> None:
        g = self.geometry
        pygame.draw.rect(self.screen, COLORS["header"], (0, 0, self.width, g.header_height))

        mid = g.header_height // 2
        pygame.draw.polygon(self.screen, COLORS["text"], [(20, mid), (40, mid - 15), (40, mid + 15)])
        pygame.draw.polygon(
            self.screen,
            COLORS["text"],
            [(self.width - 20, mid), (self.width - 40, mid - 15), (self.width - 40, mid + 15)],
        )

        title_surf = self.fonts["title"].render(view.title, True, COLORS["text"])
        self.screen.blit(title_surf, (g.arrow_zone, mid - title_surf.get_height() // 2))

        labels = dict(MODE_BUTTONS)
        for mode, rect in g.mode_button_rects():
            bg = COLORS["accent"] if mode is view.cursor.mode else COLORS["header"]
            r = pygame.Rect(rect.x, rect.y, rect.w, rect.h)
            pygame.draw.rect(self.screen, bg, r, border_radius=4)
            pygame.draw.rect(self.screen, COLORS["text"], r, width=1, border_radius=4)
            label = self.fonts["button"].render(labels[mode], True, COLORS["text"])
            self.screen.blit(
                label,
                (r.centerx - label.get_width() // 2, r.centery - label.get_height() // 2),
            )

    def _render_hour_lines(
        self, layout: LayoutOptions, grid_top: int, left: int, label_x: int
    ) -> None:
        g = self.geometry
        for hour in range(layout.start_hour, layout.end_hour + 1):
            y = grid_top + (hour - layout.start_hour) * g.hour_height
            if y > self.height:
                break
            label = self.fonts["label"].render(f"{hour}:00", True, COLORS["text_dim"])
            self.screen.blit(label, (label_x, y + 2))
            pygame.draw.line(self.screen, COLORS["grid"], (left, y), (self.width, y))

    def _render_now_marker(
        self,
        layout: LayoutOptions,
        column: DayColumn,
        now: datetime.datetime,
        x: int,
        width: int,
        grid_top: int,
    ) -> None:
        if column.date != now.date():
            return
        hours = now.hour + now.minute / 60.0
        start = layout.start_hour
        if not start <= hours <= layout.end_hour:
            return
        y = grid_top + int((hours - start) * self.geometry.hour_height)
        pygame.draw.line(self.screen, COLORS["now"], (x, y), (x + width, y), 2)
        pygame.draw.circle(self.screen, COLORS["now"], (x, y), 4)

    def _render_slots(
        self,
        view: ViewModel,
        column: DayColumn,
        column_x: int,
        column_width: int,
        grid_top: int,
        font_key: str,
        show_times: bool,
    ) -> None:
        g = self.geometry
        for slot in column.slots:
            x, y, w, h = slot_rect(slot, column_x, column_width, grid_top, g.hour_height)
            color = color_to_rgb(view.color_for(slot.event))
            pygame.draw.rect(self.screen, color, (x, y + 1, w, max(h - 2, 1)), border_radius=4)
            if w <= 20 or h <= 12:
                continue

            font = self.fonts[font_key]
            max_chars = max(w // max(font.size("M")[0], 1), 1)
            title = font.render(truncate(slot.event.title, max_chars), True, COLORS["text"])
            self.screen.blit(title, (x + 3, y + 3))

            if show_times and h > 36:
                start = slot.event.start.astimezone(view.settings.tz)
                end = slot.event.end.astimezone(view.settings.tz)
                times = self.fonts["event_small"].render(
                    f"{start:%H:%M}-{end:%H:%M}", True, COLORS["text"]
                )
                self.screen.blit(times, (x + 3, y + 3 + title.get_height()))

    def _render_all_day(
        self, view: ViewModel, column: DayColumn, x: int, width: int, top: int
    ) -> None:
        g = self.geometry
        font = self.fonts["event_small"]
        max_chars = max(width // max(font.size("M")[0], 1), 1)
        for i, event in enumerate(column.all_day):
            y = top + i * g.all_day_height
            color = color_to_rgb(view.color_for(event))
            pygame.draw.rect(
                self.screen, color, (x + 2, y + 1, width - 4, g.all_day_height - 2), border_radius=3
            )
            label = font.render(truncate(event.title, max_chars), True, COLORS["text"])
            self.screen.blit(label, (x + 4, y + 2))

    def _render_day(self, view: ViewModel, now: datetime.datetime) -> None:
        g = self.geometry
        column = view.columns[0]

        header_top = g.header_height
        day = column.date
        text = f"{day:%A}, {day.day} {day:%B} {day.year}"
        if column.is_today:
            text += "  TODAY"
        sub = self.fonts["subheader"].render(text, True, COLORS["text"])
        self.screen.blit(sub, (g.arrow_zone, header_top + 8))

        all_day_top = g.day_grid_top()
        self._render_all_day(view, column, g.day_gutter, self.width - g.day_gutter, all_day_top)

        grid_top = g.day_grid_top(len(column.all_day))
        self._render_hour_lines(view.settings.layout, grid_top, g.day_gutter, 5)

        column_x = g.day_gutter + 10
        column_width = self.width - g.day_gutter - 20
        self._render_slots(view, column, column_x, column_width, grid_top, "event", True)
        self._render_now_marker(
            view.settings.layout, column, now, g.day_gutter, self.width - g.day_gutter, grid_top
        )

    def _render_week(self, view: ViewModel, now: datetime.datetime) -> None:
        g = self.geometry
        cell_w = g.week_column_width()
        header_top = g.header_height
        all_day_rows = max((len(c.all_day) for c in view.columns), default=0)
        grid_top = g.week_grid_top(all_day_rows)

        for i, column in enumerate(view.columns):
            x = g.week_gutter + i * cell_w
            bg = COLORS["today"] if column.is_today else COLORS["background"]
            pygame.draw.rect(self.screen, bg, (x, header_top, cell_w, g.week_header_height))
            pygame.draw.rect(
                self.screen, COLORS["grid"], (x, header_top, cell_w, g.week_header_height), 1
            )
            text_color = COLORS["text"] if column.is_today else COLORS["text_dim"]
            name = self.fonts["label"].render(WEEKDAY_SHORT[column.date.weekday()], True, text_color)
            self.screen.blit(name, (x + 10, header_top + 4))
            number = self.fonts["day_number"].render(str(column.date.day), True, text_color)
            self.screen.blit(number, (x + 10, header_top + 20))

            self._render_all_day(view, column, x, cell_w, g.week_grid_top())

        self._render_hour_lines(view.settings.layout, grid_top, 0, 5)
        for i in range(8):
            x = g.week_gutter + i * cell_w
            pygame.draw.line(self.screen, COLORS["grid"], (x, grid_top), (x, self.height))

        for i, column in enumerate(view.columns):
            x = g.week_gutter + i * cell_w
            self._render_slots(view, column, x, cell_w, grid_top, "event_small", False)
            self._render_now_marker(view.settings.layout, column, now, x, cell_w, grid_top)

    def _render_month(self, view: ViewModel) -> None:
        g = self.geometry
        cell_w, cell_h = g.month_cell_size()

        first_weekday = view.settings.first_weekday
        for i in range(7):
            name = WEEKDAY_SHORT[(first_weekday + i) % 7]
            label = self.fonts["label"].render(name, True, COLORS["text_dim"])
            self.screen.blit(label, (i * cell_w + 10, g.header_height + 8))

        event_font = self.fonts["event_small"]
        max_chars = max(cell_w // max(event_font.size("M")[0], 1), 1)
        for i, column in enumerate(view.columns):
            x = (i % 7) * cell_w
            y = g.month_top + (i // 7) * cell_h

            if column.is_today:
                pygame.draw.rect(self.screen, COLORS["today"], (x, y, cell_w, cell_h))
            pygame.draw.rect(self.screen, COLORS["grid"], (x, y, cell_w, cell_h), 1)

            if column.is_today:
                number_color = COLORS["text"]
            elif column.in_anchor_month:
                number_color = COLORS["text_dim"]
            else:
                number_color = COLORS["text_muted"]
            number = self.fonts["day_number"].render(str(column.date.day), True, number_color)
            self.screen.blit(number, (x + 5, y + 4))

            event_y = y + 28
            for event in column.events[:MONTH_CELL_MAX_EVENTS]:
                if event_y > y + cell_h - 14:
                    break
                color = color_to_rgb(view.color_for(event))
                if not column.in_anchor_month:
                    color = dim(color)
                pygame.draw.rect(self.screen, color, (x + 3, event_y, cell_w - 6, 14), border_radius=2)
                label = event_font.render(truncate(event.title, max_chars), True, COLORS["text"])
                self.screen.blit(label, (x + 5, event_y + 1))
                event_y += 16

    def _render_legend(self, view: ViewModel, status_message: str | None) -> None:
        y = self.height - 24
        if status_message:
            warn = self.fonts["event_small"].render(status_message, True, COLORS["warning"])
            self.screen.blit(warn, (10, y - 18))

        calendars = view.calendars
        if not calendars:
            return
        x = (self.width - len(calendars) * LEGEND_ITEM_WIDTH) // 2
        for cal in calendars:
            pygame.draw.circle(self.screen, color_to_rgb(cal.display_color), (x + 10, y + 10), 5)
            label = self.fonts["event_small"].render(cal.name, True, COLORS["text_dim"])
            self.screen.blit(label, (x + 20, y + 4))
            x += LEGEND_ITEM_WIDTH

    def cleanup(self) -> None:
        """Clean up pygame resources."""
        pygame.quit()
        logger.debug("Renderer cleaned up")
