"""familycal - multi-calendar day/week/month schedule for a touch display.

This package ingests events from a JSON backend or raw calendar feeds, lays
them out in a time grid with overlap columns, and draws them with pygame.

Architecture:
- core/: configuration, logging, time helpers, exceptions
- calendar/: event model, feed parsers, transport, store and refresh
- domain/: day index, grid layout, navigation state, view model
- display/: touch gesture interpretation and the pygame renderer
- app.py: main event loop and coordinator

Usage:
    SDL_VIDEODRIVER=kmsdrm python -m familycal

Environment Variables:
    FAMILYCAL_FEED_MODE - "json" (backend API) or "ics" (raw feeds)
    FAMILYCAL_API_URL - Backend API URL for JSON mode
    FAMILYCAL_CAL_1_URL - First raw feed URL for ics mode
"""

__version__ = "0.1.0"
__author__ = "familycal contributors"

from familycal.core.config import Config

__all__ = ["Config"]
