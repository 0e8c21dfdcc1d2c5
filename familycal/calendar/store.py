"""Published event store.

Readers always see one complete Snapshot. A refresh builds a new Snapshot and
swaps the reference under the lock; a failed refresh never touches it.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from familycal.calendar.models import DEFAULT_CALENDAR_ID, DEFAULT_COLOR, Calendar, Event

logger = logging.getLogger(__name__)

DEFAULT_CALENDAR = Calendar(id=DEFAULT_CALENDAR_ID, name="Calendar", display_color=DEFAULT_COLOR)


@dataclass(frozen=True)
class Snapshot:
    """Immutable calendars + start-ordered events pair."""

    calendars: tuple[Calendar, ...] = ()
    events: tuple[Event, ...] = ()
    fetched_at: datetime.datetime | None = None  # None until the first successful refresh
    _by_id: dict[str, Calendar] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_id", {c.id: c for c in self.calendars})

    @classmethod
    def build(
        cls,
        calendars: Sequence[Calendar],
        events: Sequence[Event],
        fetched_at: datetime.datetime,
    ) -> Snapshot:
        return cls(calendars=tuple(calendars), events=tuple(events), fetched_at=fetched_at)

    def calendar_for(self, event: Event) -> Calendar:
        """Return the event's calendar; dangling references resolve to the default."""
        return self._by_id.get(event.calendar_id) or self._by_id.get(
            DEFAULT_CALENDAR_ID, DEFAULT_CALENDAR
        )


class EventStore:
    """Holds the current Snapshot with atomic replacement."""

    def __init__(self) -> None:
        self._snapshot = Snapshot()
        self._lock = asyncio.Lock()

    @property
    def snapshot(self) -> Snapshot:
        """Current snapshot (a reference read; never partially updated)."""
        return self._snapshot

    async def publish(self, snapshot: Snapshot) -> None:
        """Replace the published snapshot."""
        async with self._lock:
            previous = self._snapshot
            self._snapshot = snapshot
        logger.debug(
            "Published snapshot: %d calendars, %d events (was %d events)",
            len(snapshot.calendars),
            len(snapshot.events),
            len(previous.events),
        )
