"""Availability derivations over a window-filtered set of events.

Two independent shapes are produced from the same events:

- busy blocks, a pass-through of each event for week/day views
- day availability, one boolean per date for the month view, true when the
  opening hours of that date contain a free gap of at least
  ``min_free_minutes``

All instant arithmetic is done in UTC; the business timezone is only used to
decide which date an event belongs to and where opening hours fall.
"""

from __future__ import annotations

import datetime
import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence

from ics_availability.calendar.datetime_utils import UTC, to_utc
from ics_availability.calendar.models import (
    AvailabilityWindow,
    BusyBlock,
    CalendarEvent,
    DayAvailability,
)
from ics_availability.core.config_loader import DEFAULT_MIN_FREE_MINUTES, Config

logger = logging.getLogger(__name__)


class AvailabilityEngine:
    """Computes busy blocks and per-day availability."""

    def __init__(
        self,
        tz: datetime.tzinfo = UTC,
        opening_start: datetime.time = datetime.time(9, 0),
        opening_end: datetime.time = datetime.time(17, 0),
        min_free_minutes: int = DEFAULT_MIN_FREE_MINUTES,
    ):
        """Initialize engine.

        Args:
            tz: Business timezone for day bucketing and opening hours
            opening_start: Start of the business day (wall clock in ``tz``)
            opening_end: End of the business day (wall clock in ``tz``)
            min_free_minutes: Smallest free gap that makes a day available
        """
        self.tz = tz
        self.opening_start = opening_start
        self.opening_end = opening_end
        self.min_free = datetime.timedelta(minutes=min_free_minutes)
        if opening_end <= opening_start:
            logger.warning(
                "Opening hours end %s is not after start %s; days with events "
                "will never be available",
                opening_end,
                opening_start,
            )

    @classmethod
    def from_config(cls, config: Config) -> AvailabilityEngine:
        return cls(
            tz=config.tzinfo,
            opening_start=config.opening_start_time,
            opening_end=config.opening_end_time,
            min_free_minutes=config.min_free_minutes,
        )

    def busy_blocks(self, events: Iterable[CalendarEvent]) -> list[BusyBlock]:
        """Busy-block mode: one block per event, in the given order."""
        return [event.to_busy_block() for event in events]

    def bucket_date(self, event: CalendarEvent) -> datetime.date:
        """Date an event belongs to for day availability.

        All-day events use their literal start date; timed events use the date
        of their start instant in the business timezone.
        """
        if isinstance(event.start, datetime.datetime):
            return event.start.astimezone(self.tz).date()
        return event.start

    def day_availability(
        self, events: Iterable[CalendarEvent], window: AvailabilityWindow
    ) -> list[DayAvailability]:
        """Day-availability mode: one record per date in ``[window.start, window.end)``.

        Zero-length and inverted events are ignored.
        """
        buckets: dict[datetime.date, list[CalendarEvent]] = defaultdict(list)
        ignored = 0
        for event in events:
            if event.is_inverted:
                ignored += 1
                continue
            buckets[self.bucket_date(event)].append(event)
        if ignored:
            logger.debug("Ignored %d zero-length or inverted events", ignored)

        return [
            DayAvailability(date=day, available=self.is_day_available(day, buckets.get(day, ())))
            for day in window.days()
        ]

    def is_day_available(self, day: datetime.date, events: Sequence[CalendarEvent]) -> bool:
        """True when ``day`` has no events or a large enough free gap.

        Gaps are measured inside opening hours from the latest end seen so far,
        so overlapping events never open a gap between them.
        Unlike a pairwise previous-end to next-start check, an event nested inside
        a longer one cannot create a gap.
        """
        if not events:
            return True

        day_start = datetime.datetime.combine(day, self.opening_start, tzinfo=self.tz).astimezone(UTC)
        day_end = datetime.datetime.combine(day, self.opening_end, tzinfo=self.tz).astimezone(UTC)

        intervals = sorted(
            (to_utc(event.start, self.tz), to_utc(event.end, self.tz)) for event in events
        )

        cursor = day_start
        for start, end in intervals:
            if min(start, day_end) - cursor >= self.min_free:
                return True
            if end > cursor:
                cursor = end
            if cursor >= day_end:
                return False

        return day_end - cursor >= self.min_free


def filter_to_window(
    events: Iterable[CalendarEvent], window: AvailabilityWindow, tz: datetime.tzinfo
) -> list[CalendarEvent]:
    """Keep events overlapping ``[window.start 00:00:00, window.end 23:59:59]``.

    The bounds are taken in ``tz``; all-day dates compare as midnight in ``tz``.
    Overlap is ``event.end >= lower and event.start <= upper``.
    """
    lower = datetime.datetime.combine(window.start, datetime.time.min, tzinfo=tz).astimezone(UTC)
    upper = datetime.datetime.combine(
        window.end, datetime.time(23, 59, 59), tzinfo=tz
    ).astimezone(UTC)

    kept = [
        event
        for event in events
        if to_utc(event.end, tz) >= lower and to_utc(event.start, tz) <= upper
    ]
    logger.debug("Window filter kept %d events", len(kept))
    return kept
