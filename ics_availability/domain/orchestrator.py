"""Request orchestration: validate, rate limit, fetch through the cache, shape.

Each stage can short-circuit with an ``AvailabilityError``; later stages never
run after a failure.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Union

from ics_availability.calendar.datetime_utils import parse_api_date
from ics_availability.calendar.ics_parser import parse_ics
from ics_availability.calendar.models import (
    AvailabilityWindow,
    BusyBlock,
    CalendarEvent,
    DayAvailability,
)
from ics_availability.core.config_loader import Config
from ics_availability.exceptions import ConfigurationError, ValidationError

from .availability import AvailabilityEngine, filter_to_window
from .feed_cache import FeedCache
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

# Zone offsets stay under a day, so one day of margin keeps UTC conversion in range.
EARLIEST_DATE = datetime.date.min + datetime.timedelta(days=1)
LATEST_DATE = datetime.date.max - datetime.timedelta(days=1)


class FeedFetcher(Protocol):
    """fetch(url) -> text capability; raises UpstreamFetchError on failure."""

    async def fetch_text(self, url: Optional[str] = None) -> str:
        ...


@dataclass(frozen=True)
class BusyBlocksResult:
    """Week/day view result."""

    blocks: list[BusyBlock]

    def to_payload(self) -> list[dict[str, Any]]:
        return [block.to_dict() for block in self.blocks]


@dataclass(frozen=True)
class DayAvailabilityResult:
    """Month view result."""

    days: list[DayAvailability]

    def to_payload(self) -> list[dict[str, Any]]:
        return [day.to_dict() for day in self.days]


AvailabilityResult = Union[BusyBlocksResult, DayAvailabilityResult]


def validate_window(start: Optional[str], end: Optional[str], max_days: int) -> AvailabilityWindow:
    """Build an AvailabilityWindow from request strings.

    Raises:
        ValidationError: If a date is missing or not strict ``YYYY-MM-DD``, if
            ``end`` is before ``start``, if the span exceeds ``max_days``, or if a
            bound lies outside EARLIEST_DATE..LATEST_DATE
    """
    if not start or not end:
        raise ValidationError("Both start and end dates are required (YYYY-MM-DD).")

    start_date = parse_api_date(start)
    end_date = parse_api_date(end)
    if start_date is None or end_date is None:
        raise ValidationError("Invalid date format. Use YYYY-MM-DD.")

    if start_date < EARLIEST_DATE or end_date > LATEST_DATE:
        raise ValidationError("Date out of supported range.")

    if end_date < start_date:
        raise ValidationError("End date must not be before start date.")

    window = AvailabilityWindow(start=start_date, end=end_date, start_text=start, end_text=end)
    if window.span_days > max_days:
        raise ValidationError(f"Date range too large. Maximum {max_days} days allowed.")
    return window


class AvailabilityService:
    """Ties validation, rate limiting, caching, parsing and shaping together."""

    def __init__(
        self,
        config: Config,
        fetcher: FeedFetcher,
        cache: FeedCache,
        rate_limiter: RateLimiter,
        engine: Optional[AvailabilityEngine] = None,
    ):
        self.config = config
        self.fetcher = fetcher
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.engine = engine or AvailabilityEngine.from_config(config)

    async def get_availability(
        self,
        start: Optional[str],
        end: Optional[str],
        view: Optional[str] = None,
        caller: str = "unknown",
    ) -> AvailabilityResult:
        """Answer one availability request.

        Args:
            start: Window start, ``YYYY-MM-DD``
            end: Window end (exclusive for day iteration), ``YYYY-MM-DD``
            view: View identifier; the month view (also the default) selects
                day availability, anything else busy blocks
            caller: Caller identity for rate limiting (e.g. client address)

        Raises:
            ValidationError, RateLimitError, ConfigurationError, UpstreamFetchError
        """
        window = validate_window(start, end, self.config.max_window_days)
        view = view or self.config.month_view
        logger.debug("Availability request: start=%s end=%s view=%s", start, end, view)

        await self.rate_limiter.enforce(caller)

        if not self.config.ics_url:
            logger.error("iCal URL not configured")
            raise ConfigurationError(detail="ics_url is not set")

        events = await self.cache.get_or_fetch(window, self._fetch_for(window))

        if view == self.config.month_view:
            return DayAvailabilityResult(days=self.engine.day_availability(events, window))
        return BusyBlocksResult(blocks=self.engine.busy_blocks(events))

    def _fetch_for(self, window: AvailabilityWindow) -> Callable[[], Awaitable[list[CalendarEvent]]]:
        async def fetch() -> list[CalendarEvent]:
            text = await self.fetcher.fetch_text(self.config.ics_url)
            events = parse_ics(text, default_tz=self.config.tzinfo)
            return filter_to_window(events, window, self.config.tzinfo)

        return fetch
