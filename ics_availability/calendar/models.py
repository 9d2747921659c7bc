"""Data models for calendar events and availability responses."""

from __future__ import annotations

import datetime
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from .datetime_utils import format_date, format_instant

EventValue = Union[datetime.datetime, datetime.date]


class CalendarEvent(BaseModel):
    """Normalized event produced by the ICS parser.

    Timed events carry timezone-aware datetimes; all-day events carry plain
    dates so that no timezone math can move them to a neighbouring day.
    ``end`` is exclusive. ``end < start`` is tolerated, not rejected.
    """

    start: EventValue = Field(..., description="Event start (aware datetime or date)")
    end: EventValue = Field(..., description="Event end, exclusive (aware datetime or date)")
    all_day: bool = Field(default=False, description="All-day event flag")

    model_config = ConfigDict(frozen=True)

    @property
    def is_inverted(self) -> bool:
        """True for zero-length or inverted events (end <= start)."""
        return self.end <= self.start  # type: ignore[operator]

    def to_busy_block(self) -> BusyBlock:
        """Public-facing shape of this event."""
        return BusyBlock(
            start=serialize_event_value(self.start),
            end=serialize_event_value(self.end),
            all_day=self.all_day,
        )


class BusyBlock(BaseModel):
    """One occupied interval returned for week/day views."""

    start: str
    end: str
    all_day: bool = Field(default=False, serialization_alias="allDay")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class DayAvailability(BaseModel):
    """Availability verdict for one calendar day (month view)."""

    date: datetime.date
    available: bool

    @field_serializer("date")
    def serialize_date(self, value: datetime.date) -> str:
        return format_date(value)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump()


@dataclass(frozen=True)
class AvailabilityWindow:
    """Requested ``[start, end)`` calendar-date window.

    ``start_text``/``end_text`` keep the literal request strings; the cache
    key is derived from them.
    """

    start: datetime.date
    end: datetime.date
    start_text: str
    end_text: str

    @property
    def span_days(self) -> int:
        return (self.end - self.start).days

    def days(self) -> Iterator[datetime.date]:
        """Iterate dates from ``start`` up to, excluding, ``end``."""
        current = self.start
        while current < self.end:
            yield current
            current += datetime.timedelta(days=1)


def serialize_event_value(value: EventValue) -> str:
    """Format an event boundary for transport (YYYY-MM-DD or ISO-8601 with offset)."""
    if isinstance(value, datetime.datetime):
        return format_instant(value)
    return format_date(value)
