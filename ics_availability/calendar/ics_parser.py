"""Line-oriented ICS parser that extracts busy intervals from VEVENT blocks.

Only DTSTART and DTEND are read. Anything outside a VEVENT, and every other
property, is ignored. Unfolding of continuation lines, RRULE expansion and
VTIMEZONE definitions are not handled.
"""

import datetime
import enum
import logging
from dataclasses import dataclass, field
from typing import Optional

from .datetime_utils import UTC, is_date_only, normalize_ical_datetime, parse_ical_date
from .models import CalendarEvent

logger = logging.getLogger(__name__)

BEGIN_EVENT = "BEGIN:VEVENT"
END_EVENT = "END:VEVENT"
BEGIN_CALENDAR = "BEGIN:VCALENDAR"


class ParserState(enum.Enum):
    OUTSIDE_EVENT = "outside_event"
    INSIDE_EVENT = "inside_event"


@dataclass(frozen=True)
class RawIcsProperty:
    """DTSTART/DTEND line split into value and the parameters we care about."""

    name: str
    value: str
    tzid: Optional[str] = None
    date_only: bool = False


@dataclass
class _EventAccumulator:
    start: Optional[RawIcsProperty] = None
    end: Optional[RawIcsProperty] = None


@dataclass
class ParseStats:
    events: int = 0
    skipped: int = 0
    warnings: list[str] = field(default_factory=list)


def split_property(line: str) -> Optional[RawIcsProperty]:
    """Split ``NAME;PARAM=..;PARAM=..:VALUE`` into a RawIcsProperty.

    ``VALUE=DATE`` is recognised only as that exact parameter (case-insensitive);
    a VALUE list merely containing DATE is not treated as date-only.

    Returns None for lines without a ``:`` separator.
    """
    head, sep, value = line.partition(":")
    if not sep:
        return None

    segments = head.split(";")
    name = segments[0].strip().upper()
    tzid: Optional[str] = None
    date_only = False
    for segment in segments[1:]:
        key, _, param_value = segment.partition("=")
        key = key.strip().upper()
        if key == "TZID":
            tzid = param_value.strip().strip('"') or None
        elif key == "VALUE" and param_value.strip().upper() == "DATE":
            date_only = True

    return RawIcsProperty(name=name, value=value.strip(), tzid=tzid, date_only=date_only)


class IcsParser:
    """Two-state parser over the lines of a calendar feed.

    Lines are fed one at a time; complete events are collected in
    ``events``. Events whose DTSTART or DTEND is missing or unparsable are
    dropped and counted in ``stats.skipped``; they never abort the parse.
    """

    def __init__(self, default_tz: datetime.tzinfo = UTC):
        """Initialize parser.

        Args:
            default_tz: Zone applied to floating times that carry no TZID
        """
        self.default_tz = default_tz
        self.state = ParserState.OUTSIDE_EVENT
        self.events: list[CalendarEvent] = []
        self.stats = ParseStats()
        self._current = _EventAccumulator()

    def feed_line(self, raw_line: str) -> None:
        line = raw_line.strip()
        if not line:
            return
        upper = line.upper()

        if self.state is ParserState.OUTSIDE_EVENT:
            if upper == BEGIN_EVENT:
                self.state = ParserState.INSIDE_EVENT
                self._current = _EventAccumulator()
            return

        if upper == END_EVENT:
            self._finish_event()
            self.state = ParserState.OUTSIDE_EVENT
            return

        if upper == BEGIN_EVENT:
            # Missing END:VEVENT; restart accumulation with the new block
            logger.debug("BEGIN:VEVENT inside an open event, discarding partial event")
            self.stats.skipped += 1
            self._current = _EventAccumulator()
            return

        if not (upper.startswith("DTSTART") or upper.startswith("DTEND")):
            return

        prop = split_property(line)
        if prop is None:
            return
        if prop.name == "DTSTART":
            self._current.start = prop
        elif prop.name == "DTEND":
            self._current.end = prop

    def _finish_event(self) -> None:
        start, end = self._current.start, self._current.end
        self._current = _EventAccumulator()
        if start is None or end is None:
            self.stats.skipped += 1
            logger.debug("Skipping event without DTSTART/DTEND")
            return

        event = self._build_event(start, end)
        if event is None:
            self.stats.skipped += 1
            logger.debug("Skipping event with unparsable dates: %r / %r", start.value, end.value)
            return

        self.events.append(event)
        self.stats.events += 1

    def _build_event(self, start: RawIcsProperty, end: RawIcsProperty) -> Optional[CalendarEvent]:
        all_day = start.date_only or is_date_only(start.value)

        if all_day:
            start_date = parse_ical_date(start.value)
            end_date = parse_ical_date(end.value)
            if start_date is None or end_date is None:
                return None
            return CalendarEvent(start=start_date, end=end_date, all_day=True)

        start_dt = normalize_ical_datetime(start.value, start.tzid, self.default_tz)
        end_dt = normalize_ical_datetime(end.value, end.tzid, self.default_tz)
        if start_dt is None or end_dt is None:
            return None
        return CalendarEvent(start=start_dt, end=end_dt, all_day=False)

    def parse(self, text: str) -> list[CalendarEvent]:
        """Parse a complete feed and return the events in source order."""
        if BEGIN_CALENDAR not in text.upper():
            logger.warning("Feed does not contain BEGIN:VCALENDAR, parsing anyway")
            self.stats.warnings.append("missing BEGIN:VCALENDAR")

        for line in text.splitlines():
            self.feed_line(line)

        if self.state is ParserState.INSIDE_EVENT:
            logger.debug("Feed ended inside an unterminated VEVENT")
            self.stats.skipped += 1

        if self.stats.skipped:
            logger.info(
                "Parsed %d events, skipped %d malformed", self.stats.events, self.stats.skipped
            )
        else:
            logger.debug("Parsed %d events", self.stats.events)
        return self.events


def parse_ics(text: str, default_tz: datetime.tzinfo = UTC) -> list[CalendarEvent]:
    """Parse feed text into CalendarEvents (see IcsParser)."""
    return IcsParser(default_tz=default_tz).parse(text)
