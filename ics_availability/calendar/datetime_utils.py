"""DateTime parsing utilities for iCal values.

Interprets the value forms found in DTSTART/DTEND properties:

- ``20251115T100000Z``  UTC
- ``20251115T100000``   floating local time, optionally qualified by a TZID
- ``20251115``          date-only (all-day)

and formats instants and dates for the JSON API.
"""

import datetime
import logging
import re
from typing import Optional

from ics_availability.core.timezone_utils import get_zone_or_utc

logger = logging.getLogger(__name__)

UTC = datetime.timezone.utc

ICAL_DATE_FORMAT = "%Y%m%d"
ICAL_DATETIME_FORMAT = "%Y%m%dT%H%M%S"
API_DATE_FORMAT = "%Y-%m-%d"

_DATE_ONLY_RE = re.compile(r"^\d{8}$")
_DATETIME_RE = re.compile(r"^\d{8}T\d{6}$")


def is_date_only(raw: str) -> bool:
    """True when ``raw`` is exactly eight decimal digits (YYYYMMDD)."""
    return bool(_DATE_ONLY_RE.match(raw.strip()))


def parse_ical_date(raw: str) -> Optional[datetime.date]:
    """Parse the date part of an iCal value.

    Accepts ``YYYYMMDD`` and also the date prefix of a date-time value, which
    some exporters write even when ``VALUE=DATE`` is set.

    Returns:
        Calendar date, or None if the first eight characters are not a valid date
    """
    value = raw.strip()
    head = value[:8]
    if not _DATE_ONLY_RE.match(head):
        return None
    try:
        return datetime.datetime.strptime(head, ICAL_DATE_FORMAT).date()
    except ValueError:
        return None


def normalize_ical_datetime(
    raw: str,
    tzid: Optional[str] = None,
    default_tz: datetime.tzinfo = UTC,
) -> Optional[datetime.datetime]:
    """Interpret an iCal date/time value as a timezone-aware instant.

    Args:
        raw: Property value, e.g. ``20251115T100000Z``
        tzid: TZID parameter of the property, if any
        default_tz: Zone for floating times without a TZID

    Returns:
        Aware datetime, or None when the value does not match the fixed-width
        format (the owning event is then dropped)

    Notes:
        - A date-only value resolves to midnight UTC of that date.
        - An unknown TZID logs a warning and the wall-clock time is taken as UTC.
    """
    value = raw.strip()

    if _DATE_ONLY_RE.match(value):
        day = parse_ical_date(value)
        if day is None:
            return None
        return datetime.datetime.combine(day, datetime.time.min, tzinfo=UTC)

    is_utc = value.endswith("Z") or value.endswith("z")
    if is_utc:
        value = value[:-1]

    if not _DATETIME_RE.match(value):
        return None

    try:
        naive = datetime.datetime.strptime(value, ICAL_DATETIME_FORMAT)
    except ValueError:
        return None

    if is_utc:
        return naive.replace(tzinfo=UTC)

    if tzid:
        return naive.replace(tzinfo=get_zone_or_utc(tzid))

    return naive.replace(tzinfo=default_tz)


def format_instant(dt: datetime.datetime) -> str:
    """Format an aware datetime as ISO-8601 with offset.

    UTC instants use the ``Z`` suffix (``2025-11-15T09:00:00Z``); zoned
    instants keep their own offset (``2025-11-15T10:00:00+01:00``). Naive
    datetimes are treated as UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    dt = dt.replace(microsecond=0)
    if dt.tzinfo is UTC or dt.tzname() in ("UTC", "Z"):
        return dt.astimezone(UTC).replace(tzinfo=None).isoformat() + "Z"
    return dt.isoformat()


def format_date(day: datetime.date) -> str:
    """Format a calendar date as ``YYYY-MM-DD``."""
    return f"{day.year:04d}-{day.month:02d}-{day.day:02d}"


def parse_api_date(text: str) -> Optional[datetime.date]:
    """Parse a strict ``YYYY-MM-DD`` request parameter.

    The value must round-trip: ``format_date(parse_api_date(s)) == s``, so
    forms such as ``2025-1-5`` or ``20250105`` are rejected.

    Returns:
        Parsed date, or None when the text is not a valid strict date
    """
    try:
        day = datetime.datetime.strptime(text, API_DATE_FORMAT).date()
    except (TypeError, ValueError):
        return None
    if format_date(day) != text:
        return None
    return day


def ensure_timezone_aware(dt: datetime.datetime, tz: datetime.tzinfo = UTC) -> datetime.datetime:
    """Attach ``tz`` to naive datetimes; aware datetimes are returned unchanged."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt


def start_of_day(day: datetime.date, tz: datetime.tzinfo) -> datetime.datetime:
    """Midnight of ``day`` in ``tz``."""
    return datetime.datetime.combine(day, datetime.time.min, tzinfo=tz)


def to_utc(value: "datetime.datetime | datetime.date", tz: datetime.tzinfo) -> datetime.datetime:
    """Convert an event boundary to a UTC instant.

    Dates are anchored at midnight in ``tz``; datetimes are converted directly.
    Arithmetic on the result is safe across DST changes.
    """
    if isinstance(value, datetime.datetime):
        return ensure_timezone_aware(value).astimezone(UTC)
    return start_of_day(value, tz).astimezone(UTC)
