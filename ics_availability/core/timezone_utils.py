"""Timezone lookup and conversion helpers for ics_availability."""

from __future__ import annotations

import datetime
import logging
import zoneinfo
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_BUSINESS_TIMEZONE = "UTC"

# Windows timezone names to IANA identifier mapping.
# Outlook/Exchange exports write these into TZID parameters.
WINDOWS_TZ_MAP: dict[str, str] = {
    "UTC": "UTC",
    "Coordinated Universal Time": "UTC",
    "Pacific Standard Time": "America/Los_Angeles",
    "Mountain Standard Time": "America/Denver",
    "Central Standard Time": "America/Chicago",
    "Eastern Standard Time": "America/New_York",
    "Alaskan Standard Time": "America/Anchorage",
    "Hawaiian Standard Time": "Pacific/Honolulu",
    "Arizona Standard Time": "America/Phoenix",
    "GMT Standard Time": "Europe/London",
    "W. Europe Standard Time": "Europe/Berlin",
    "Central Europe Standard Time": "Europe/Budapest",
    "Central European Standard Time": "Europe/Warsaw",
    "Romance Standard Time": "Europe/Paris",
    "E. Europe Standard Time": "Europe/Chisinau",
    "FLE Standard Time": "Europe/Kiev",
    "GTB Standard Time": "Europe/Bucharest",
    "Russian Standard Time": "Europe/Moscow",
    "China Standard Time": "Asia/Shanghai",
    "Tokyo Standard Time": "Asia/Tokyo",
    "India Standard Time": "Asia/Kolkata",
    "AUS Eastern Standard Time": "Australia/Sydney",
}


def windows_tz_to_iana(windows_tz: str) -> str | None:
    """Map a Windows timezone name to its IANA identifier.

    Args:
        windows_tz: Windows timezone name, e.g. "Pacific Standard Time"

    Returns:
        IANA identifier or None if the name is not a known Windows zone
    """
    return WINDOWS_TZ_MAP.get(windows_tz.strip())


def resolve_zone(tz_name: Optional[str]) -> Optional[datetime.tzinfo]:
    """Resolve a TZID/IANA/Windows zone name to a tzinfo.

    Surrounding double quotes are stripped (``TZID="Europe/Prague"``) and Windows
    names are translated before the IANA lookup.

    Args:
        tz_name: Zone name as found in a feed or configuration

    Returns:
        tzinfo instance, or None when the name is empty or unknown
    """
    if not tz_name:
        return None

    name = tz_name.strip().strip('"').strip()
    if not name:
        return None

    if name.upper() in ("UTC", "Z", "GMT", "ETC/UTC"):
        return datetime.timezone.utc

    iana = windows_tz_to_iana(name) or name
    try:
        return zoneinfo.ZoneInfo(iana)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError, OSError):
        return None


def get_zone_or_utc(tz_name: Optional[str]) -> datetime.tzinfo:
    """Resolve a zone name, falling back to UTC with a warning."""
    tz = resolve_zone(tz_name)
    if tz is None:
        if tz_name:
            logger.warning("Unknown timezone %r, falling back to UTC", tz_name)
        return datetime.timezone.utc
    return tz
