"""Shared fixtures for ics_availability tests."""

from collections.abc import Generator
from typing import Any

import pytest

from ics_availability.core.config_loader import Config
from ics_availability.core.kv_store import MemoryStore

FEED_URL = "https://calendar.example.com/private/basic.ics"

SAMPLE_ICS = """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//Example//Calendar//EN
BEGIN:VEVENT
UID:timed-1
SUMMARY:Busy
DTSTART:20251115T090000Z
DTEND:20251115T110000Z
END:VEVENT
BEGIN:VEVENT
UID:allday-1
DTSTART;VALUE=DATE:20251117
DTEND;VALUE=DATE:20251118
END:VEVENT
BEGIN:VEVENT
UID:zoned-1
DTSTART;TZID=Europe/Prague:20251119T100000
DTEND;TZID=Europe/Prague:20251119T120000
END:VEVENT
END:VCALENDAR
"""


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryStore:
    """In-memory store driven by the fake clock."""
    return MemoryStore(clock=clock)


@pytest.fixture
def config() -> Config:
    """Deterministic configuration with a feed URL and default business rules."""
    return Config.from_dict(
        {
            "ics_url": FEED_URL,
            "cache_ttl_seconds": 300,
            "opening_hours_start": "09:00",
            "opening_hours_end": "17:00",
            "rate_limit_per_minute": 30,
            "business_timezone": "UTC",
        }
    )


@pytest.fixture
def sample_ics() -> str:
    return SAMPLE_ICS


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Keep ICS_AVAILABILITY_* variables from the host out of the tests."""
    import os

    for key in list(os.environ):
        if key.startswith("ICS_AVAILABILITY_"):
            monkeypatch.delenv(key, raising=False)
    yield

