"""Unit tests for the availability engine and window filter."""

import datetime
import zoneinfo

import pytest

from ics_availability.calendar.models import AvailabilityWindow, CalendarEvent
from ics_availability.domain.availability import AvailabilityEngine, filter_to_window

pytestmark = [pytest.mark.unit, pytest.mark.fast]

UTC = datetime.timezone.utc
PRAGUE = zoneinfo.ZoneInfo("Europe/Prague")


def _timed(day: int, start: str, end: str, tz: datetime.tzinfo = UTC, month: int = 11) -> CalendarEvent:
    sh, sm = map(int, start.split(":"))
    eh, em = map(int, end.split(":"))
    return CalendarEvent(
        start=datetime.datetime(2025, month, day, sh, sm, tzinfo=tz),
        end=datetime.datetime(2025, month, day, eh, em, tzinfo=tz),
    )


def _window(start: str, end: str) -> AvailabilityWindow:
    return AvailabilityWindow(
        start=datetime.date.fromisoformat(start),
        end=datetime.date.fromisoformat(end),
        start_text=start,
        end_text=end,
    )


@pytest.fixture
def engine() -> AvailabilityEngine:
    return AvailabilityEngine(
        tz=UTC,
        opening_start=datetime.time(9, 0),
        opening_end=datetime.time(17, 0),
        min_free_minutes=120,
    )


class TestDayAvailability:
    """Tests for the minimum free gap rule."""

    def test_no_events_means_available(self, engine):
        assert engine.is_day_available(datetime.date(2025, 11, 15), [])

    def test_gap_of_exactly_two_hours_is_available(self, engine):
        assert engine.is_day_available(datetime.date(2025, 11, 15), [_timed(15, "09:00", "15:00")])

    def test_gap_one_minute_short_is_unavailable(self, engine):
        assert not engine.is_day_available(datetime.date(2025, 11, 15), [_timed(15, "09:00", "15:01")])

    def test_gap_before_first_event(self, engine):
        assert engine.is_day_available(datetime.date(2025, 11, 15), [_timed(15, "11:00", "17:00")])
        assert not engine.is_day_available(
            datetime.date(2025, 11, 15), [_timed(15, "10:59", "17:00")]
        )

    def test_gap_between_events(self, engine):
        events = [_timed(15, "13:00", "17:00"), _timed(15, "09:00", "11:00")]
        assert engine.is_day_available(datetime.date(2025, 11, 15), events)

    def test_overlapping_events_leave_no_phantom_gap(self, engine):
        events = [
            _timed(15, "09:00", "16:00"),
            _timed(15, "10:00", "11:00"),
            _timed(15, "13:30", "17:00"),
        ]
        assert not engine.is_day_available(datetime.date(2025, 11, 15), events)

    def test_event_nested_inside_longer_event_opens_no_gap(self, engine):
        events = [_timed(15, "09:00", "17:00"), _timed(15, "10:00", "11:00")]
        assert not engine.is_day_available(datetime.date(2025, 11, 15), events)

    def test_events_outside_opening_hours_do_not_block(self, engine):
        events = [_timed(15, "06:00", "08:00"), _timed(15, "18:00", "20:00")]
        assert engine.is_day_available(datetime.date(2025, 11, 15), events)

    def test_event_running_past_closing_blocks_rest_of_day(self, engine):
        assert not engine.is_day_available(datetime.date(2025, 11, 15), [_timed(15, "10:00", "23:00")])

    def test_all_day_event_blocks_the_day(self, engine):
        event = CalendarEvent(
            start=datetime.date(2025, 11, 17), end=datetime.date(2025, 11, 18), all_day=True
        )
        days = engine.day_availability([event], _window("2025-11-16", "2025-11-19"))
        assert [(d.date.day, d.available) for d in days] == [(16, True), (17, False), (18, True)]

    def test_inverted_events_are_ignored(self, engine):
        inverted = _timed(15, "16:00", "10:00")
        days = engine.day_availability([inverted], _window("2025-11-15", "2025-11-16"))
        assert days[0].available

    def test_one_record_per_day_end_excluded(self, engine):
        days = engine.day_availability([], _window("2025-11-10", "2025-11-20"))
        assert len(days) == 10
        assert days[0].to_dict() == {"date": "2025-11-10", "available": True}
        assert days[-1].date == datetime.date(2025, 11, 19)

    def test_empty_window(self, engine):
        assert engine.day_availability([], _window("2025-11-10", "2025-11-10")) == []

    def test_bucketing_uses_business_timezone(self):
        """23:30 UTC on the 14th is already the 15th in Prague."""
        engine = AvailabilityEngine(tz=PRAGUE, min_free_minutes=120)
        late = CalendarEvent(
            start=datetime.datetime(2025, 11, 14, 23, 30, tzinfo=UTC),
            end=datetime.datetime(2025, 11, 15, 16, 0, tzinfo=UTC),
        )
        days = engine.day_availability([late], _window("2025-11-14", "2025-11-16"))
        assert [(d.date.day, d.available) for d in days] == [(14, True), (15, False)]

    def test_opening_hours_follow_business_timezone_across_dst(self):
        """Opening hours are Prague wall-clock time in both summer and winter."""
        engine = AvailabilityEngine(tz=PRAGUE, min_free_minutes=120)
        # 09:00-15:00 Prague time leaves exactly 15:00-17:00 free
        summer = _timed(15, "07:00", "13:00", tz=UTC, month=7)
        winter = _timed(15, "08:00", "14:00", tz=UTC, month=11)
        assert engine.is_day_available(datetime.date(2025, 7, 15), [summer])
        assert engine.is_day_available(datetime.date(2025, 11, 15), [winter])
        assert not engine.is_day_available(
            datetime.date(2025, 11, 15), [_timed(15, "08:00", "14:01", tz=UTC)]
        )

    def test_custom_minimum_gap(self):
        engine = AvailabilityEngine(min_free_minutes=30)
        assert engine.is_day_available(datetime.date(2025, 11, 15), [_timed(15, "09:00", "16:30")])


class TestBusyBlocks:
    def test_pass_through_with_all_day_flag(self, engine):
        events = [
            _timed(15, "09:00", "11:00"),
            CalendarEvent(start=datetime.date(2025, 11, 17), end=datetime.date(2025, 11, 18), all_day=True),
        ]
        blocks = [b.to_dict() for b in engine.busy_blocks(events)]
        assert blocks == [
            {"start": "2025-11-15T09:00:00Z", "end": "2025-11-15T11:00:00Z", "allDay": False},
            {"start": "2025-11-17", "end": "2025-11-18", "allDay": True},
        ]

    def test_inverted_events_pass_through(self, engine):
        assert len(engine.busy_blocks([_timed(15, "11:00", "09:00")])) == 1


class TestFilterToWindow:
    """Tests for the window overlap filter."""

    def test_keeps_overlapping_and_drops_outside(self):
        events = [
            _timed(9, "09:00", "10:00"),
            _timed(10, "00:00", "01:00"),
            _timed(20, "23:00", "23:30"),
            _timed(21, "00:00", "01:00"),
        ]
        kept = filter_to_window(events, _window("2025-11-10", "2025-11-20"), UTC)
        assert [e.start.day for e in kept] == [10, 20]

    def test_event_ending_exactly_at_window_start_is_kept(self):
        event = CalendarEvent(
            start=datetime.datetime(2025, 11, 9, 22, 0, tzinfo=UTC),
            end=datetime.datetime(2025, 11, 10, 0, 0, tzinfo=UTC),
        )
        assert filter_to_window([event], _window("2025-11-10", "2025-11-20"), UTC) == [event]

    def test_all_day_events_compared_as_dates(self):
        inside = CalendarEvent(start=datetime.date(2025, 11, 17), end=datetime.date(2025, 11, 18), all_day=True)
        before = CalendarEvent(start=datetime.date(2025, 11, 1), end=datetime.date(2025, 11, 2), all_day=True)
        kept = filter_to_window([inside, before], _window("2025-11-10", "2025-11-20"), PRAGUE)
        assert kept == [inside]
