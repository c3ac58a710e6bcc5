"""
Unit Tests for Elapsed Time Calculation
Covers plain elapsed time, pause window subtraction and business hours.
"""
from datetime import datetime, timedelta, timezone

import pytest

from ticket_sla.sla.domain import BusinessCalendar, ElapsedTimeCalculator, PauseWindow, WorkingDay

from conftest import MONDAY_9AM


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def weekday_calendar(tz: str = "UTC", start: str = "09:00", end: str = "18:00") -> BusinessCalendar:
    days = {0: WorkingDay(day_of_week=0, is_working_day=False),
            6: WorkingDay(day_of_week=6, is_working_day=False)}
    for dow in range(1, 6):
        days[dow] = WorkingDay(day_of_week=dow, start_time=start, end_time=end)
    return BusinessCalendar(days=days, timezone=tz)


def pause(start: datetime, end: datetime) -> PauseWindow:
    return PauseWindow(name="maintenance", start=start, end=end)


class TestPlainElapsed:
    """Elapsed time without business hours."""

    def test_elapsed_is_wall_clock_minutes(self):
        end = MONDAY_9AM + timedelta(minutes=46)
        assert ElapsedTimeCalculator.calculate(MONDAY_9AM, end) == pytest.approx(46)

    def test_zero_length_range(self):
        assert ElapsedTimeCalculator.calculate(MONDAY_9AM, MONDAY_9AM) == 0.0

    def test_end_before_start_is_zero(self):
        assert ElapsedTimeCalculator.calculate(MONDAY_9AM, MONDAY_9AM - timedelta(hours=1)) == 0.0

    def test_naive_datetimes_are_utc(self):
        start = datetime(2024, 1, 15, 9, 0)
        end = utc(2024, 1, 15, 9, 30)
        assert ElapsedTimeCalculator.calculate(start, end) == pytest.approx(30)

    def test_offset_datetimes_are_normalized(self):
        cet = timezone(timedelta(hours=1))
        start = datetime(2024, 1, 15, 10, 0, tzinfo=cet)  # 09:00 UTC
        assert ElapsedTimeCalculator.calculate(start, utc(2024, 1, 15, 9, 15)) == pytest.approx(15)


class TestPauseWindows:
    """Pause windows are merged, clipped and subtracted."""

    def test_pause_is_subtracted(self):
        windows = [pause(utc(2024, 1, 15, 9, 10), utc(2024, 1, 15, 9, 40))]
        elapsed = ElapsedTimeCalculator.calculate(
            MONDAY_9AM, utc(2024, 1, 15, 10, 0), pause_windows=windows
        )
        assert elapsed == pytest.approx(30)

    def test_three_overlapping_windows_are_counted_once(self):
        windows = [
            pause(utc(2024, 1, 15, 10, 0), utc(2024, 1, 15, 10, 30)),
            pause(utc(2024, 1, 15, 10, 15), utc(2024, 1, 15, 10, 45)),
            pause(utc(2024, 1, 15, 10, 40), utc(2024, 1, 15, 11, 0)),
        ]
        elapsed = ElapsedTimeCalculator.calculate(
            MONDAY_9AM, utc(2024, 1, 15, 12, 0), pause_windows=windows
        )
        assert elapsed == pytest.approx(180 - 60)

    def test_pause_outside_range_is_clipped(self):
        windows = [pause(utc(2024, 1, 15, 8, 0), utc(2024, 1, 15, 9, 30))]
        elapsed = ElapsedTimeCalculator.calculate(
            MONDAY_9AM, utc(2024, 1, 15, 10, 0), pause_windows=windows
        )
        assert elapsed == pytest.approx(30)

    def test_pause_covering_whole_range_gives_zero(self):
        windows = [pause(utc(2024, 1, 15, 8, 0), utc(2024, 1, 15, 12, 0))]
        elapsed = ElapsedTimeCalculator.calculate(
            MONDAY_9AM, utc(2024, 1, 15, 10, 0), pause_windows=windows
        )
        assert elapsed == 0.0

    def test_adding_a_pause_never_increases_elapsed(self):
        end = utc(2024, 1, 15, 17, 0)
        windows = []
        previous = ElapsedTimeCalculator.calculate(MONDAY_9AM, end)
        for hour in (9, 11, 10, 15, 16):
            windows.append(pause(utc(2024, 1, 15, hour, 0), utc(2024, 1, 15, hour, 45)))
            current = ElapsedTimeCalculator.calculate(MONDAY_9AM, end, pause_windows=windows)
            assert current <= previous
            previous = current

    def test_merge_touching_intervals(self):
        merged = ElapsedTimeCalculator.merge_intervals([
            (utc(2024, 1, 15, 10, 0), utc(2024, 1, 15, 11, 0)),
            (utc(2024, 1, 15, 11, 0), utc(2024, 1, 15, 12, 0)),
            (utc(2024, 1, 15, 8, 0), utc(2024, 1, 15, 9, 0)),
        ])
        assert merged == [
            (utc(2024, 1, 15, 8, 0), utc(2024, 1, 15, 9, 0)),
            (utc(2024, 1, 15, 10, 0), utc(2024, 1, 15, 12, 0)),
        ]


class TestBusinessHours:
    """Elapsed time counted inside working hours only."""

    def test_overnight_counts_working_hours_only(self):
        elapsed = ElapsedTimeCalculator.calculate(
            utc(2024, 1, 15, 17, 0), utc(2024, 1, 16, 10, 0),
            business_hours_only=True, calendar=weekday_calendar()
        )
        assert elapsed == pytest.approx(120)

    def test_weekend_does_not_accrue(self):
        # Friday 17:00 -> Monday 10:00
        elapsed = ElapsedTimeCalculator.calculate(
            utc(2024, 1, 19, 17, 0), utc(2024, 1, 22, 10, 0),
            business_hours_only=True, calendar=weekday_calendar()
        )
        assert elapsed == pytest.approx(120)

    def test_start_outside_hours_waits_for_opening(self):
        elapsed = ElapsedTimeCalculator.calculate(
            utc(2024, 1, 15, 7, 0), utc(2024, 1, 15, 9, 30),
            business_hours_only=True, calendar=weekday_calendar()
        )
        assert elapsed == pytest.approx(30)

    def test_hours_are_local_to_calendar_timezone(self):
        # 13:00-15:00 UTC is 08:00-10:00 in New York (EST)
        elapsed = ElapsedTimeCalculator.calculate(
            utc(2024, 1, 15, 13, 0), utc(2024, 1, 15, 15, 0),
            business_hours_only=True, calendar=weekday_calendar("America/New_York")
        )
        assert elapsed == pytest.approx(60)

    def test_dst_change_keeps_wall_clock_hours(self):
        # Friday 09:00 EST -> Monday 10:00 EDT across the 2024-03-10 switch
        elapsed = ElapsedTimeCalculator.calculate(
            utc(2024, 3, 8, 14, 0), utc(2024, 3, 11, 14, 0),
            business_hours_only=True, calendar=weekday_calendar("America/New_York")
        )
        assert elapsed == pytest.approx(9 * 60 + 60)

    def test_end_time_midnight_means_end_of_day(self):
        calendar = weekday_calendar(start="22:00", end="00:00")
        elapsed = ElapsedTimeCalculator.calculate(
            utc(2024, 1, 15, 21, 0), utc(2024, 1, 16, 2, 0),
            business_hours_only=True, calendar=calendar
        )
        assert elapsed == pytest.approx(120)

    def test_missing_days_accrue_nothing(self):
        elapsed = ElapsedTimeCalculator.calculate(
            MONDAY_9AM, utc(2024, 1, 16, 9, 0),
            business_hours_only=True, calendar=BusinessCalendar()
        )
        assert elapsed == 0.0

    def test_calendar_required(self):
        with pytest.raises(ValueError):
            ElapsedTimeCalculator.calculate(
                MONDAY_9AM, utc(2024, 1, 15, 10, 0), business_hours_only=True
            )

    def test_pause_only_subtracted_inside_working_hours(self):
        # Pause 08:00-10:00 overlaps working hours for one hour only
        windows = [pause(utc(2024, 1, 15, 8, 0), utc(2024, 1, 15, 10, 0))]
        elapsed = ElapsedTimeCalculator.calculate(
            utc(2024, 1, 15, 8, 0), utc(2024, 1, 15, 12, 0),
            business_hours_only=True, calendar=weekday_calendar(), pause_windows=windows
        )
        assert elapsed == pytest.approx(120)

    def test_weekend_pause_has_no_effect(self):
        windows = [pause(utc(2024, 1, 20, 0, 0), utc(2024, 1, 21, 23, 0))]
        calendar = weekday_calendar()
        start, end = utc(2024, 1, 19, 17, 0), utc(2024, 1, 22, 10, 0)
        with_pause = ElapsedTimeCalculator.calculate(
            start, end, business_hours_only=True, calendar=calendar, pause_windows=windows
        )
        without_pause = ElapsedTimeCalculator.calculate(
            start, end, business_hours_only=True, calendar=calendar
        )
        assert with_pause == pytest.approx(without_pause)
