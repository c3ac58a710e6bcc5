"""
Elapsed-Time Calculator
=======================

Pure functions measuring how many minutes count against an SLA clock.

Elapsed time is wall time minus pause windows, optionally restricted to the
business calendar's working hours. Pause windows may overlap each other and
are unioned before being subtracted.
"""

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from ticket_sla.sla.domain.value_objects import BusinessCalendar, PauseWindow

Interval = Tuple[datetime, datetime]


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ElapsedTimeCalculator:
    """
    Stateless elapsed-time calculations.

    All arithmetic happens on UTC datetimes so that intervals built from a
    local calendar stay correct across DST transitions.
    """

    @staticmethod
    def merge_intervals(intervals: Iterable[Interval]) -> List[Interval]:
        """Union overlapping or touching intervals into a sorted disjoint list."""
        ordered = sorted(
            (as_utc(start), as_utc(end)) for start, end in intervals
        )
        merged: List[Interval] = []
        for start, end in ordered:
            if end <= start:
                continue
            if merged and start <= merged[-1][1]:
                if end > merged[-1][1]:
                    merged[-1] = (merged[-1][0], end)
            else:
                merged.append((start, end))
        return merged

    @staticmethod
    def overlap(a: Interval, b: Interval) -> timedelta:
        """Length of the intersection of two intervals (zero if disjoint)."""
        start = max(a[0], b[0])
        end = min(a[1], b[1])
        if end <= start:
            return timedelta(0)
        return end - start

    @classmethod
    def total_overlap(
        cls,
        intervals: Sequence[Interval],
        windows: Sequence[Interval]
    ) -> timedelta:
        """
        Sum of overlaps between two disjoint interval lists.

        Both lists must already be disjoint within themselves, otherwise time
        would be counted twice.
        """
        total = timedelta(0)
        for interval in intervals:
            for window in windows:
                total += cls.overlap(interval, window)
        return total

    @classmethod
    def calculate(
        cls,
        start: datetime,
        end: datetime,
        business_hours_only: bool = False,
        calendar: Optional["BusinessCalendar"] = None,
        pause_windows: Iterable["PauseWindow"] = ()
    ) -> float:
        """
        Calculate elapsed minutes between start and end.

        Args:
            start: Clock start
            end: Evaluation instant (an end before start yields 0)
            business_hours_only: Only count time inside the calendar's working hours
            calendar: Business calendar snapshot (required when business_hours_only)
            pause_windows: Pause windows overlapping [start, end]

        Returns:
            Elapsed minutes, never negative
        """
        start = as_utc(start)
        end = as_utc(end)
        if end <= start:
            return 0.0

        if business_hours_only:
            if calendar is None:
                raise ValueError("calendar is required when business_hours_only is set")
            accruing = calendar.working_intervals(start, end)
        else:
            accruing = [(start, end)]

        if not accruing:
            return 0.0

        # Pauses are clipped to [start, end] first, then only the part that
        # falls inside accruing intervals is subtracted.
        paused = cls.merge_intervals(
            (max(window.start, start), min(window.end, end))
            for window in pause_windows
        )

        accrued = timedelta(0)
        for interval_start, interval_end in accruing:
            accrued += interval_end - interval_start

        elapsed = accrued - cls.total_overlap(accruing, paused)
        return max(elapsed.total_seconds() / 60.0, 0.0)
