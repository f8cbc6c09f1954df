"""Calendar-day bucketing of reviews and consecutive-day streaks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable, List, Sequence


@dataclass(frozen=True, slots=True)
class StreakSummary:
    """Current and longest runs of consecutive study days."""

    current: int = 0
    longest: int = 0


def ensure_aware(moment: datetime) -> datetime:
    """Treat naive timestamps as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def to_calendar_date(moment: datetime, tz: tzinfo = timezone.utc) -> date:
    """Return the calendar date ``moment`` falls on in the learner's timezone."""
    return ensure_aware(moment).astimezone(tz).date()


def study_dates(timestamps: Iterable[datetime], tz: tzinfo = timezone.utc) -> List[date]:
    """Collapse review timestamps to distinct study dates in ascending order."""
    return sorted({to_calendar_date(moment, tz) for moment in timestamps})


def longest_streak(dates: Sequence[date]) -> int:
    """Length of the longest run of consecutive dates (0 when there are none)."""
    ordered = sorted(set(dates))
    if not ordered:
        return 0

    longest = 1
    run = 1
    for previous, current in zip(ordered, ordered[1:]):
        if (current - previous).days == 1:
            run += 1
            longest = max(longest, run)
        else:
            run = 1
    return longest


def current_streak(dates: Sequence[date], reference_date: date) -> int:
    """Length of the run ending at the last study date.

    The streak is only live when the last study date is ``reference_date`` or
    the day before; otherwise it has been broken and counts as 0.
    """
    ordered = sorted(set(dates))
    if not ordered:
        return 0

    last = ordered[-1]
    if last not in (reference_date, reference_date - timedelta(days=1)):
        return 0

    streak = 1
    for index in range(len(ordered) - 1, 0, -1):
        if (ordered[index] - ordered[index - 1]).days != 1:
            break
        streak += 1
    return streak


def calculate_streaks(
    timestamps: Iterable[datetime],
    reference_date: date,
    tz: tzinfo = timezone.utc,
) -> StreakSummary:
    """Compute current and longest streaks from raw review timestamps."""
    dates = study_dates(timestamps, tz)
    return StreakSummary(
        current=current_streak(dates, reference_date),
        longest=longest_streak(dates),
    )
