"""Spaced-repetition scheduling for flashcard reviews (SM-2 variant)."""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Dict

from src.study.models import (
    DEFAULT_POLICY,
    CardStatus,
    Quality,
    ReviewState,
    SchedulerPolicy,
)
from src.study.streaks import to_calendar_date


FIRST_INTERVAL_DAYS = 1
SECOND_INTERVAL_DAYS = 6
HARD_LAPSE_INTERVAL_DAYS = 1


def is_lapse(quality: Quality, policy: SchedulerPolicy = DEFAULT_POLICY) -> bool:
    """Return True when the rating resets the card's learning progress."""
    return quality < policy.pass_threshold


def next_status(
    previous: CardStatus,
    *,
    lapsed: bool,
    repetitions: int,
    policy: SchedulerPolicy = DEFAULT_POLICY,
) -> CardStatus:
    """Single transition function for the card lifecycle."""
    if lapsed:
        if previous in (CardStatus.REVIEW, CardStatus.RELEARNING):
            return CardStatus.RELEARNING
        return CardStatus.LEARNING

    if previous is CardStatus.RELEARNING:
        return CardStatus.REVIEW
    if repetitions >= policy.graduating_repetitions:
        return CardStatus.REVIEW
    return CardStatus.LEARNING


def next_ease_factor(ease_factor: float, quality: Quality, min_ease_factor: float) -> float:
    """Classic SM-2 ease recurrence with the grade scaled to 0-3."""
    distance = 3 - quality.grade
    updated = ease_factor + (0.1 - distance * (0.08 + distance * 0.02))
    return max(min_ease_factor, updated)


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def _due_date(now: datetime, interval: int, tz: tzinfo) -> datetime:
    """Midnight, in the learner's timezone, ``interval`` calendar days after ``now``."""
    return datetime.combine(to_calendar_date(now, tz) + timedelta(days=interval), time.min, tzinfo=tz)


def apply(
    previous: ReviewState,
    quality: Quality,
    now: datetime,
    policy: SchedulerPolicy = DEFAULT_POLICY,
    tz: tzinfo = timezone.utc,
) -> ReviewState:
    """Return the state a card moves to after being rated ``quality`` at ``now``.

    Due dates fall on midnight of the learner's calendar day in ``tz``.
    """
    lapsed = is_lapse(quality, policy)
    ease_factor = max(policy.min_ease_factor, previous.ease_factor)

    if lapsed:
        repetitions = 0
        interval = 0 if quality is Quality.AGAIN else HARD_LAPSE_INTERVAL_DAYS
    else:
        repetitions = previous.repetitions + 1
        if repetitions == 1:
            interval = FIRST_INTERVAL_DAYS
        elif repetitions == 2:
            interval = SECOND_INTERVAL_DAYS
        else:
            interval = _round_half_up(previous.interval * ease_factor)
        ease_factor = next_ease_factor(ease_factor, quality, policy.min_ease_factor)

    if policy.max_interval_days is not None and interval > policy.max_interval_days:
        interval = policy.max_interval_days

    return ReviewState(
        repetitions=repetitions,
        interval=interval,
        ease_factor=ease_factor,
        status=next_status(previous.status, lapsed=lapsed, repetitions=repetitions, policy=policy),
        next_review_date=_due_date(now, interval, tz),
    )


def preview(
    previous: ReviewState,
    now: datetime,
    policy: SchedulerPolicy = DEFAULT_POLICY,
    tz: tzinfo = timezone.utc,
) -> Dict[Quality, ReviewState]:
    """Show what each rating button would schedule, without committing anything."""
    return {quality: apply(previous, quality, now, policy, tz) for quality in Quality}
