"""Study analytics derived from review history.

Every function here is a pure aggregation over already-loaded review events.
Empty inputs are valid and produce zeroed statistics.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from src.study.models import (
    CardStatus,
    CardWithLatestReview,
    Quality,
    ReviewEvent,
    current_state,
)
from src.study.streaks import (
    calculate_streaks,
    current_streak,
    ensure_aware,
    study_dates,
    to_calendar_date,
)


DEFAULT_SECONDS_PER_REVIEW = 10
MATURE_INTERVAL_DAYS = 21
WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

ACTIVITY_STUDY = "study"
ACTIVITY_DECK_CREATED = "deck_created"


class TimeRange(str, Enum):
    """Named trailing windows accepted by the statistics queries."""

    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

    @property
    def days(self) -> int:
        return {"week": 7, "month": 30, "year": 365}[self.value]


def _percentage(part: int, total: int) -> float:
    if total == 0:
        return 0.0
    return round(part / total * 100, 1)


def _average(total: float, count: int, digits: int = 1) -> float:
    if count == 0:
        return 0.0
    return round(total / count, digits)


def _in_window(events: Iterable[ReviewEvent], start: datetime, end: datetime) -> List[ReviewEvent]:
    start = ensure_aware(start)
    end = ensure_aware(end)
    return [event for event in events if start <= ensure_aware(event.reviewed_at) <= end]


def _date_span(start: date, end: date) -> List[date]:
    if end < start:
        return []
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def _start_of_day(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def _end_of_day(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.max, tzinfo=tz)


def day_bounds(day: date, tz: tzinfo = timezone.utc) -> Tuple[datetime, datetime]:
    """First and last instant of a calendar date in the given timezone."""
    return _start_of_day(day, tz), _end_of_day(day, tz)


@dataclass(slots=True)
class QualityDistribution:
    """How often each rating button was pressed."""

    again: int = 0
    hard: int = 0
    good: int = 0
    easy: int = 0

    @classmethod
    def from_events(cls, events: Iterable[ReviewEvent]) -> QualityDistribution:
        distribution = cls()
        for event in events:
            distribution.add(event.quality)
        return distribution

    def add(self, quality: Quality) -> None:
        if quality is Quality.AGAIN:
            self.again += 1
        elif quality is Quality.HARD:
            self.hard += 1
        elif quality is Quality.GOOD:
            self.good += 1
        else:
            self.easy += 1

    @property
    def total(self) -> int:
        return self.again + self.hard + self.good + self.easy

    @property
    def correct(self) -> int:
        return self.good + self.easy

    @property
    def incorrect(self) -> int:
        return self.again + self.hard

    @property
    def accuracy(self) -> float:
        return _percentage(self.correct, self.total)

    def as_dict(self) -> Dict[str, int]:
        return {
            Quality.AGAIN.value: self.again,
            Quality.HARD.value: self.hard,
            Quality.GOOD.value: self.good,
            Quality.EASY.value: self.easy,
        }


# ---------- Session statistics ----------


@dataclass(slots=True)
class SessionStatistics:
    """Summary of a single study session over an explicit time window."""

    session_start_time: datetime
    session_end_time: datetime
    total_cards_reviewed: int
    new_cards_introduced: int
    learning_cards_reviewed: int
    review_cards_reviewed: int
    correct_answers: int
    incorrect_answers: int
    accuracy_percentage: float
    total_study_time: int
    average_time_per_card: float
    quality_distribution: QualityDistribution
    deck_id: Optional[int] = None
    deck_name: Optional[str] = None


def session_statistics(
    events: Sequence[ReviewEvent],
    start: datetime,
    end: datetime,
    deck_id: Optional[int] = None,
    deck_name: Optional[str] = None,
) -> SessionStatistics:
    """Aggregate the reviews submitted between ``start`` and ``end``.

    Cards are classified by the status they had *before* the review:
    ``learning`` and ``relearning`` both count as learning cards. Study time
    is the wall-clock length of the window, since per-review durations are
    not tracked.
    """
    window = _in_window(events, start, end)
    distribution = QualityDistribution.from_events(window)

    new_cards = sum(1 for event in window if event.previous_status is CardStatus.NEW)
    review_cards = sum(1 for event in window if event.previous_status is CardStatus.REVIEW)
    learning_cards = len(window) - new_cards - review_cards

    elapsed = max(0, int((ensure_aware(end) - ensure_aware(start)).total_seconds()))

    return SessionStatistics(
        session_start_time=start,
        session_end_time=end,
        total_cards_reviewed=len(window),
        new_cards_introduced=new_cards,
        learning_cards_reviewed=learning_cards,
        review_cards_reviewed=review_cards,
        correct_answers=distribution.correct,
        incorrect_answers=distribution.incorrect,
        accuracy_percentage=distribution.accuracy,
        total_study_time=elapsed,
        average_time_per_card=_average(elapsed, len(window)),
        quality_distribution=distribution,
        deck_id=deck_id,
        deck_name=deck_name,
    )


# ---------- Time-range statistics ----------


@dataclass(slots=True)
class DailyActivity:
    date: date
    review_count: int
    study_time: int


@dataclass(slots=True)
class TimeRangeStatistics:
    """Totals, consistency and streaks over a time range."""

    start_date: datetime
    end_date: datetime
    total_cards_reviewed: int
    total_sessions: int
    total_study_time: int
    average_session_time: float
    days_studied: int
    total_days_in_range: int
    consistency_percentage: float
    correct_reviews: int
    incorrect_reviews: int
    accuracy_percentage: float
    new_cards_introduced: int
    cards_matured: int
    average_reviews_per_day: float
    quality_distribution: QualityDistribution
    daily_breakdown: List[DailyActivity] = field(default_factory=list)
    current_streak: int = 0
    longest_streak: int = 0


def resolve_time_range(
    time_range: TimeRange,
    now: Optional[datetime] = None,
    tz: tzinfo = timezone.utc,
) -> Tuple[datetime, datetime]:
    """Return the window covering the last ``time_range.days`` calendar days, today included."""
    if now is None:
        now = datetime.now(timezone.utc)
    today = to_calendar_date(now, tz)
    first_day = today - timedelta(days=time_range.days - 1)
    return _start_of_day(first_day, tz), _end_of_day(today, tz)


def _session_keys(events: Iterable[ReviewEvent], tz: tzinfo) -> Set[Tuple[Optional[int], date]]:
    return {(event.deck_id, to_calendar_date(event.reviewed_at, tz)) for event in events}


def _matured_cards(events: Iterable[ReviewEvent]) -> Set[int]:
    return {
        event.card_id
        for event in events
        if event.status is CardStatus.REVIEW
        and event.previous_status in (CardStatus.NEW, CardStatus.LEARNING)
    }


def time_range_statistics(
    events: Sequence[ReviewEvent],
    start: datetime,
    end: datetime,
    tz: tzinfo = timezone.utc,
    seconds_per_review: int = DEFAULT_SECONDS_PER_REVIEW,
) -> TimeRangeStatistics:
    """Aggregate reviews between ``start`` and ``end``, bucketed per calendar date.

    Study time is estimated at ``seconds_per_review`` per review. Streaks are
    computed over the window's reviews and anchored at the window's end date.
    """
    window = _in_window(events, start, end)
    distribution = QualityDistribution.from_events(window)

    first_day = to_calendar_date(start, tz)
    last_day = to_calendar_date(end, tz)
    days = _date_span(first_day, last_day)

    per_day: Dict[date, int] = defaultdict(int)
    for event in window:
        per_day[to_calendar_date(event.reviewed_at, tz)] += 1

    breakdown = [
        DailyActivity(date=day, review_count=per_day.get(day, 0), study_time=per_day.get(day, 0) * seconds_per_review)
        for day in days
    ]

    sessions = len(_session_keys(window, tz))
    total_study_time = len(window) * seconds_per_review
    streaks = calculate_streaks((event.reviewed_at for event in window), last_day, tz)

    return TimeRangeStatistics(
        start_date=start,
        end_date=end,
        total_cards_reviewed=len(window),
        total_sessions=sessions,
        total_study_time=total_study_time,
        average_session_time=_average(total_study_time, sessions),
        days_studied=len(per_day),
        total_days_in_range=len(days),
        consistency_percentage=_percentage(len(per_day), len(days)),
        correct_reviews=distribution.correct,
        incorrect_reviews=distribution.incorrect,
        accuracy_percentage=distribution.accuracy,
        new_cards_introduced=sum(1 for event in window if event.previous_status is CardStatus.NEW),
        cards_matured=len(_matured_cards(window)),
        average_reviews_per_day=_average(len(window), len(days)),
        quality_distribution=distribution,
        daily_breakdown=breakdown,
        current_streak=streaks.current,
        longest_streak=streaks.longest,
    )


# ---------- User-wide statistics ----------


@dataclass(slots=True)
class UserStatistics:
    total_cards: int
    total_decks: int
    total_reviews: int
    studied_today: int
    studied_this_week: int
    studied_this_month: int
    current_streak: int
    longest_streak: int
    average_accuracy: float
    total_study_time: int
    cards_per_day: float
    best_day: Optional[str]


def best_study_day(events: Iterable[ReviewEvent], tz: tzinfo = timezone.utc) -> Optional[str]:
    """Weekday with the most reviews across all history.

    Ties go to the weekday that first appears in chronological event order.
    """
    counts: Dict[str, int] = {}
    for event in sorted(events, key=lambda item: ensure_aware(item.reviewed_at)):
        name = WEEKDAY_NAMES[to_calendar_date(event.reviewed_at, tz).weekday()]
        counts[name] = counts.get(name, 0) + 1
    if not counts:
        return None
    return max(counts, key=counts.__getitem__)


def _distinct_cards_since(events: Iterable[ReviewEvent], first_day: date, tz: tzinfo) -> int:
    return len({event.card_id for event in events if to_calendar_date(event.reviewed_at, tz) >= first_day})


def user_statistics(
    events: Sequence[ReviewEvent],
    total_cards: int,
    total_decks: int,
    now: Optional[datetime] = None,
    tz: tzinfo = timezone.utc,
    seconds_per_review: int = DEFAULT_SECONDS_PER_REVIEW,
) -> UserStatistics:
    """Aggregate a user's whole review history across all decks."""
    if now is None:
        now = datetime.now(timezone.utc)
    today = to_calendar_date(now, tz)
    distribution = QualityDistribution.from_events(events)
    streaks = calculate_streaks((event.reviewed_at for event in events), today, tz)

    month_start = today - timedelta(days=TimeRange.MONTH.days - 1)
    reviews_this_month = sum(1 for event in events if to_calendar_date(event.reviewed_at, tz) >= month_start)

    return UserStatistics(
        total_cards=total_cards,
        total_decks=total_decks,
        total_reviews=len(events),
        studied_today=_distinct_cards_since(events, today, tz),
        studied_this_week=_distinct_cards_since(events, today - timedelta(days=TimeRange.WEEK.days - 1), tz),
        studied_this_month=_distinct_cards_since(events, month_start, tz),
        current_streak=streaks.current,
        longest_streak=streaks.longest,
        average_accuracy=distribution.accuracy,
        total_study_time=len(events) * seconds_per_review,
        cards_per_day=_average(reviews_this_month, TimeRange.MONTH.days),
        best_day=best_study_day(events, tz),
    )


@dataclass(slots=True)
class DailyBreakdownItem:
    date: date
    day_of_week: str
    cards_reviewed: int
    accuracy: float
    study_time: int
    decks_studied: int


@dataclass(slots=True)
class DailyBreakdownSummary:
    total_cards_reviewed: int
    average_accuracy: float
    total_study_time: int
    days_studied: int
    total_days_in_range: int


@dataclass(slots=True)
class UserDailyBreakdown:
    start_date: date
    end_date: date
    daily_breakdown: List[DailyBreakdownItem]
    summary: DailyBreakdownSummary


def user_daily_breakdown(
    events: Sequence[ReviewEvent],
    start_date: date,
    end_date: date,
    tz: tzinfo = timezone.utc,
    seconds_per_review: int = DEFAULT_SECONDS_PER_REVIEW,
) -> UserDailyBreakdown:
    """Per-day activity between two calendar dates, inclusive, with empty days zero-filled."""
    by_day: Dict[date, List[ReviewEvent]] = defaultdict(list)
    for event in events:
        day = to_calendar_date(event.reviewed_at, tz)
        if start_date <= day <= end_date:
            by_day[day].append(event)

    items: List[DailyBreakdownItem] = []
    overall = QualityDistribution.from_events(event for day_events in by_day.values() for event in day_events)
    for day in _date_span(start_date, end_date):
        day_events = by_day.get(day, [])
        distribution = QualityDistribution.from_events(day_events)
        items.append(
            DailyBreakdownItem(
                date=day,
                day_of_week=WEEKDAY_NAMES[day.weekday()],
                cards_reviewed=len({event.card_id for event in day_events}),
                accuracy=distribution.accuracy,
                study_time=len(day_events) * seconds_per_review,
                decks_studied=len({event.deck_id for event in day_events if event.deck_id is not None}),
            )
        )

    summary = DailyBreakdownSummary(
        total_cards_reviewed=sum(item.cards_reviewed for item in items),
        average_accuracy=overall.accuracy,
        total_study_time=sum(item.study_time for item in items),
        days_studied=sum(1 for item in items if item.cards_reviewed),
        total_days_in_range=len(items),
    )
    return UserDailyBreakdown(
        start_date=start_date,
        end_date=end_date,
        daily_breakdown=items,
        summary=summary,
    )


# ---------- Recent activity ----------


@dataclass(frozen=True, slots=True)
class DeckInfo:
    """Identity and creation time of a deck, as needed by the activity feed."""

    id: int
    name: str
    created_at: datetime


@dataclass(slots=True)
class ActivityItem:
    id: int
    type: str
    date: datetime
    deck_id: int
    deck_name: str
    cards_reviewed: int = 0
    accuracy: float = 0.0
    study_time: int = 0
    new_cards: int = 0
    review_cards: int = 0


def recent_activity(
    events: Sequence[ReviewEvent],
    decks: Sequence[DeckInfo],
    limit: int = 10,
    tz: tzinfo = timezone.utc,
    seconds_per_review: int = DEFAULT_SECONDS_PER_REVIEW,
) -> List[ActivityItem]:
    """Build the activity feed: one entry per (deck, day) study session plus deck creations.

    Entries are sorted newest first, truncated to ``limit`` and numbered from 1.
    Reviews on decks not listed in ``decks`` are ignored.
    """
    deck_lookup = {deck.id: deck for deck in decks}

    sessions: Dict[Tuple[int, date], List[ReviewEvent]] = defaultdict(list)
    for event in events:
        if event.deck_id not in deck_lookup:
            continue
        sessions[(event.deck_id, to_calendar_date(event.reviewed_at, tz))].append(event)

    activities: List[ActivityItem] = []
    for (deck_id, _), session_events in sessions.items():
        distribution = QualityDistribution.from_events(session_events)
        new_cards = sum(1 for event in session_events if event.previous_status is CardStatus.NEW)
        activities.append(
            ActivityItem(
                id=0,
                type=ACTIVITY_STUDY,
                date=min(ensure_aware(event.reviewed_at) for event in session_events),
                deck_id=deck_id,
                deck_name=deck_lookup[deck_id].name,
                cards_reviewed=len(session_events),
                accuracy=distribution.accuracy,
                study_time=len(session_events) * seconds_per_review,
                new_cards=new_cards,
                review_cards=len(session_events) - new_cards,
            )
        )

    for deck in decks:
        activities.append(
            ActivityItem(
                id=0,
                type=ACTIVITY_DECK_CREATED,
                date=ensure_aware(deck.created_at),
                deck_id=deck.id,
                deck_name=deck.name,
            )
        )

    activities.sort(key=lambda item: item.date, reverse=True)
    selected = activities[: max(0, limit)]
    for index, item in enumerate(selected, start=1):
        item.id = index
    return selected


# ---------- Card and deck statistics ----------


@dataclass(slots=True)
class CardStatistics:
    total_reviews: int
    correct_reviews: int
    correct_percentage: float
    again_count: int
    hard_count: int
    good_count: int
    easy_count: int
    current_interval: int
    ease_factor: float
    status: CardStatus
    next_review_date: Optional[datetime]
    last_review_date: Optional[datetime]
    retention_rate: float
    card_age: int


def card_statistics(
    events: Sequence[ReviewEvent],
    now: Optional[datetime] = None,
    created_at: Optional[datetime] = None,
) -> CardStatistics:
    """Review history summary for a single card."""
    if now is None:
        now = datetime.now(timezone.utc)
    ordered = sorted(events, key=lambda event: ensure_aware(event.reviewed_at))
    latest = ordered[-1] if ordered else None
    state = current_state(latest)
    distribution = QualityDistribution.from_events(ordered)

    card_age = 0
    if created_at is not None:
        card_age = max(0, (ensure_aware(now) - ensure_aware(created_at)).days)

    return CardStatistics(
        total_reviews=distribution.total,
        correct_reviews=distribution.correct,
        correct_percentage=distribution.accuracy,
        again_count=distribution.again,
        hard_count=distribution.hard,
        good_count=distribution.good,
        easy_count=distribution.easy,
        current_interval=state.interval,
        ease_factor=state.ease_factor,
        status=state.status,
        next_review_date=state.next_review_date,
        last_review_date=latest.reviewed_at if latest else None,
        retention_rate=_percentage(distribution.total - distribution.again, distribution.total),
        card_age=card_age,
    )


@dataclass(slots=True)
class DeckStatistics:
    total_cards: int
    new_cards: int
    learning_cards: int
    review_cards: int
    relearning_cards: int
    mature_cards: int
    young_cards: int
    cards_due_today: int
    cards_due_next_week: int
    retention_rate: float
    average_ease_factor: float
    average_interval: float
    total_reviews: int
    correct_percentage: float
    last_studied_date: Optional[datetime]
    consecutive_days_studied: int
    quality_distribution: QualityDistribution
    average_reviews_per_day: float
    estimated_review_time: int
    completion_percentage: float
    maturity_percentage: float

    @property
    def card_distribution(self) -> Dict[str, int]:
        return {
            CardStatus.NEW.value: self.new_cards,
            CardStatus.LEARNING.value: self.learning_cards,
            CardStatus.REVIEW.value: self.review_cards,
            CardStatus.RELEARNING.value: self.relearning_cards,
        }


def deck_statistics(
    cards: Sequence[CardWithLatestReview],
    events: Sequence[ReviewEvent],
    now: Optional[datetime] = None,
    tz: tzinfo = timezone.utc,
    seconds_per_review: int = DEFAULT_SECONDS_PER_REVIEW,
) -> DeckStatistics:
    """Card-state distribution, maturity and workload for one deck.

    ``cards`` carry each card's latest event; ``events`` is the deck's full
    review history.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    today = to_calendar_date(now, tz)
    end_of_today = _end_of_day(today, tz)

    states = [current_state(entry.latest) for entry in cards]
    by_status: Dict[CardStatus, int] = defaultdict(int)
    for state in states:
        by_status[state.status] += 1

    review_states = [state for state in states if state.status is CardStatus.REVIEW]
    mature = sum(1 for state in review_states if state.interval >= MATURE_INTERVAL_DAYS)
    due_today = sum(1 for state in states if state.is_due(end_of_today))
    due_next_week = sum(1 for state in states if state.is_due(end_of_today + timedelta(days=7)))

    distribution = QualityDistribution.from_events(events)
    dates = study_dates((event.reviewed_at for event in events), tz)
    month_start = today - timedelta(days=TimeRange.MONTH.days - 1)
    recent_reviews = sum(1 for event in events if to_calendar_date(event.reviewed_at, tz) >= month_start)

    total_cards = len(states)
    return DeckStatistics(
        total_cards=total_cards,
        new_cards=by_status[CardStatus.NEW],
        learning_cards=by_status[CardStatus.LEARNING],
        review_cards=by_status[CardStatus.REVIEW],
        relearning_cards=by_status[CardStatus.RELEARNING],
        mature_cards=mature,
        young_cards=len(review_states) - mature,
        cards_due_today=due_today,
        cards_due_next_week=due_next_week,
        retention_rate=_percentage(distribution.total - distribution.again, distribution.total),
        average_ease_factor=_average(sum(state.ease_factor for state in states), total_cards, digits=2),
        average_interval=_average(sum(state.interval for state in review_states), len(review_states)),
        total_reviews=len(events),
        correct_percentage=distribution.accuracy,
        last_studied_date=max((ensure_aware(event.reviewed_at) for event in events), default=None),
        consecutive_days_studied=current_streak(dates, today),
        quality_distribution=distribution,
        average_reviews_per_day=_average(recent_reviews, TimeRange.MONTH.days),
        estimated_review_time=math.ceil(due_today * seconds_per_review / 60),
        completion_percentage=_percentage(total_cards - by_status[CardStatus.NEW], total_cards),
        maturity_percentage=_percentage(mature, total_cards),
    )
