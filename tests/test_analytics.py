from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

import pytest

from src.study import analytics
from src.study.analytics import DeckInfo, TimeRange
from src.study.models import CardStatus, CardWithLatestReview, Quality, ReviewEvent


def _at(day: int, hour: int = 12, minute: int = 0, month: int = 1, year: int = 2024) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def _event(
    card_id: int,
    reviewed_at: datetime,
    quality: Quality = Quality.GOOD,
    previous: CardStatus = CardStatus.NEW,
    status: CardStatus = CardStatus.LEARNING,
    deck_id: Optional[int] = 1,
    interval: int = 1,
    ease_factor: float = 2.5,
    next_review_date: Optional[datetime] = None,
) -> ReviewEvent:
    return ReviewEvent(
        card_id=card_id,
        quality=quality,
        repetitions=1,
        interval=interval,
        ease_factor=ease_factor,
        next_review_date=next_review_date or reviewed_at + timedelta(days=interval),
        reviewed_at=reviewed_at,
        previous_status=previous,
        status=status,
        deck_id=deck_id,
    )


def test_empty_inputs_produce_zeroed_statistics() -> None:
    session = analytics.session_statistics([], _at(1, 10), _at(1, 11))
    time_range = analytics.time_range_statistics([], _at(1, 0), _at(3, 23))
    user = analytics.user_statistics([], total_cards=0, total_decks=0, now=_at(3))

    assert session.accuracy_percentage == 0
    assert session.average_time_per_card == 0
    assert time_range.accuracy_percentage == 0
    assert time_range.average_session_time == 0
    assert time_range.days_studied == 0
    assert [day.review_count for day in time_range.daily_breakdown] == [0, 0, 0]
    assert user.average_accuracy == 0
    assert user.best_day is None
    assert user.current_streak == 0


def test_session_statistics_classify_by_prior_status() -> None:
    events = [
        _event(1, _at(1, 10, 1), Quality.GOOD, previous=CardStatus.NEW),
        _event(2, _at(1, 10, 5), Quality.AGAIN, previous=CardStatus.LEARNING),
        _event(3, _at(1, 10, 10), Quality.EASY, previous=CardStatus.REVIEW, status=CardStatus.REVIEW),
        _event(4, _at(1, 10, 20), Quality.HARD, previous=CardStatus.RELEARNING, status=CardStatus.RELEARNING),
        _event(5, _at(1, 11, 0), Quality.GOOD),
    ]

    stats = analytics.session_statistics(events, _at(1, 10), _at(1, 10, 30), deck_id=1, deck_name="Greek")

    assert stats.total_cards_reviewed == 4
    assert stats.new_cards_introduced == 1
    assert stats.learning_cards_reviewed == 2
    assert stats.review_cards_reviewed == 1
    assert stats.correct_answers == 2
    assert stats.incorrect_answers == 2
    assert stats.accuracy_percentage == 50.0
    assert stats.total_study_time == 1800
    assert stats.average_time_per_card == 450.0
    assert stats.quality_distribution.as_dict() == {"Again": 1, "Hard": 1, "Good": 1, "Easy": 1}
    assert stats.deck_name == "Greek"


def test_time_range_statistics_bucket_by_calendar_date() -> None:
    events = [
        _event(1, _at(1, 9), Quality.GOOD),
        _event(2, _at(1, 9, 5), Quality.AGAIN),
        _event(1, _at(2, 9), Quality.GOOD, previous=CardStatus.LEARNING, status=CardStatus.REVIEW, interval=6),
        _event(3, _at(2, 18), Quality.EASY, deck_id=2),
        _event(1, _at(3, 9), Quality.GOOD, previous=CardStatus.REVIEW, status=CardStatus.REVIEW, interval=15),
    ]
    start = datetime.combine(date(2024, 1, 1), time.min, tzinfo=timezone.utc)
    end = datetime.combine(date(2024, 1, 7), time.max, tzinfo=timezone.utc)

    stats = analytics.time_range_statistics(events, start, end)

    assert stats.total_cards_reviewed == 5
    assert stats.total_sessions == 4
    assert stats.total_study_time == 50
    assert stats.average_session_time == 12.5
    assert stats.days_studied == 3
    assert stats.total_days_in_range == 7
    assert stats.consistency_percentage == 42.9
    assert stats.correct_reviews == 4
    assert stats.incorrect_reviews == 1
    assert stats.accuracy_percentage == 80.0
    assert stats.new_cards_introduced == 3
    assert stats.cards_matured == 1
    assert stats.average_reviews_per_day == 0.7
    assert stats.daily_breakdown[0].date == date(2024, 1, 1)
    assert stats.daily_breakdown[0].review_count == 2
    assert stats.daily_breakdown[0].study_time == 20
    assert stats.daily_breakdown[4].review_count == 0
    assert stats.current_streak == 0  # anchored at Jan 7, last study on Jan 3
    assert stats.longest_streak == 3


def test_resolve_time_range_covers_trailing_calendar_days() -> None:
    start, end = analytics.resolve_time_range(TimeRange.WEEK, now=_at(10))

    assert start == datetime(2024, 1, 4, tzinfo=timezone.utc)
    assert end.date() == date(2024, 1, 10)
    assert TimeRange.MONTH.days == 30
    assert TimeRange.YEAR.days == 365


def test_user_statistics_count_distinct_cards_per_window() -> None:
    events = [
        _event(5, _at(1, month=12, year=2023)),
        _event(4, _at(20, month=12, year=2023)),
        _event(3, _at(8)),
        _event(1, _at(10, 8)),
        _event(1, _at(10, 9), Quality.AGAIN),
        _event(2, _at(10, 10)),
    ]

    stats = analytics.user_statistics(events, total_cards=12, total_decks=2, now=_at(10, 20))

    assert stats.total_cards == 12
    assert stats.total_decks == 2
    assert stats.total_reviews == 6
    assert stats.studied_today == 2
    assert stats.studied_this_week == 3
    assert stats.studied_this_month == 4
    assert stats.current_streak == 1
    assert stats.longest_streak == 1
    assert stats.average_accuracy == 83.3
    assert stats.total_study_time == 60
    assert stats.cards_per_day == 0.2
    assert stats.best_day == "Wednesday"


def test_best_day_ties_go_to_first_weekday_seen() -> None:
    events = [
        _event(1, _at(3)),  # Wednesday
        _event(2, _at(2)),  # Tuesday
    ]

    assert analytics.best_study_day(events) == "Tuesday"
    assert analytics.best_study_day([]) is None


def test_daily_breakdown_fills_empty_days() -> None:
    events = [
        _event(1, _at(1, 8), Quality.GOOD, deck_id=1),
        _event(1, _at(1, 9), Quality.AGAIN, deck_id=1),
        _event(2, _at(1, 10), Quality.GOOD, deck_id=2),
        _event(3, _at(3, 10), Quality.EASY, deck_id=1),
        _event(4, _at(5, 10), Quality.AGAIN, deck_id=1),
    ]

    breakdown = analytics.user_daily_breakdown(events, date(2024, 1, 1), date(2024, 1, 3))

    first, second, third = breakdown.daily_breakdown
    assert first.day_of_week == "Monday"
    assert first.cards_reviewed == 2
    assert first.accuracy == 66.7
    assert first.study_time == 30
    assert first.decks_studied == 2
    assert second.cards_reviewed == 0
    assert second.accuracy == 0
    assert third.cards_reviewed == 1
    assert breakdown.summary.total_cards_reviewed == 3
    assert breakdown.summary.average_accuracy == 75.0
    assert breakdown.summary.total_study_time == 40
    assert breakdown.summary.days_studied == 2
    assert breakdown.summary.total_days_in_range == 3


def test_recent_activity_merges_sessions_and_deck_creation() -> None:
    decks = [
        DeckInfo(id=1, name="Greek", created_at=_at(1, 8)),
        DeckInfo(id=2, name="Spanish", created_at=_at(2, 8)),
    ]
    events = [
        _event(1, _at(1, 9), Quality.GOOD, deck_id=1),
        _event(2, _at(1, 9, 5), Quality.AGAIN, deck_id=1),
        _event(3, _at(3, 10), Quality.GOOD, previous=CardStatus.REVIEW, deck_id=2),
        _event(9, _at(4, 10), Quality.GOOD, deck_id=99),
    ]

    feed = analytics.recent_activity(events, decks)

    assert [(item.id, item.type, item.deck_id) for item in feed] == [
        (1, "study", 2),
        (2, "deck_created", 2),
        (3, "study", 1),
        (4, "deck_created", 1),
    ]
    greek_session = feed[2]
    assert greek_session.date == _at(1, 9)
    assert greek_session.cards_reviewed == 2
    assert greek_session.accuracy == 50.0
    assert greek_session.study_time == 20
    assert greek_session.new_cards == 2
    assert greek_session.review_cards == 0
    assert len(analytics.recent_activity(events, decks, limit=2)) == 2


def test_card_statistics_reflect_latest_event() -> None:
    events = [
        _event(1, _at(3), Quality.GOOD, previous=CardStatus.LEARNING, status=CardStatus.REVIEW, interval=6),
        _event(1, _at(1), Quality.GOOD),
        _event(1, _at(2), Quality.AGAIN, previous=CardStatus.LEARNING, interval=0),
    ]

    stats = analytics.card_statistics(events, now=_at(10), created_at=_at(25, month=12, year=2023))

    assert stats.total_reviews == 3
    assert stats.correct_reviews == 2
    assert stats.correct_percentage == 66.7
    assert stats.retention_rate == 66.7
    assert stats.again_count == 1
    assert stats.current_interval == 6
    assert stats.status is CardStatus.REVIEW
    assert stats.last_review_date == _at(3)
    assert stats.card_age == 16


def test_card_statistics_for_unreviewed_card() -> None:
    stats = analytics.card_statistics([], now=_at(10))

    assert stats.total_reviews == 0
    assert stats.status is CardStatus.NEW
    assert stats.ease_factor == 2.5
    assert stats.next_review_date is None
    assert stats.retention_rate == 0


def test_deck_statistics_partition_cards_by_state() -> None:
    now = _at(10)
    cards = [
        CardWithLatestReview(card=1),
        CardWithLatestReview(
            card=2,
            latest=_event(2, _at(9), next_review_date=datetime(2024, 1, 10, tzinfo=timezone.utc)),
        ),
        CardWithLatestReview(
            card=3,
            latest=_event(
                3, _at(6), status=CardStatus.REVIEW, interval=30, ease_factor=2.6,
                next_review_date=datetime(2024, 2, 5, tzinfo=timezone.utc),
            ),
        ),
        CardWithLatestReview(
            card=4,
            latest=_event(
                4, _at(9), status=CardStatus.REVIEW, interval=5,
                next_review_date=datetime(2024, 1, 14, tzinfo=timezone.utc),
            ),
        ),
        CardWithLatestReview(
            card=5,
            latest=_event(
                5, _at(9), Quality.AGAIN, status=CardStatus.RELEARNING, interval=0, ease_factor=2.2,
                next_review_date=datetime(2024, 1, 9, tzinfo=timezone.utc),
            ),
        ),
    ]
    events = [
        _event(2, _at(9, 8)),
        _event(5, _at(10, 8), Quality.AGAIN),
        _event(4, _at(10, 9)),
    ]

    stats = analytics.deck_statistics(cards, events, now=now)

    assert stats.total_cards == 5
    assert stats.card_distribution == {"new": 1, "learning": 1, "review": 2, "relearning": 1}
    assert stats.mature_cards == 1
    assert stats.young_cards == 1
    assert stats.cards_due_today == 3
    assert stats.cards_due_next_week == 4
    assert stats.average_ease_factor == pytest.approx(2.46)
    assert stats.average_interval == 17.5
    assert stats.total_reviews == 3
    assert stats.correct_percentage == 66.7
    assert stats.retention_rate == 66.7
    assert stats.last_studied_date == _at(10, 9)
    assert stats.consecutive_days_studied == 2
    assert stats.average_reviews_per_day == 0.1
    assert stats.estimated_review_time == 1
    assert stats.completion_percentage == 80.0
    assert stats.maturity_percentage == 20.0
