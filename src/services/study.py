"""Review submission and study-session queries backed by the database."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone, tzinfo
from typing import Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db import Card
from src.db.reviews import (
    ReviewSubmission,
    count_cards,
    get_card,
    get_cards_with_latest_review,
    get_deck,
    get_random_cards,
    get_review_events,
    get_user_decks,
    load_review_states,
    record_practice_reviews,
    record_reviews,
    to_deck_info,
)
from src.study import analytics, srs
from src.study.analytics import (
    DEFAULT_SECONDS_PER_REVIEW,
    ActivityItem,
    CardStatistics,
    DeckStatistics,
    SessionStatistics,
    TimeRange,
    TimeRangeStatistics,
    UserDailyBreakdown,
    UserStatistics,
)
from src.study.due import DEFAULT_CRAM_LIMIT, select_due
from src.study.models import DEFAULT_POLICY, Quality, ReviewEvent, ReviewState, SchedulerPolicy


LOGGER = logging.getLogger(__name__)

DEFAULT_ACTIVITY_LIMIT = 10


class StudyService:
    """Loads review history, runs the scheduling and analytics core, and persists results."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        policy: SchedulerPolicy = DEFAULT_POLICY,
        tz: tzinfo = timezone.utc,
        seconds_per_review: int = DEFAULT_SECONDS_PER_REVIEW,
        cram_limit: int = DEFAULT_CRAM_LIMIT,
    ) -> None:
        self._session_factory = session_factory
        self._policy = policy
        self._tz = tz
        self._seconds_per_review = seconds_per_review
        self._cram_limit = cram_limit

    async def submit_reviews(
        self,
        submissions: Sequence[ReviewSubmission],
        reviewed_at: Optional[datetime] = None,
    ) -> List[ReviewEvent]:
        """Schedule a batch of rated cards and persist the resulting events atomically."""
        if not submissions:
            return []

        async with self._session_factory() as session:
            async with session.begin():
                events = await record_reviews(
                    session, submissions, now=reviewed_at, policy=self._policy, tz=self._tz
                )

        LOGGER.info("Recorded %s review(s) for %s card(s).", len(events), len({e.card_id for e in events}))
        return events

    async def preview_card(self, card_id: int, now: Optional[datetime] = None) -> Dict[Quality, ReviewState]:
        """Return the state each rating would produce for a card, without saving anything."""
        if now is None:
            now = datetime.now(timezone.utc)
        async with self._session_factory() as session:
            states = await load_review_states(session, [card_id])
        return srs.preview(states[card_id], now, self._policy, self._tz)

    async def get_due_cards(
        self,
        deck_id: int,
        limit: Optional[int] = None,
        as_of: Optional[datetime] = None,
    ) -> List[Card]:
        if as_of is None:
            as_of = datetime.now(timezone.utc)
        async with self._session_factory() as session:
            await get_deck(session, deck_id)
            candidates = await get_cards_with_latest_review(session, deck_id)
        due = select_due(candidates, as_of, limit)
        LOGGER.debug("Deck %s has %s due card(s) out of %s.", deck_id, len(due), len(candidates))
        return due

    async def get_cram_cards(
        self,
        user_id: int,
        deck_id: int,
        limit: Optional[int] = None,
    ) -> List[Card]:
        """Random practice sample from a deck the user owns; due dates are ignored."""
        async with self._session_factory() as session:
            await get_deck(session, deck_id, user_id=user_id)
            return await get_random_cards(session, deck_id, self._cram_limit if limit is None else limit)

    async def record_practice(
        self,
        submissions: Sequence[ReviewSubmission],
        reviewed_at: Optional[datetime] = None,
    ) -> int:
        """Store cram receipts without touching any card's schedule."""
        async with self._session_factory() as session:
            async with session.begin():
                return await record_practice_reviews(session, submissions, now=reviewed_at)

    async def get_session_statistics(
        self,
        deck_id: int,
        start: datetime,
        end: datetime,
    ) -> SessionStatistics:
        async with self._session_factory() as session:
            deck = await get_deck(session, deck_id)
            events = await get_review_events(session, deck_ids=[deck_id], start=start, end=end)
        return analytics.session_statistics(events, start, end, deck_id=deck.id, deck_name=deck.title)

    async def get_time_range_statistics(
        self,
        user_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        time_range: TimeRange = TimeRange.WEEK,
        deck_id: Optional[int] = None,
    ) -> TimeRangeStatistics:
        """Statistics over an explicit window, or the named trailing range when none is given."""
        if start is None or end is None:
            start, end = analytics.resolve_time_range(time_range, tz=self._tz)

        async with self._session_factory() as session:
            if deck_id is not None:
                deck_ids = [(await get_deck(session, deck_id, user_id=user_id)).id]
            else:
                deck_ids = [deck.id for deck in await get_user_decks(session, user_id)]
            events = await get_review_events(session, deck_ids=deck_ids, start=start, end=end)

        return analytics.time_range_statistics(events, start, end, self._tz, self._seconds_per_review)

    async def get_user_statistics(self, user_id: int, now: Optional[datetime] = None) -> UserStatistics:
        async with self._session_factory() as session:
            decks = await get_user_decks(session, user_id)
            deck_ids = [deck.id for deck in decks]
            total_cards = await count_cards(session, deck_ids)
            events = await get_review_events(session, deck_ids=deck_ids)

        return analytics.user_statistics(
            events,
            total_cards=total_cards,
            total_decks=len(decks),
            now=now,
            tz=self._tz,
            seconds_per_review=self._seconds_per_review,
        )

    async def get_user_daily_breakdown(
        self,
        user_id: int,
        start_date: date,
        end_date: date,
    ) -> UserDailyBreakdown:
        start, _ = analytics.day_bounds(start_date, self._tz)
        _, end = analytics.day_bounds(end_date, self._tz)
        async with self._session_factory() as session:
            deck_ids = [deck.id for deck in await get_user_decks(session, user_id)]
            events = await get_review_events(session, deck_ids=deck_ids, start=start, end=end)
        return analytics.user_daily_breakdown(
            events, start_date, end_date, self._tz, self._seconds_per_review
        )

    async def get_recent_activity(
        self,
        user_id: int,
        limit: int = DEFAULT_ACTIVITY_LIMIT,
    ) -> List[ActivityItem]:
        async with self._session_factory() as session:
            decks = await get_user_decks(session, user_id)
            events = await get_review_events(session, deck_ids=[deck.id for deck in decks])
        return analytics.recent_activity(
            events,
            [to_deck_info(deck) for deck in decks],
            limit=limit,
            tz=self._tz,
            seconds_per_review=self._seconds_per_review,
        )

    async def get_card_statistics(self, card_id: int, now: Optional[datetime] = None) -> CardStatistics:
        async with self._session_factory() as session:
            card = await get_card(session, card_id)
            events = await get_review_events(session, card_id=card_id)
        return analytics.card_statistics(events, now=now, created_at=card.created_at)

    async def get_deck_statistics(self, deck_id: int, now: Optional[datetime] = None) -> DeckStatistics:
        async with self._session_factory() as session:
            await get_deck(session, deck_id)
            cards = await get_cards_with_latest_review(session, deck_id)
            events = await get_review_events(session, deck_ids=[deck_id])
        return analytics.deck_statistics(
            cards, events, now=now, tz=self._tz, seconds_per_review=self._seconds_per_review
        )
