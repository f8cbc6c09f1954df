"""Persistence helpers for decks, cards and their review history.

Functions here never open or commit transactions; callers wrap them in
``session.begin()`` so that a batch of writes is applied all-or-nothing.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.study import srs
from src.study.analytics import DeckInfo
from src.study.models import (
    DEFAULT_POLICY,
    CardStatus,
    CardWithLatestReview,
    Quality,
    ReviewEvent,
    ReviewState,
    SchedulerPolicy,
    current_state,
)
from src.study.streaks import ensure_aware

from . import Card, CardReview, Deck, PracticeReview


class CardNotFoundError(LookupError):
    """Raised when one or more referenced cards do not exist."""

    def __init__(self, card_ids: Iterable[int]) -> None:
        self.card_ids = sorted(set(card_ids))
        super().__init__(f"Cards not found: {', '.join(str(card_id) for card_id in self.card_ids)}")


class DeckNotFoundError(LookupError):
    """Raised when a deck does not exist or is not owned by the requesting user."""

    def __init__(self, deck_id: int) -> None:
        self.deck_id = deck_id
        super().__init__(f"Deck {deck_id} not found")


@dataclass(slots=True)
class ReviewSubmission:
    """One rated card inside a submitted batch."""

    card_id: int
    quality: Quality


def _as_utc(moment: datetime) -> datetime:
    return ensure_aware(moment).astimezone(timezone.utc)


def to_review_event(row: CardReview, deck_id: Optional[int] = None) -> ReviewEvent:
    """Convert a ledger row into the immutable domain event."""
    return ReviewEvent(
        card_id=row.card_id,
        quality=Quality(row.quality),
        repetitions=row.repetitions,
        interval=row.interval,
        ease_factor=row.ease_factor,
        next_review_date=ensure_aware(row.next_review_at),
        reviewed_at=ensure_aware(row.reviewed_at),
        previous_status=CardStatus(row.previous_status),
        status=CardStatus(row.status),
        deck_id=deck_id,
    )


def to_deck_info(deck: Deck) -> DeckInfo:
    return DeckInfo(id=deck.id, name=deck.title, created_at=ensure_aware(deck.created_at))


async def get_deck(session: AsyncSession, deck_id: int, user_id: Optional[int] = None) -> Deck:
    """Fetch a deck, optionally checking ownership; raise when it is not visible."""
    stmt = select(Deck).where(Deck.id == deck_id)
    if user_id is not None:
        stmt = stmt.where(Deck.user_id == user_id)
    result = await session.execute(stmt)
    deck = result.scalars().first()
    if deck is None:
        raise DeckNotFoundError(deck_id)
    return deck


async def get_user_decks(session: AsyncSession, user_id: int) -> List[Deck]:
    stmt = select(Deck).where(Deck.user_id == user_id).order_by(Deck.id)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def count_cards(session: AsyncSession, deck_ids: Sequence[int]) -> int:
    if not deck_ids:
        return 0
    stmt = select(func.count(Card.id)).where(Card.deck_id.in_(deck_ids))
    result = await session.execute(stmt)
    return int(result.scalar_one())


async def get_card(session: AsyncSession, card_id: int) -> Card:
    card = await session.get(Card, card_id)
    if card is None:
        raise CardNotFoundError([card_id])
    return card


async def get_latest_reviews(
    session: AsyncSession, card_ids: Sequence[int]
) -> Dict[int, CardReview]:
    """Return the most recent ledger row for each of the given cards."""
    if not card_ids:
        return {}

    stmt = (
        select(CardReview)
        .where(CardReview.card_id.in_(card_ids))
        .order_by(CardReview.card_id, CardReview.reviewed_at, CardReview.id)
    )
    result = await session.execute(stmt)
    latest: Dict[int, CardReview] = {}
    for row in result.scalars():
        latest[row.card_id] = row
    return latest


async def load_review_states(
    session: AsyncSession, card_ids: Sequence[int]
) -> Dict[int, ReviewState]:
    """Load the current scheduling state for each card, defaults for never-reviewed cards."""
    unique_ids = list(dict.fromkeys(card_ids))
    if not unique_ids:
        return {}

    result = await session.execute(select(Card.id).where(Card.id.in_(unique_ids)))
    existing = set(result.scalars().all())
    missing = [card_id for card_id in unique_ids if card_id not in existing]
    if missing:
        raise CardNotFoundError(missing)

    latest = await get_latest_reviews(session, unique_ids)
    return {
        card_id: current_state(to_review_event(latest[card_id]) if card_id in latest else None)
        for card_id in unique_ids
    }


async def record_reviews(
    session: AsyncSession,
    submissions: Sequence[ReviewSubmission],
    now: Optional[datetime] = None,
    policy: SchedulerPolicy = DEFAULT_POLICY,
    tz: tzinfo = timezone.utc,
) -> List[ReviewEvent]:
    """Schedule and append one ledger row per submission.

    A card rated twice in the same batch is scheduled twice in order, each
    time from the state produced by the previous rating. Due dates are
    computed on the learner's calendar in ``tz`` and stored as UTC.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    reviewed_at = _as_utc(now)

    states = await load_review_states(session, [item.card_id for item in submissions])

    events: List[ReviewEvent] = []
    for item in submissions:
        previous = states[item.card_id]
        state = srs.apply(previous, item.quality, reviewed_at, policy, tz)
        event = ReviewEvent.record(item.card_id, item.quality, previous, state, reviewed_at)
        session.add(
            CardReview(
                card_id=event.card_id,
                quality=event.quality.value,
                repetitions=event.repetitions,
                interval=event.interval,
                ease_factor=event.ease_factor,
                status=event.status.value,
                previous_status=event.previous_status.value,
                next_review_at=_as_utc(event.next_review_date),
                reviewed_at=event.reviewed_at,
            )
        )
        states[item.card_id] = state
        events.append(event)

    await session.flush()
    return events


async def record_practice_reviews(
    session: AsyncSession,
    submissions: Sequence[ReviewSubmission],
    now: Optional[datetime] = None,
) -> int:
    """Store cram receipts outside the scheduling ledger."""
    if now is None:
        now = datetime.now(timezone.utc)
    if not submissions:
        return 0

    card_ids = list(dict.fromkeys(item.card_id for item in submissions))
    result = await session.execute(select(Card.id).where(Card.id.in_(card_ids)))
    existing = set(result.scalars().all())
    missing = [card_id for card_id in card_ids if card_id not in existing]
    if missing:
        raise CardNotFoundError(missing)

    reviewed_at = _as_utc(now)
    for item in submissions:
        session.add(
            PracticeReview(card_id=item.card_id, quality=item.quality.value, reviewed_at=reviewed_at)
        )
    await session.flush()
    return len(submissions)


async def get_deck_cards(session: AsyncSession, deck_id: int) -> List[Card]:
    stmt = select(Card).where(Card.deck_id == deck_id).order_by(Card.id)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_cards_with_latest_review(
    session: AsyncSession, deck_id: int
) -> List[CardWithLatestReview[Card]]:
    """Pair every card in a deck with its most recent review event, ordered by card id."""
    cards = await get_deck_cards(session, deck_id)
    latest = await get_latest_reviews(session, [card.id for card in cards])
    return [
        CardWithLatestReview(
            card=card,
            latest=to_review_event(latest[card.id], deck_id=deck_id) if card.id in latest else None,
        )
        for card in cards
    ]


async def get_random_cards(session: AsyncSession, deck_id: int, limit: int) -> List[Card]:
    """Return up to ``limit`` random cards from a deck, regardless of scheduling."""
    if limit <= 0:
        return []
    stmt = select(Card).where(Card.deck_id == deck_id).order_by(func.random()).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_review_events(
    session: AsyncSession,
    *,
    card_id: Optional[int] = None,
    deck_ids: Optional[Sequence[int]] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[ReviewEvent]:
    """Load review events in chronological order, tagged with their deck."""
    stmt = select(CardReview, Card.deck_id).join(Card, Card.id == CardReview.card_id)
    if card_id is not None:
        stmt = stmt.where(CardReview.card_id == card_id)
    if deck_ids is not None:
        if not deck_ids:
            return []
        stmt = stmt.where(Card.deck_id.in_(deck_ids))
    if start is not None:
        stmt = stmt.where(CardReview.reviewed_at >= _as_utc(start))
    if end is not None:
        stmt = stmt.where(CardReview.reviewed_at <= _as_utc(end))
    stmt = stmt.order_by(CardReview.reviewed_at, CardReview.id)

    result = await session.execute(stmt)
    return [to_review_event(row, deck_id=deck_id) for row, deck_id in result.all()]
