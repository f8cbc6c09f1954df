"""Domain types shared by the scheduler, due-set selector and analytics."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Generic, Optional, TypeVar

from src.study.streaks import ensure_aware


DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3


class Quality(str, Enum):
    """Self-rated recall difficulty for a single review."""

    AGAIN = "Again"
    HARD = "Hard"
    GOOD = "Good"
    EASY = "Easy"

    @property
    def grade(self) -> int:
        return _GRADES[self]

    @property
    def is_correct(self) -> bool:
        return self in (Quality.GOOD, Quality.EASY)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Quality):
            return NotImplemented
        return self.grade < other.grade

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Quality):
            return NotImplemented
        return self.grade <= other.grade

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Quality):
            return NotImplemented
        return self.grade > other.grade

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Quality):
            return NotImplemented
        return self.grade >= other.grade


_GRADES = {
    Quality.AGAIN: 0,
    Quality.HARD: 1,
    Quality.GOOD: 2,
    Quality.EASY: 3,
}


class CardStatus(str, Enum):
    """Coarse lifecycle stage of a card."""

    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"


@dataclass(frozen=True, slots=True)
class SchedulerPolicy:
    """Tunable knobs of the scheduling rule.

    ``pass_threshold`` is the lowest quality that still counts as a successful
    recall. With the default (``Good``) both ``Again`` and ``Hard`` are lapses;
    setting it to ``Hard`` makes ``Hard`` a reduced-credit pass as in classic
    SM-2.
    """

    pass_threshold: Quality = Quality.GOOD
    min_ease_factor: float = MIN_EASE_FACTOR
    graduating_repetitions: int = 2
    max_interval_days: Optional[int] = None

    def __post_init__(self) -> None:
        if self.pass_threshold is Quality.AGAIN:
            raise ValueError("pass_threshold must be Hard, Good or Easy.")
        if self.graduating_repetitions < 1:
            raise ValueError("graduating_repetitions must be at least 1.")
        if self.max_interval_days is not None and self.max_interval_days < 1:
            raise ValueError("max_interval_days must be positive when set.")


DEFAULT_POLICY = SchedulerPolicy()


@dataclass(frozen=True, slots=True)
class ReviewState:
    """Scheduling-relevant state of a card."""

    repetitions: int = 0
    interval: int = 0
    ease_factor: float = DEFAULT_EASE_FACTOR
    status: CardStatus = CardStatus.NEW
    next_review_date: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.repetitions < 0:
            raise ValueError(f"repetitions must be non-negative, got {self.repetitions}.")
        if self.interval < 0:
            raise ValueError(f"interval must be non-negative, got {self.interval}.")
        if self.ease_factor < MIN_EASE_FACTOR:
            raise ValueError(f"ease_factor must be at least {MIN_EASE_FACTOR}, got {self.ease_factor}.")

    @classmethod
    def initial(cls) -> ReviewState:
        return cls()

    def is_due(self, as_of: datetime) -> bool:
        if self.next_review_date is None:
            return True
        return ensure_aware(self.next_review_date) <= ensure_aware(as_of)


@dataclass(frozen=True, slots=True)
class ReviewEvent:
    """Immutable record of one scheduling review.

    Carries the full resulting state so that the card's current
    ``ReviewState`` can be rebuilt from its latest event alone.
    """

    card_id: int
    quality: Quality
    repetitions: int
    interval: int
    ease_factor: float
    next_review_date: datetime
    reviewed_at: datetime
    previous_status: CardStatus
    status: CardStatus
    deck_id: Optional[int] = None

    @classmethod
    def record(
        cls,
        card_id: int,
        quality: Quality,
        previous: ReviewState,
        state: ReviewState,
        reviewed_at: datetime,
        deck_id: Optional[int] = None,
    ) -> ReviewEvent:
        if state.next_review_date is None:
            raise ValueError("A scheduled state must carry a next review date.")
        return cls(
            card_id=card_id,
            quality=quality,
            repetitions=state.repetitions,
            interval=state.interval,
            ease_factor=state.ease_factor,
            next_review_date=state.next_review_date,
            reviewed_at=reviewed_at,
            previous_status=previous.status,
            status=state.status,
            deck_id=deck_id,
        )

    def to_state(self) -> ReviewState:
        return ReviewState(
            repetitions=self.repetitions,
            interval=self.interval,
            ease_factor=self.ease_factor,
            status=self.status,
            next_review_date=self.next_review_date,
        )


def current_state(latest: Optional[ReviewEvent]) -> ReviewState:
    """Return the state derived from a card's latest event, or the defaults."""
    if latest is None:
        return ReviewState.initial()
    return latest.to_state()


CardT = TypeVar("CardT")


@dataclass(frozen=True, slots=True)
class CardWithLatestReview(Generic[CardT]):
    """A card paired with its most recent scheduling event, if any."""

    card: CardT
    latest: Optional[ReviewEvent] = None
