"""Pure scheduling and analytics core for flashcard study."""

from .due import select_due
from .models import (
    CardStatus,
    CardWithLatestReview,
    Quality,
    ReviewEvent,
    ReviewState,
    SchedulerPolicy,
    current_state,
)
from .srs import apply, preview
from .streaks import StreakSummary, calculate_streaks

__all__ = [
    "CardStatus",
    "CardWithLatestReview",
    "Quality",
    "ReviewEvent",
    "ReviewState",
    "SchedulerPolicy",
    "StreakSummary",
    "apply",
    "calculate_streaks",
    "current_state",
    "preview",
    "select_due",
]
