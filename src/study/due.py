"""Due-card selection."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence

from src.study.models import CardT, CardWithLatestReview
from src.study.streaks import ensure_aware


DEFAULT_CRAM_LIMIT = 50


def is_due(entry: CardWithLatestReview[CardT], as_of: datetime) -> bool:
    """A card is due when it was never reviewed or its next review has arrived."""
    if entry.latest is None:
        return True
    return ensure_aware(entry.latest.next_review_date) <= ensure_aware(as_of)


def select_due(
    cards: Sequence[CardWithLatestReview[CardT]],
    as_of: datetime,
    limit: Optional[int] = None,
) -> List[CardT]:
    """Return the cards due at ``as_of``, earliest due first.

    Ties keep the input order, so callers that need a deterministic result
    should pre-sort by card id. ``limit`` only truncates the ordered result.
    A naive ``as_of`` is read as UTC.
    """
    due = [entry for entry in cards if is_due(entry, as_of)]
    # Never-reviewed cards sort ahead of everything else.
    never_reviewed = [entry for entry in due if entry.latest is None]
    scheduled = sorted(
        (entry for entry in due if entry.latest is not None),
        key=lambda entry: ensure_aware(entry.latest.next_review_date),
    )
    ordered = [entry.card for entry in never_reviewed + scheduled]
    if limit is not None:
        ordered = ordered[:limit]
    return ordered
