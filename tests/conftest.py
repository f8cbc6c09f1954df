from __future__ import annotations

from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Tuple

import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.db import Base, Card, Deck


DeckFactory = Callable[..., Awaitable[Tuple[int, List[int]]]]

DECK_CREATED_AT = datetime(2024, 1, 1, 8, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def session_factory() -> async_sessionmaker:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def make_deck(session_factory: async_sessionmaker) -> DeckFactory:
    """Return a helper that stores a deck with ``card_count`` cards and yields their ids."""

    async def _make(
        user_id: int = 101,
        title: str = "Greek verbs",
        card_count: int = 3,
        created_at: datetime = DECK_CREATED_AT,
    ) -> Tuple[int, List[int]]:
        async with session_factory() as session:
            async with session.begin():
                deck = Deck(user_id=user_id, title=title, created_at=created_at, updated_at=created_at)
                deck.cards = [
                    Card(front=f"front {index}", back=f"back {index}", created_at=created_at, updated_at=created_at)
                    for index in range(card_count)
                ]
                session.add(deck)
                await session.flush()
                return deck.id, [card.id for card in deck.cards]

    return _make
