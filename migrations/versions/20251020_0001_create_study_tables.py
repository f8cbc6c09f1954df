"""Create decks, cards and the review ledgers."""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20251020_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            server_onupdate=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "decks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_decks_user_id", "decks", ("user_id",))

    op.create_table(
        "cards",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("deck_id", sa.Integer(), nullable=False),
        sa.Column("front", sa.Text(), nullable=False),
        sa.Column("back", sa.Text(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ("deck_id",),
            ("decks.id",),
            name="fk_cards_deck_id_decks",
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_cards_deck_id", "cards", ("deck_id",))

    op.create_table(
        "card_reviews",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("card_id", sa.Integer(), nullable=False),
        sa.Column("quality", sa.String(length=16), nullable=False),
        sa.Column("repetitions", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("interval", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("ease_factor", sa.Float(), server_default=sa.text("2.5"), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("previous_status", sa.String(length=16), server_default=sa.text("'new'"), nullable=False),
        sa.Column("next_review_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "reviewed_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(
            ("card_id",),
            ("cards.id",),
            name="fk_card_reviews_card_id_cards",
            ondelete="CASCADE",
        ),
    )
    op.create_index(
        "ix_card_reviews_card_id_reviewed_at",
        "card_reviews",
        ("card_id", "reviewed_at"),
    )
    op.create_index("ix_card_reviews_next_review_at", "card_reviews", ("next_review_at",))

    op.create_table(
        "practice_reviews",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("card_id", sa.Integer(), nullable=False),
        sa.Column("quality", sa.String(length=16), nullable=False),
        sa.Column(
            "reviewed_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(
            ("card_id",),
            ("cards.id",),
            name="fk_practice_reviews_card_id_cards",
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_practice_reviews_card_id", "practice_reviews", ("card_id",))


def downgrade() -> None:
    op.drop_index("ix_practice_reviews_card_id", table_name="practice_reviews")
    op.drop_table("practice_reviews")
    op.drop_index("ix_card_reviews_next_review_at", table_name="card_reviews")
    op.drop_index("ix_card_reviews_card_id_reviewed_at", table_name="card_reviews")
    op.drop_table("card_reviews")
    op.drop_index("ix_cards_deck_id", table_name="cards")
    op.drop_table("cards")
    op.drop_index("ix_decks_user_id", table_name="decks")
    op.drop_table("decks")
