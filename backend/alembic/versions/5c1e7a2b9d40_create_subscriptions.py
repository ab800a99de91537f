"""create_subscriptions

Revision ID: 5c1e7a2b9d40
Revises:
Create Date: 2026-10-12 09:31:44.118204

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "5c1e7a2b9d40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("product_url", sa.Text(), nullable=False),
        sa.Column("product_name", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "claimed_price_text", sa.String(length=64), nullable=False, server_default=""
        ),
        sa.Column("last_seen_price", sa.Numeric(14, 4), nullable=True),
        sa.Column("last_checked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_notified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("email", "product_url", name="uq_subscriptions_email_url"),
        sa.CheckConstraint(
            "last_seen_price IS NULL OR last_seen_price >= 0",
            name="ck_subscriptions_last_seen_price_non_negative",
        ),
    )
    op.create_index("ix_subscriptions_email", "subscriptions", ["email"])
    op.create_index("ix_subscriptions_last_checked_at", "subscriptions", ["last_checked_at"])


def downgrade() -> None:
    op.drop_index("ix_subscriptions_last_checked_at", table_name="subscriptions")
    op.drop_index("ix_subscriptions_email", table_name="subscriptions")
    op.drop_table("subscriptions")
