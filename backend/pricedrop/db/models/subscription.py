from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from pricedrop.db.base import Base
from pricedrop.db.types import UTCDateTime, utcnow
from pricedrop.services.pricing import PRICE_SCALE


class Subscription(Base):
    __tablename__ = "subscriptions"
    __table_args__ = (
        UniqueConstraint("email", "product_url", name="uq_subscriptions_email_url"),
        CheckConstraint(
            "last_seen_price IS NULL OR last_seen_price >= 0",
            name="ck_subscriptions_last_seen_price_non_negative",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    product_url: Mapped[str] = mapped_column(Text, nullable=False)
    product_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    claimed_price_text: Mapped[str] = mapped_column(
        String(64), nullable=False, default=""
    )  # as shown to the subscriber, e.g. "EGP6,555.00"

    last_seen_price: Mapped[Decimal | None] = mapped_column(
        Numeric(14, PRICE_SCALE), nullable=True
    )

    last_checked_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True, index=True
    )
    last_notified_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Subscription id={self.id} email={self.email} url={self.product_url}>"
