from collections.abc import Iterator
from datetime import datetime, timedelta

import structlog
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from pricedrop.core.errors import (
    DuplicateSubscriptionError,
    InvalidSubscriptionError,
    StoreUnavailableError,
    SubscriptionNotFoundError,
)
from pricedrop.db.models import Subscription
from pricedrop.db.types import utcnow
from pricedrop.services.canonicalize import canonicalize_url, is_valid_url
from pricedrop.services.pricing import parse_price_to_decimal

logger = structlog.get_logger(__name__)

# fields the monitor is allowed to change after creation
MUTABLE_FIELDS = ("product_name", "last_seen_price", "last_checked_at", "last_notified_at")


class SubscriptionStore:
    """
    Persistence for subscriptions.

    Each call runs in its own short session so one failing write never poisons
    the next one. Rows handed out are detached snapshots, changes go back
    through ``save``.
    """

    def __init__(self, session_factory: sessionmaker, page_size: int = 100):
        self.session_factory = session_factory
        self.page_size = page_size

    def create(
        self,
        email: str,
        product_url: str,
        product_name: str = "",
        claimed_price_text: str = "",
    ) -> Subscription:
        email = (email or "").strip().lower()
        if "@" not in email:
            raise InvalidSubscriptionError(f"Invalid email: {email!r}")
        if not is_valid_url(product_url):
            raise InvalidSubscriptionError(f"Invalid product URL: {product_url!r}")

        product_url = canonicalize_url(product_url)
        claimed_price_text = (claimed_price_text or "").strip()

        with self.session_factory() as db:
            exists = db.scalar(
                select(Subscription.id).where(
                    Subscription.email == email,
                    Subscription.product_url == product_url,
                )
            )
            if exists is not None:
                raise DuplicateSubscriptionError(email, product_url)

            subscription = Subscription(
                email=email,
                product_url=product_url,
                product_name=(product_name or "").strip(),
                claimed_price_text=claimed_price_text,
                last_seen_price=parse_price_to_decimal(claimed_price_text),
            )
            db.add(subscription)
            try:
                db.commit()
            except IntegrityError as exc:
                # lost a race with a concurrent create for the same pair
                db.rollback()
                raise DuplicateSubscriptionError(email, product_url) from exc
            db.refresh(subscription)
            db.expunge(subscription)

        logger.info("subscriptions.created", subscription_id=subscription.id, url=product_url)
        return subscription

    def get(self, subscription_id: int) -> Subscription:
        with self.session_factory() as db:
            subscription = db.get(Subscription, subscription_id)
            if subscription is None:
                raise SubscriptionNotFoundError(subscription_id)
            db.expunge(subscription)
            return subscription

    def list_all(self) -> list[Subscription]:
        with self.session_factory() as db:
            rows = db.scalars(
                select(Subscription).order_by(Subscription.created_at.desc(), Subscription.id.desc())
            ).all()
            db.expunge_all()
            return list(rows)

    def delete(self, subscription_id: int) -> None:
        with self.session_factory() as db:
            subscription = db.get(Subscription, subscription_id)
            if subscription is None:
                raise SubscriptionNotFoundError(subscription_id)
            db.delete(subscription)
            db.commit()

    def purge_invalid(self) -> int:
        """Delete subscriptions whose URL cannot be fetched at all."""
        removed = 0
        with self.session_factory() as db:
            for subscription in db.scalars(select(Subscription)):
                if not is_valid_url(subscription.product_url):
                    db.delete(subscription)
                    removed += 1
            db.commit()

        if removed:
            logger.info("subscriptions.purged_invalid", removed=removed)
        return removed

    # -------------------------
    # Monitor access
    # -------------------------

    def _eligible_page(self, db: Session, cutoff: datetime, after_id: int) -> list[Subscription]:
        stmt = (
            select(Subscription)
            .where(
                or_(
                    Subscription.last_checked_at.is_(None),
                    Subscription.last_checked_at < cutoff,
                ),
                Subscription.id > after_id,
            )
            .order_by(Subscription.id)
            .limit(self.page_size)
        )
        rows = list(db.scalars(stmt))
        db.expunge_all()
        return rows

    def find_eligible(self, now: datetime, min_check_interval: timedelta) -> Iterator[Subscription]:
        """
        Stream subscriptions due for a check, oldest first.

        Rows are read in keyset pages of ``page_size`` so memory stays flat
        however many subscriptions exist. Raises ``StoreUnavailableError``
        when the database cannot be queried.
        """
        cutoff = now - min_check_interval
        after_id = 0
        while True:
            try:
                with self.session_factory() as db:
                    page = self._eligible_page(db, cutoff, after_id)
            except OperationalError as exc:
                raise StoreUnavailableError(str(exc)) from exc

            if not page:
                return
            yield from page
            after_id = page[-1].id

    def save(self, subscription: Subscription) -> Subscription:
        """Write the monitor-owned fields back in a single-row transaction."""
        with self.session_factory() as db:
            stored = db.get(Subscription, subscription.id, with_for_update=True)
            if stored is None:
                raise SubscriptionNotFoundError(subscription.id)

            for field in MUTABLE_FIELDS:
                setattr(stored, field, getattr(subscription, field))

            if stored.last_checked_at is not None and stored.last_checked_at < stored.created_at:
                stored.last_checked_at = stored.created_at

            stored.updated_at = utcnow()
            try:
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(stored)
            db.expunge(stored)
            return stored
