from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

import structlog

from pricedrop.db.models import Subscription
from pricedrop.services.notifier import Notifier, PriceDropNotice
from pricedrop.services.pricing import parse_price_to_decimal

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PriceComparison:
    should_notify: bool
    updated_last_seen_price: Decimal
    previous_price: Decimal

    @property
    def changed(self) -> bool:
        return self.updated_last_seen_price != self.previous_price


@dataclass(frozen=True)
class ComparisonOutcome:
    comparison: PriceComparison
    notified: bool
    delivery_reference: str | None = None


def baseline_price(subscription: Subscription) -> Decimal | None:
    """Last seen price, or the claimed price when nothing was observed yet."""
    if subscription.last_seen_price is not None:
        return Decimal(subscription.last_seen_price)
    return parse_price_to_decimal(subscription.claimed_price_text)


def compare_prices(current_price: Decimal, last_seen_price: Decimal) -> PriceComparison:
    # the baseline always follows the latest observation, rises included
    return PriceComparison(
        should_notify=current_price < last_seen_price,
        updated_last_seen_price=current_price,
        previous_price=last_seen_price,
    )


class PriceComparator:
    """Applies a fresh price to a subscription and sends drop notifications."""

    def __init__(self, notifier: Notifier):
        self.notifier = notifier

    async def apply(
        self,
        subscription: Subscription,
        current_price: Decimal,
        now: datetime,
    ) -> ComparisonOutcome:
        last_seen_price = baseline_price(subscription)
        if last_seen_price is None:
            raise ValueError(f"Subscription {subscription.id} has no comparable price")

        comparison = compare_prices(current_price, last_seen_price)

        if comparison.changed:
            subscription.last_seen_price = comparison.updated_last_seen_price

        if not comparison.should_notify:
            return ComparisonOutcome(comparison=comparison, notified=False)

        logger.info(
            "comparator.drop",
            subscription_id=subscription.id,
            url=subscription.product_url,
            old_price=str(last_seen_price),
            new_price=str(current_price),
        )

        notice = PriceDropNotice(
            email=subscription.email,
            product_name=subscription.product_name or subscription.product_url,
            product_url=subscription.product_url,
            old_price=last_seen_price,
            new_price=current_price,
        )
        try:
            reference = await self.notifier.send(notice)
        except Exception as exc:
            # the new baseline stays, last_notified_at is left alone
            logger.error(
                "comparator.notify_failed",
                subscription_id=subscription.id,
                to=subscription.email,
                error=str(exc),
            )
            return ComparisonOutcome(comparison=comparison, notified=False)

        subscription.last_notified_at = now
        return ComparisonOutcome(
            comparison=comparison, notified=True, delivery_reference=reference
        )
