from datetime import datetime, timezone
from decimal import Decimal

import pytest

from conftest import FailingNotifier, RecordingNotifier
from pricedrop.db.models import Subscription
from pricedrop.services.comparator import PriceComparator, baseline_price, compare_prices

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def make_subscription(last_seen="100.00", claimed="$100.00") -> Subscription:
    return Subscription(
        id=7,
        email="buyer@example.com",
        product_url="https://shop.example.com/item/42",
        product_name="Adjustable LED Desk Lamp",
        claimed_price_text=claimed,
        last_seen_price=Decimal(last_seen) if last_seen is not None else None,
    )


@pytest.mark.parametrize(
    "current, last_seen, should_notify",
    [
        ("80.00", "100.00", True),
        ("99.99", "100.00", True),
        ("100.00", "100.00", False),
        ("120.00", "100.00", False),
    ],
)
def test_compare_prices_notifies_only_on_strict_drop(current, last_seen, should_notify):
    comparison = compare_prices(Decimal(current), Decimal(last_seen))

    assert comparison.should_notify is should_notify
    assert comparison.updated_last_seen_price == Decimal(current)
    assert comparison.previous_price == Decimal(last_seen)


def test_equal_price_is_not_a_change():
    assert not compare_prices(Decimal("100"), Decimal("100.00")).changed


def test_baseline_prefers_last_seen_then_claimed():
    assert baseline_price(make_subscription(last_seen="90.00")) == Decimal("90.00")
    assert baseline_price(make_subscription(last_seen=None, claimed="EGP 1,250")) == Decimal("1250")
    assert baseline_price(make_subscription(last_seen=None, claimed="unknown")) is None


@pytest.mark.asyncio
async def test_drop_sends_notice_and_stamps_subscription():
    notifier = RecordingNotifier()
    subscription = make_subscription()

    outcome = await PriceComparator(notifier).apply(subscription, Decimal("80.00"), NOW)

    assert outcome.notified
    assert outcome.delivery_reference == "ref-1"
    assert subscription.last_seen_price == Decimal("80.00")
    assert subscription.last_notified_at == NOW

    [notice] = notifier.sent
    assert notice.email == "buyer@example.com"
    assert notice.product_name == "Adjustable LED Desk Lamp"
    assert notice.old_price == Decimal("100.00")
    assert notice.new_price == Decimal("80.00")
    assert notice.savings == Decimal("20.00")
    assert notice.savings_percent == Decimal("20.0")


@pytest.mark.asyncio
async def test_rise_moves_baseline_without_notifying():
    notifier = RecordingNotifier()
    subscription = make_subscription()

    outcome = await PriceComparator(notifier).apply(subscription, Decimal("120.00"), NOW)

    assert not outcome.notified
    assert subscription.last_seen_price == Decimal("120.00")
    assert subscription.last_notified_at is None
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_claimed_price_is_the_first_baseline():
    notifier = RecordingNotifier()
    subscription = make_subscription(last_seen=None, claimed="$100.00")

    outcome = await PriceComparator(notifier).apply(subscription, Decimal("90.00"), NOW)

    assert outcome.notified
    assert notifier.sent[0].old_price == Decimal("100.00")


@pytest.mark.asyncio
async def test_no_baseline_is_rejected():
    subscription = make_subscription(last_seen=None, claimed="")

    with pytest.raises(ValueError):
        await PriceComparator(RecordingNotifier()).apply(subscription, Decimal("90.00"), NOW)


@pytest.mark.asyncio
async def test_failed_delivery_keeps_new_baseline_but_not_notified_stamp():
    notifier = FailingNotifier()
    subscription = make_subscription()

    outcome = await PriceComparator(notifier).apply(subscription, Decimal("80.00"), NOW)

    assert notifier.attempts == 1
    assert not outcome.notified
    assert subscription.last_seen_price == Decimal("80.00")
    assert subscription.last_notified_at is None
