class PriceDropError(Exception):
    """Base class for errors raised by the price drop notifier."""


class InvalidSubscriptionError(PriceDropError):
    pass


class DuplicateSubscriptionError(PriceDropError):
    def __init__(self, email: str, product_url: str):
        super().__init__(f"{email} is already subscribed to {product_url}")
        self.email = email
        self.product_url = product_url


class SubscriptionNotFoundError(PriceDropError):
    def __init__(self, subscription_id: int):
        super().__init__(f"Subscription {subscription_id} not found")
        self.subscription_id = subscription_id


class StoreUnavailableError(PriceDropError):
    """The subscription store could not be read at all."""


class MonitorBusyError(PriceDropError):
    """A monitor run is already in flight."""


class NotificationError(PriceDropError):
    pass
