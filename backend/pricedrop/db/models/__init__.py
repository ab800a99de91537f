from pricedrop.db.base import Base, get_session_factory
from pricedrop.db.models.subscription import Subscription

__all__ = [
    "Base",
    "Subscription",
    "get_session_factory",
]
