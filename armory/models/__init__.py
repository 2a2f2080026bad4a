"""SQLAlchemy models."""

from armory.models.account import Account
from armory.models.enums import AccountState, SubscriptionStatus, SubscriptionTier
from armory.models.payment import Payment

__all__ = [
    "Account",
    "AccountState",
    "Payment",
    "SubscriptionStatus",
    "SubscriptionTier",
]
