"""Enums for model fields."""

from enum import Enum


class AccountState(str, Enum):
    """Lifecycle state of an account."""

    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    DELETED = "deleted"


class SubscriptionTier(str, Enum):
    """Subscription plan levels, lowest first."""

    FREE = "free"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    LIFETIME = "lifetime"
    PREMIUM_LIFETIME = "premium_lifetime"

    @property
    def is_lifetime(self) -> bool:
        """Check if this tier never lapses."""
        return self in (SubscriptionTier.LIFETIME, SubscriptionTier.PREMIUM_LIFETIME)

    @property
    def is_paid(self) -> bool:
        """Check if this tier is a paid plan."""
        return self != SubscriptionTier.FREE


class SubscriptionStatus(str, Enum):
    """Billing status of a subscription, independent of tier."""

    NONE = "none"
    ACTIVE = "active"
    PENDING_CANCELLATION = "pending_cancellation"
    CANCELED = "canceled"
    EXPIRED = "expired"
