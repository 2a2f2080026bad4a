"""Which subscription tiers an account may move to."""

from armory.errors import ValidationError
from armory.models.enums import SubscriptionTier

ALLOWED_TRANSITIONS: dict[SubscriptionTier, frozenset[SubscriptionTier]] = {
    SubscriptionTier.FREE: frozenset(
        {
            SubscriptionTier.MONTHLY,
            SubscriptionTier.YEARLY,
            SubscriptionTier.LIFETIME,
            SubscriptionTier.PREMIUM_LIFETIME,
        }
    ),
    SubscriptionTier.MONTHLY: frozenset(
        {SubscriptionTier.YEARLY, SubscriptionTier.LIFETIME, SubscriptionTier.PREMIUM_LIFETIME}
    ),
    SubscriptionTier.YEARLY: frozenset({SubscriptionTier.LIFETIME, SubscriptionTier.PREMIUM_LIFETIME}),
    SubscriptionTier.LIFETIME: frozenset({SubscriptionTier.PREMIUM_LIFETIME}),
    SubscriptionTier.PREMIUM_LIFETIME: frozenset(),
}


def parse_tier(value: str | SubscriptionTier) -> SubscriptionTier:
    """Convert a tier name to a SubscriptionTier."""
    try:
        return SubscriptionTier(value)
    except ValueError:
        raise ValidationError(f"Unknown subscription tier: {value}") from None


def allowed_targets(current: str | SubscriptionTier) -> frozenset[SubscriptionTier]:
    return ALLOWED_TRANSITIONS[parse_tier(current)]


def can_transition(current: str | SubscriptionTier, target: str | SubscriptionTier) -> bool:
    """Check if an account on ``current`` may subscribe to ``target``."""
    return parse_tier(target) in allowed_targets(current)
