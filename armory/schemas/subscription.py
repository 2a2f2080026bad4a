"""Subscription and payment schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from armory.models.enums import SubscriptionTier


class CheckoutRequest(BaseModel):
    """Checkout request for a subscription tier."""

    tier: SubscriptionTier


class CheckoutResponse(BaseModel):
    """Hosted checkout URL to redirect to."""

    url: str


class SubscriptionResponse(BaseModel):
    """Current subscription of an account."""

    model_config = ConfigDict(from_attributes=True)

    subscription_tier: str
    subscription_status: str
    subscription_end_date: datetime | None
    is_lifetime: bool
    active: bool = False


class PricingResponse(BaseModel):
    """Tiers the current account may subscribe to."""

    current_tier: SubscriptionTier
    available_tiers: list[SubscriptionTier] = Field(default_factory=list)


class CancelResponse(BaseModel):
    """Result of a cancellation request."""

    message: str
    subscription: SubscriptionResponse


class PaymentResponse(BaseModel):
    """One entry of the payment history."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    amount: int
    currency: str
    payment_type: str
    status: str
    description: str | None
    created_at: datetime | None = None
