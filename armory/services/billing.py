"""Stripe adapter for hosted checkout, cancellation and webhook verification."""

import json
import logging
from typing import Any

import stripe

from armory.config import Settings, get_settings
from armory.errors import BillingError, ValidationError
from armory.models.account import Account
from armory.models.enums import SubscriptionTier

logger = logging.getLogger(__name__)

# Stripe answers with one of these when the subscription is already gone
ALREADY_CANCELED_MARKERS = (
    "invalid-canceled-subscription-fields",
    "A canceled subscription can only update",
)


class BillingService:
    """Thin wrapper over the Stripe API."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        if not self.settings.stripe_secret_key:
            raise BillingError("Payments are not configured")
        stripe.api_key = self.settings.stripe_secret_key

    def create_checkout_session(self, account: Account, tier: SubscriptionTier) -> str:
        """Create a hosted checkout session and return its URL."""
        price_id = self.settings.stripe_price_for(tier.value)
        if not price_id:
            raise BillingError(f"No price configured for the {tier.value} tier")

        base_url = self.settings.base_url.rstrip("/")
        params: dict[str, Any] = {
            "mode": "payment" if tier.is_lifetime else "subscription",
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": f"{base_url}/payment/success?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{base_url}/pricing",
            "client_reference_id": str(account.id),
            "metadata": {"account_id": str(account.id), "tier": tier.value},
        }
        if account.stripe_customer_id:
            params["customer"] = account.stripe_customer_id
        else:
            params["customer_email"] = account.email

        try:
            session = stripe.checkout.Session.create(**params)
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout session creation failed for account {account.id}: {e}")
            raise BillingError("Failed to create checkout session") from e

        logger.info(f"Checkout session created for account {account.id} ({tier.value})")
        return session.url

    def cancel_subscription(self, subscription_id: str) -> bool:
        """Cancel at the end of the billing period.

        Returns True when the subscription stays active until period end,
        False when it ended immediately.
        """
        try:
            subscription = stripe.Subscription.modify(subscription_id, cancel_at_period_end=True)
        except stripe.InvalidRequestError as e:
            if any(marker in str(e) for marker in ALREADY_CANCELED_MARKERS):
                logger.info("Subscription already canceled in Stripe, updating local status")
                return True
            raise BillingError("Failed to cancel subscription") from e
        except stripe.StripeError as e:
            logger.error(f"Stripe cancellation failed: {e}")
            raise BillingError("Failed to cancel subscription") from e

        return subscription.status == "active" and bool(subscription.cancel_at_period_end)

    def construct_event(self, payload: bytes | str, signature: str | None) -> dict[str, Any]:
        """Verify a webhook signature and return the event."""
        if not self.settings.stripe_webhook_secret:
            raise BillingError("Webhook secret not configured")
        if not signature:
            raise ValidationError("Stripe signature is required")

        try:
            if isinstance(payload, bytes):
                payload = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ValidationError("Invalid webhook payload") from e

        try:
            stripe.WebhookSignature.verify_header(
                payload,
                signature,
                self.settings.stripe_webhook_secret,
                tolerance=stripe.Webhook.DEFAULT_TOLERANCE,
            )
        except stripe.SignatureVerificationError as e:
            raise ValidationError("Invalid webhook signature") from e

        # Parsed from the verified body rather than through stripe.Event, whose
        # StripeObject values are not dicts.
        try:
            event = json.loads(payload)
        except ValueError as e:
            raise ValidationError("Invalid webhook payload") from e
        if not isinstance(event, dict) or "type" not in event:
            raise ValidationError("Invalid webhook payload")
        return event
