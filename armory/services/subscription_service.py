"""Subscription lifecycle on top of the tier policy."""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.orm import Session

from armory.errors import BillingError, SubscriptionError, TierTransitionError, ValidationError
from armory.models.account import Account
from armory.models.enums import SubscriptionStatus, SubscriptionTier
from armory.models.mixins import as_utc
from armory.models.payment import Payment
from armory.services.account_repository import AccountRepository
from armory.services.billing import BillingService
from armory.services.payment_repository import PaymentRepository
from armory.services.session_cache import utc_now
from armory.services.subscription_policy import can_transition, parse_tier

logger = logging.getLogger(__name__)


def _period_end(subscription: dict[str, Any]) -> datetime | None:
    timestamp = subscription.get("current_period_end")
    if timestamp is None:
        items = (subscription.get("items") or {}).get("data") or []
        if items:
            timestamp = items[0].get("current_period_end")
    return datetime.fromtimestamp(timestamp, UTC) if timestamp else None


def _invoice_subscription(invoice: dict[str, Any]) -> str | None:
    # Newer API versions nest the subscription under parent.subscription_details
    subscription = invoice.get("subscription")
    if subscription is None:
        details = (invoice.get("parent") or {}).get("subscription_details") or {}
        subscription = details.get("subscription")
    if isinstance(subscription, dict):
        return subscription.get("id")
    return subscription


class SubscriptionService:
    """Upgrades, cancellations, expiry and billing webhook events."""

    def __init__(
        self,
        db: Session,
        billing: BillingService | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.accounts = AccountRepository(db)
        self.payments = PaymentRepository(db)
        self.billing = billing
        self.clock = clock

    def has_active_subscription(self, account: Account) -> bool:
        """Check if the account currently holds paid entitlements."""
        tier = account.tier
        if not tier.is_paid:
            return False
        if tier.is_lifetime:
            return True
        if account.status not in (SubscriptionStatus.ACTIVE, SubscriptionStatus.PENDING_CANCELLATION):
            return False
        end = as_utc(account.subscription_end_date)
        return end is None or self.clock() < end

    def start_checkout(self, account: Account, tier: str) -> str:
        """Check the tier policy and return a hosted checkout URL."""
        target = parse_tier(tier)
        if not can_transition(account.tier, target):
            raise TierTransitionError()
        if self.billing is None:
            raise BillingError("Payments are not configured")
        return self.billing.create_checkout_session(account, target)

    def apply_upgrade(
        self,
        account: Account,
        tier: str,
        customer_id: str | None = None,
        subscription_id: str | None = None,
        period_end: datetime | None = None,
    ) -> Account:
        """Move an account to a higher tier after payment."""
        target = parse_tier(tier)
        if not can_transition(account.tier, target):
            raise TierTransitionError()

        account.subscription_tier = target.value
        account.subscription_status = SubscriptionStatus.ACTIVE.value
        account.is_lifetime = target.is_lifetime
        account.subscription_end_date = None if target.is_lifetime else period_end
        if customer_id:
            account.stripe_customer_id = customer_id
        if subscription_id:
            account.stripe_subscription_id = subscription_id
        self.accounts.update(account)
        logger.info(f"Account {account.id} upgraded to {target.value}")
        return account

    def cancel(self, account: Account) -> Account:
        """Cancel a recurring subscription through the payment provider."""
        if account.tier.is_lifetime:
            raise SubscriptionError("Lifetime subscriptions cannot be canceled")
        if not self.has_active_subscription(account):
            raise SubscriptionError("No active subscription to cancel")

        at_period_end = False
        if account.stripe_subscription_id:
            if self.billing is None:
                raise BillingError("Payments are not configured")
            at_period_end = self.billing.cancel_subscription(account.stripe_subscription_id)
        return self.record_cancellation(account, at_period_end)

    def record_cancellation(
        self, account: Account, at_period_end: bool, period_end: datetime | None = None
    ) -> Account:
        """Store a cancellation. The tier is left alone until the period lapses."""
        if at_period_end:
            account.subscription_status = SubscriptionStatus.PENDING_CANCELLATION.value
            if period_end is not None:
                account.subscription_end_date = period_end
        else:
            account.subscription_status = SubscriptionStatus.CANCELED.value
            account.subscription_end_date = self.clock()
        self.accounts.update(account)
        logger.info(f"Account {account.id} subscription -> {account.subscription_status}")
        return account

    def expire_if_lapsed(self, account: Account) -> bool:
        """Return a lapsed recurring subscription to the free tier.

        Returns True if the account was changed.
        """
        tier = account.tier
        if not tier.is_paid or tier.is_lifetime or account.status == SubscriptionStatus.EXPIRED:
            return False

        end = as_utc(account.subscription_end_date)
        if end is None or self.clock() < end:
            return False

        account.subscription_tier = SubscriptionTier.FREE.value
        account.subscription_status = SubscriptionStatus.EXPIRED.value
        account.subscription_end_date = None
        account.stripe_subscription_id = None
        self.accounts.update(account)
        logger.info(f"Account {account.id} subscription expired, back on free tier")
        return True

    def payment_history(self, account: Account) -> list[Payment]:
        """Recorded payments for an account, newest first."""
        return self.payments.list_for_account(account.id)

    def record_payment(
        self,
        account: Account,
        amount: int,
        currency: str,
        payment_type: str,
        description: str,
        stripe_id: str | None = None,
    ) -> Payment | None:
        """Store a settled charge. Returns None if this provider ID was already recorded."""
        if stripe_id and self.payments.get_by_stripe_id(stripe_id) is not None:
            logger.info(f"Payment {stripe_id} already recorded for account {account.id}")
            return None
        payment = Payment(
            account_id=account.id,
            amount=amount or 0,
            currency=(currency or "usd").lower(),
            payment_type=payment_type,
            status="succeeded",
            description=description,
            stripe_id=stripe_id,
        )
        self.payments.create(payment)
        logger.info(f"Recorded {payment_type} payment of {payment.amount} {payment.currency} for account {account.id}")
        return payment

    def handle_billing_event(self, event: dict[str, Any]) -> bool:
        """Apply a verified billing webhook event. Returns False if it was ignored."""
        event_type = event["type"]
        data = (event.get("data") or {}).get("object") or {}

        if event_type == "checkout.session.completed":
            return self._checkout_completed(data)
        if event_type == "customer.subscription.updated":
            return self._subscription_updated(data)
        if event_type == "customer.subscription.deleted":
            return self._subscription_deleted(data)
        if event_type == "invoice.payment_succeeded":
            return self._invoice_paid(data)

        logger.debug(f"Ignoring billing event {event_type}")
        return False

    def _find_account(self, data: dict[str, Any]) -> Account | None:
        metadata = data.get("metadata") or {}
        raw_id = metadata.get("account_id") or data.get("client_reference_id")
        if raw_id:
            try:
                account_id = int(raw_id)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring malformed account reference {raw_id!r} in billing event")
            else:
                account = self.accounts.get_by_id(account_id)
                if account is not None:
                    return account
        customer_id = data.get("customer")
        if customer_id:
            return self.accounts.get_by_stripe_customer_id(customer_id)
        return None

    def _checkout_completed(self, data: dict[str, Any]) -> bool:
        account = self._find_account(data)
        tier = (data.get("metadata") or {}).get("tier")
        if account is None or not tier:
            logger.warning("Checkout completed for an unknown account or tier")
            return False
        try:
            allowed = can_transition(account.tier, tier)
        except ValidationError:
            allowed = False
        if not allowed:
            logger.warning(
                f"Ignoring checkout for account {account.id}: {account.subscription_tier} -> {tier} not allowed"
            )
            return False
        self.apply_upgrade(
            account,
            tier,
            customer_id=data.get("customer"),
            subscription_id=data.get("subscription"),
        )

        # Recurring plans are recorded per invoice instead
        if data.get("mode") == "payment":
            self.record_payment(
                account,
                amount=data.get("amount_total"),
                currency=data.get("currency"),
                payment_type="one-time",
                description=f"{tier.replace('_', ' ').title()} subscription",
                stripe_id=data.get("id"),
            )
        return True

    def _subscription_updated(self, data: dict[str, Any]) -> bool:
        account = self._find_account(data)
        if account is None:
            logger.warning("Subscription update for an unknown customer")
            return False

        period_end = _period_end(data)
        if data.get("cancel_at_period_end"):
            self.record_cancellation(account, at_period_end=True, period_end=period_end)
        elif data.get("status") == "active":
            account.subscription_status = SubscriptionStatus.ACTIVE.value
            account.subscription_end_date = period_end
            self.accounts.update(account)
        else:
            logger.info(f"Subscription for account {account.id} is {data.get('status')}, no change")
        return True

    def _subscription_deleted(self, data: dict[str, Any]) -> bool:
        account = self._find_account(data)
        if account is None:
            logger.warning("Subscription deletion for an unknown customer")
            return False
        account.stripe_subscription_id = None
        self.record_cancellation(account, at_period_end=False)
        return True

    def _invoice_paid(self, data: dict[str, Any]) -> bool:
        if _invoice_subscription(data) is None:
            return False
        account = self._find_account({"customer": data.get("customer")})
        if account is None:
            logger.warning("Invoice paid for an unknown customer")
            return False
        self.record_payment(
            account,
            amount=data.get("amount_paid"),
            currency=data.get("currency"),
            payment_type="subscription",
            description="Subscription payment",
            stripe_id=data.get("id"),
        )
        return True
