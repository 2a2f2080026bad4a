"""Tests for subscription tiers, upgrades, cancellation and billing events."""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest

from armory.errors import BillingError, SubscriptionError, TierTransitionError, ValidationError
from armory.models.enums import SubscriptionStatus, SubscriptionTier
from armory.models.mixins import as_utc
from armory.models.payment import Payment
from armory.services.subscription_policy import allowed_targets, can_transition, parse_tier
from armory.services.subscription_service import SubscriptionService
from tests.conftest import TEST_PASSWORD


@pytest.fixture
def account(account_service):
    return account_service.register("subscriber@example.com", TEST_PASSWORD)


class TestTierPolicy:
    """Tests for the allowed tier transitions."""

    @pytest.mark.parametrize(
        "current,target,allowed",
        [
            ("free", "monthly", True),
            ("free", "yearly", True),
            ("free", "lifetime", True),
            ("free", "premium_lifetime", True),
            ("monthly", "yearly", True),
            ("monthly", "lifetime", True),
            ("yearly", "monthly", False),
            ("yearly", "premium_lifetime", True),
            ("lifetime", "premium_lifetime", True),
            ("lifetime", "monthly", False),
            ("lifetime", "lifetime", False),
            ("premium_lifetime", "lifetime", False),
            ("monthly", "free", False),
            ("free", "free", False),
            ("monthly", "monthly", False),
        ],
    )
    def test_can_transition(self, current, target, allowed):
        assert can_transition(current, target) is allowed

    def test_premium_lifetime_is_terminal(self):
        assert allowed_targets(SubscriptionTier.PREMIUM_LIFETIME) == frozenset()

    def test_unknown_tier(self):
        with pytest.raises(ValidationError):
            parse_tier("platinum")


class TestSubscriptionService:
    """Tests for the subscription lifecycle."""

    def test_free_account_has_no_active_subscription(self, subscription_service, account):
        assert subscription_service.has_active_subscription(account) is False

    def test_apply_recurring_upgrade(self, subscription_service, account, clock):
        period_end = clock.now + timedelta(days=30)

        subscription_service.apply_upgrade(
            account, "monthly", customer_id="cus_1", subscription_id="sub_1", period_end=period_end
        )

        assert account.tier == SubscriptionTier.MONTHLY
        assert account.status == SubscriptionStatus.ACTIVE
        assert account.stripe_customer_id == "cus_1"
        assert account.stripe_subscription_id == "sub_1"
        assert account.is_lifetime is False
        assert subscription_service.has_active_subscription(account) is True

    def test_lifetime_upgrade_never_lapses(self, subscription_service, account, clock):
        subscription_service.apply_upgrade(account, "lifetime")
        clock.advance(days=3650)

        assert account.is_lifetime is True
        assert account.subscription_end_date is None
        assert subscription_service.has_active_subscription(account) is True
        assert subscription_service.expire_if_lapsed(account) is False

    def test_downgrade_rejected(self, subscription_service, account):
        subscription_service.apply_upgrade(account, "yearly")

        with pytest.raises(TierTransitionError):
            subscription_service.apply_upgrade(account, "monthly")

    def test_checkout_requires_billing(self, subscription_service, account):
        with pytest.raises(BillingError):
            subscription_service.start_checkout(account, "monthly")

    def test_checkout_checks_policy_first(self, subscription_service, account):
        subscription_service.apply_upgrade(account, "premium_lifetime")

        with pytest.raises(TierTransitionError):
            subscription_service.start_checkout(account, "lifetime")

    def test_checkout_delegates_to_billing(self, db, account, clock):
        billing = MagicMock()
        billing.create_checkout_session.return_value = "https://checkout.stripe.com/c/pay/cs_test"
        service = SubscriptionService(db, billing=billing, clock=clock)

        assert service.start_checkout(account, "yearly") == "https://checkout.stripe.com/c/pay/cs_test"
        billing.create_checkout_session.assert_called_once_with(account, SubscriptionTier.YEARLY)

    def test_cancel_lifetime_rejected(self, subscription_service, account):
        subscription_service.apply_upgrade(account, "lifetime")

        with pytest.raises(SubscriptionError):
            subscription_service.cancel(account)

    def test_cancel_without_subscription_rejected(self, subscription_service, account):
        with pytest.raises(SubscriptionError):
            subscription_service.cancel(account)

    def test_cancel_at_period_end(self, db, account, clock):
        billing = MagicMock()
        billing.cancel_subscription.return_value = True
        service = SubscriptionService(db, billing=billing, clock=clock)
        period_end = clock.now + timedelta(days=12)
        service.apply_upgrade(account, "monthly", subscription_id="sub_9", period_end=period_end)

        service.cancel(account)

        billing.cancel_subscription.assert_called_once_with("sub_9")
        assert account.status == SubscriptionStatus.PENDING_CANCELLATION
        assert account.tier == SubscriptionTier.MONTHLY

        clock.advance(days=12)
        assert service.expire_if_lapsed(account) is True
        assert account.tier == SubscriptionTier.FREE
        assert account.status == SubscriptionStatus.EXPIRED

    def test_cancel_without_provider_subscription_is_immediate(self, subscription_service, account, clock):
        subscription_service.apply_upgrade(account, "monthly", period_end=clock.now + timedelta(days=30))

        subscription_service.cancel(account)

        assert account.status == SubscriptionStatus.CANCELED
        assert subscription_service.has_active_subscription(account) is False
        assert subscription_service.expire_if_lapsed(account) is True
        assert account.tier == SubscriptionTier.FREE

    def test_expire_if_lapsed_leaves_current_subscription(self, subscription_service, account, clock):
        subscription_service.apply_upgrade(account, "yearly", period_end=clock.now + timedelta(days=365))

        assert subscription_service.expire_if_lapsed(account) is False
        assert account.tier == SubscriptionTier.YEARLY


class TestBillingEvents:
    """Tests for applying verified billing webhook events."""

    def test_checkout_completed_upgrades_account(self, subscription_service, account):
        event = {
            "type": "checkout.session.completed",
            "data": {
                "object": {
                    "client_reference_id": str(account.id),
                    "customer": "cus_42",
                    "subscription": "sub_42",
                    "metadata": {"account_id": str(account.id), "tier": "monthly"},
                }
            },
        }

        assert subscription_service.handle_billing_event(event) is True
        assert account.tier == SubscriptionTier.MONTHLY
        assert account.stripe_customer_id == "cus_42"
        assert account.stripe_subscription_id == "sub_42"

    def test_checkout_completed_for_disallowed_tier_ignored(self, subscription_service, account):
        subscription_service.apply_upgrade(account, "lifetime")
        event = {
            "type": "checkout.session.completed",
            "data": {"object": {"metadata": {"account_id": str(account.id), "tier": "monthly"}}},
        }

        assert subscription_service.handle_billing_event(event) is False
        assert account.tier == SubscriptionTier.LIFETIME

    def test_subscription_updated_records_pending_cancellation(self, subscription_service, account):
        subscription_service.apply_upgrade(account, "monthly", customer_id="cus_7", subscription_id="sub_7")
        period_end = datetime(2026, 2, 15, tzinfo=UTC)
        event = {
            "type": "customer.subscription.updated",
            "data": {
                "object": {
                    "id": "sub_7",
                    "customer": "cus_7",
                    "status": "active",
                    "cancel_at_period_end": True,
                    "current_period_end": int(period_end.timestamp()),
                }
            },
        }

        assert subscription_service.handle_billing_event(event) is True
        assert account.status == SubscriptionStatus.PENDING_CANCELLATION
        assert as_utc(account.subscription_end_date) == period_end

    def test_subscription_deleted_cancels(self, subscription_service, account):
        subscription_service.apply_upgrade(account, "yearly", customer_id="cus_8", subscription_id="sub_8")
        event = {
            "type": "customer.subscription.deleted",
            "data": {"object": {"id": "sub_8", "customer": "cus_8", "status": "canceled"}},
        }

        assert subscription_service.handle_billing_event(event) is True
        assert account.status == SubscriptionStatus.CANCELED
        assert account.stripe_subscription_id is None

    def test_unknown_customer_ignored(self, subscription_service):
        event = {
            "type": "customer.subscription.deleted",
            "data": {"object": {"customer": "cus_missing"}},
        }

        assert subscription_service.handle_billing_event(event) is False

    def test_unrelated_event_ignored(self, subscription_service):
        assert subscription_service.handle_billing_event({"type": "invoice.paid", "data": {"object": {}}}) is False

    def test_malformed_account_reference_ignored(self, subscription_service, account):
        event = {
            "type": "checkout.session.completed",
            "data": {"object": {"metadata": {"account_id": "abc", "tier": "monthly"}}},
        }

        assert subscription_service.handle_billing_event(event) is False
        assert account.tier == SubscriptionTier.FREE

    def test_malformed_account_reference_falls_back_to_customer(self, subscription_service, account):
        subscription_service.apply_upgrade(account, "monthly", customer_id="cus_9", subscription_id="sub_9")
        event = {
            "type": "customer.subscription.deleted",
            "data": {"object": {"customer": "cus_9", "metadata": {"account_id": "12abc"}}},
        }

        assert subscription_service.handle_billing_event(event) is True
        assert account.status == SubscriptionStatus.CANCELED


class TestPaymentHistory:
    """Tests for recording settled charges from billing events."""

    @staticmethod
    def lifetime_checkout(account_id, session_id="cs_life"):
        return {
            "type": "checkout.session.completed",
            "data": {
                "object": {
                    "id": session_id,
                    "mode": "payment",
                    "customer": "cus_life",
                    "amount_total": 9900,
                    "currency": "USD",
                    "metadata": {"account_id": str(account_id), "tier": "lifetime"},
                }
            },
        }

    @staticmethod
    def invoice_paid(invoice_id, customer="cus_sub", amount=999, **extra):
        return {
            "type": "invoice.payment_succeeded",
            "data": {
                "object": {
                    "id": invoice_id,
                    "customer": customer,
                    "amount_paid": amount,
                    "currency": "usd",
                    **extra,
                }
            },
        }

    def test_new_account_has_no_payments(self, subscription_service, account):
        assert subscription_service.payment_history(account) == []

    def test_one_time_checkout_records_payment(self, subscription_service, account):
        assert subscription_service.handle_billing_event(self.lifetime_checkout(account.id)) is True

        [payment] = subscription_service.payment_history(account)
        assert payment.amount == 9900
        assert payment.currency == "usd"
        assert payment.payment_type == "one-time"
        assert payment.status == "succeeded"
        assert payment.description == "Lifetime subscription"
        assert payment.stripe_id == "cs_life"

    def test_replayed_checkout_not_recorded_twice(self, subscription_service, account):
        event = self.lifetime_checkout(account.id)

        assert subscription_service.handle_billing_event(event) is True
        assert subscription_service.handle_billing_event(event) is False

        assert len(subscription_service.payment_history(account)) == 1

    def test_recurring_checkout_records_no_payment(self, subscription_service, account):
        event = {
            "type": "checkout.session.completed",
            "data": {
                "object": {
                    "id": "cs_month",
                    "mode": "subscription",
                    "customer": "cus_sub",
                    "subscription": "sub_1",
                    "amount_total": 999,
                    "metadata": {"account_id": str(account.id), "tier": "monthly"},
                }
            },
        }

        assert subscription_service.handle_billing_event(event) is True
        assert subscription_service.payment_history(account) == []

    def test_invoice_records_subscription_payment(self, subscription_service, account):
        subscription_service.apply_upgrade(account, "monthly", customer_id="cus_sub", subscription_id="sub_1")

        assert subscription_service.handle_billing_event(self.invoice_paid("in_1", subscription="sub_1")) is True

        [payment] = subscription_service.payment_history(account)
        assert payment.amount == 999
        assert payment.payment_type == "subscription"
        assert payment.stripe_id == "in_1"

    def test_invoice_with_nested_subscription_details(self, subscription_service, account):
        subscription_service.apply_upgrade(account, "monthly", customer_id="cus_sub", subscription_id="sub_1")
        event = self.invoice_paid("in_2", parent={"subscription_details": {"subscription": "sub_1"}})

        assert subscription_service.handle_billing_event(event) is True
        assert len(subscription_service.payment_history(account)) == 1

    def test_invoice_retry_not_recorded_twice(self, subscription_service, account):
        subscription_service.apply_upgrade(account, "monthly", customer_id="cus_sub", subscription_id="sub_1")
        event = self.invoice_paid("in_3", subscription="sub_1")

        subscription_service.handle_billing_event(event)
        subscription_service.handle_billing_event(event)

        assert len(subscription_service.payment_history(account)) == 1

    def test_invoice_without_subscription_ignored(self, subscription_service, account):
        subscription_service.apply_upgrade(account, "lifetime", customer_id="cus_sub")

        assert subscription_service.handle_billing_event(self.invoice_paid("in_4")) is False
        assert subscription_service.payment_history(account) == []

    def test_invoice_for_unknown_customer_ignored(self, subscription_service):
        event = self.invoice_paid("in_5", customer="cus_missing", subscription="sub_x")

        assert subscription_service.handle_billing_event(event) is False

    def test_history_is_newest_first(self, subscription_service, account):
        first = subscription_service.record_payment(account, 999, "usd", "subscription", "Renewal", "in_a")
        second = subscription_service.record_payment(account, 999, "usd", "subscription", "Renewal", "in_b")

        history = subscription_service.payment_history(account)

        assert [payment.id for payment in history] == [second.id, first.id]

    def test_history_is_per_account(self, subscription_service, account_service, account):
        other = account_service.register("other@example.com", TEST_PASSWORD)
        subscription_service.record_payment(other, 999, "usd", "subscription", "Subscription payment", "in_other")

        assert subscription_service.payment_history(account) == []

    def test_purge_removes_payments(self, db, subscription_service, account_service, account):
        subscription_service.record_payment(account, 9900, "usd", "one-time", "Lifetime subscription", "cs_gone")

        account_service.purge(account.id)

        assert db.query(Payment).count() == 0
